from __future__ import annotations

from typing import Any, Optional, Protocol

import httpx
from loguru import logger


class ApiError(RuntimeError):
    def __init__(self, status: int, message: str, details: Any = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.details = details


class TokenStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryTokenStore:
    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


ACCESS_KEY = "accessToken"
REFRESH_KEY = "refreshToken"


def humanize_messages(messages: Any) -> Optional[str]:
    """Turn a validation message list into one friendly, newline separated string."""
    if not isinstance(messages, list):
        return None

    def one(m: Any) -> str:
        text = str(m)
        lowered = text.lower()
        if "email must be an email" in lowered:
            return "Please enter correct email address."
        if "must be a" in lowered:
            return text
        return text[:1].upper() + text[1:]

    return "\n".join(one(m) for m in messages)


class ApiClient:
    """Bearer-token client for the HTTP API.

    A 401 on an authenticated call triggers exactly one ``POST /auth/refresh``
    and one retry with the new access token.
    """

    def __init__(
        self,
        base_url: str,
        store: Optional[TokenStore] = None,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store or MemoryTokenStore()
        self.http = http or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def set_tokens(self, access: Optional[str], refresh: Optional[str]) -> None:
        if access:
            await self.store.set(ACCESS_KEY, access)
        if refresh:
            await self.store.set(REFRESH_KEY, refresh)

    async def clear_tokens(self) -> None:
        await self.store.delete(ACCESS_KEY)
        await self.store.delete(REFRESH_KEY)

    # =========================================================
    # INTERNAL
    # =========================================================
    async def _send(
        self,
        method: str,
        path: str,
        access: Optional[str],
        json: Any = None,
        files: Any = None,
        params: Any = None,
    ) -> httpx.Response:
        headers = {}
        if access:
            headers["Authorization"] = f"Bearer {access}"
        return await self.http.request(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            json=json,
            files=files,
            params=params,
        )

    async def _refresh(self) -> str:
        refresh_token = await self.store.get(REFRESH_KEY)
        if not refresh_token:
            raise ApiError(401, "Unauthorized")
        resp = await self.http.post(
            f"{self.base_url}/auth/refresh", json={"refreshToken": refresh_token}
        )
        if resp.status_code >= 400:
            logger.warning(f"⚠️ Token refresh failed: {resp.status_code}")
            raise ApiError(401, "Unauthorized")
        data = resp.json()
        await self.set_tokens(data.get("accessToken"), data.get("refreshToken"))
        return data.get("accessToken")

    @staticmethod
    def _raise_for(resp: httpx.Response) -> None:
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        raw = None
        if isinstance(payload, dict):
            raw = payload.get("message") or payload.get("detail")
        message = humanize_messages(raw) or raw or resp.reason_phrase or "Request failed"
        raise ApiError(resp.status_code, str(message), payload)

    @staticmethod
    def _body(resp: httpx.Response) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # =========================================================
    # PUBLIC
    # =========================================================
    async def request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        json: Any = None,
        files: Any = None,
        params: Any = None,
    ) -> Any:
        access = await self.store.get(ACCESS_KEY) if auth else None
        resp = await self._send(method, path, access, json=json, files=files, params=params)

        if resp.status_code == 401 and auth:
            access = await self._refresh()
            resp = await self._send(method, path, access, json=json, files=files, params=params)

        if resp.status_code >= 400:
            self._raise_for(resp)
        return self._body(resp)

    async def login(self, email: str, password: str, device: Optional[str] = None) -> Any:
        data = await self.request(
            "POST",
            "/auth/login",
            auth=False,
            json={"email": email, "password": password, "device": device},
        )
        await self.set_tokens(data.get("accessToken"), data.get("refreshToken"))
        return data

    async def logout(self) -> Any:
        refresh_token = await self.store.get(REFRESH_KEY)
        try:
            return await self.request(
                "POST", "/auth/logout", auth=True, json={"refreshToken": refresh_token}
            )
        finally:
            await self.clear_tokens()

    # ---------------- convenience ----------------
    async def reorder_courses(self, items: list[dict[str, int]]) -> Any:
        return await self.request("PUT", "/courses/reorder/bulk", auth=True, json={"items": items})

    async def upload_avatar(self, filename: str, content: bytes, content_type: str) -> Any:
        return await self.request(
            "POST", "/auth/avatar", auth=True, files={"avatar": (filename, content, content_type)}
        )

    async def remove_avatar(self) -> Any:
        return await self.request("DELETE", "/auth/avatar", auth=True)

    async def set_user_role(self, user_id: int, role: str) -> Any:
        return await self.request(
            "PATCH", f"/management/users/{user_id}/role", auth=True, json={"role": role}
        )

    async def add_enrollment(self, user_id: int, course_id: int) -> Any:
        return await self.request(
            "POST", f"/management/users/{user_id}/enrollments", auth=True, json={"courseId": course_id}
        )

    async def remove_enrollment(self, user_id: int, course_id: int) -> Any:
        return await self.request(
            "DELETE", f"/management/users/{user_id}/enrollments/{course_id}", auth=True
        )
