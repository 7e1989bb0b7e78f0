import json

import httpx
import pytest

from app.clients.api_client import ACCESS_KEY, REFRESH_KEY, ApiClient, ApiError, humanize_messages


def make_client(handler) -> ApiClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ApiClient("http://api.test", http=http)


async def test_401_triggers_one_refresh_and_retry():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, request.headers.get("authorization")))
        if request.url.path == "/auth/refresh":
            assert json.loads(request.content) == {"refreshToken": "r1"}
            return httpx.Response(200, json={"accessToken": "a2", "refreshToken": "r2"})
        if request.headers.get("authorization") == "Bearer a2":
            return httpx.Response(200, json={"id": 1})
        return httpx.Response(401, json={"detail": "Unauthorized"})

    client = make_client(handler)
    await client.set_tokens("a1", "r1")

    assert await client.request("GET", "/auth/me", auth=True) == {"id": 1}
    assert [path for path, _ in seen] == ["/auth/me", "/auth/refresh", "/auth/me"]
    assert await client.store.get(ACCESS_KEY) == "a2"
    assert await client.store.get(REFRESH_KEY) == "r2"


async def test_failed_refresh_raises_unauthorized():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(401, json={"detail": "Unauthorized"})

    client = make_client(handler)
    await client.set_tokens("a1", "r1")

    with pytest.raises(ApiError) as exc:
        await client.request("GET", "/auth/me", auth=True)
    assert exc.value.status == 401
    assert calls == ["/auth/me", "/auth/refresh"]


async def test_second_401_is_not_retried_again():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/auth/refresh":
            return httpx.Response(200, json={"accessToken": "a2", "refreshToken": "r2"})
        return httpx.Response(401, json={"detail": "Session invalid"})

    client = make_client(handler)
    await client.set_tokens("a1", "r1")

    with pytest.raises(ApiError) as exc:
        await client.request("GET", "/auth/me", auth=True)
    assert exc.value.message == "Session invalid"
    assert calls == ["/auth/me", "/auth/refresh", "/auth/me"]


async def test_validation_messages_are_humanized():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "statusCode": 400,
                "message": ["email must be an email", "password should not be empty"],
                "error": "Bad Request",
            },
        )

    client = make_client(handler)
    with pytest.raises(ApiError) as exc:
        await client.login("bad", "")
    assert exc.value.status == 400
    assert exc.value.message == "Please enter correct email address.\nPassword should not be empty"


async def test_login_stores_tokens_and_logout_clears_them():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/login":
            return httpx.Response(200, json={"accessToken": "a1", "refreshToken": "r1"})
        assert request.headers["authorization"] == "Bearer a1"
        return httpx.Response(200, json={"message": "Logged out successfully"})

    client = make_client(handler)
    await client.login("a@example.com", "secret-pass-1")
    assert await client.store.get(REFRESH_KEY) == "r1"

    await client.logout()
    assert await client.store.get(ACCESS_KEY) is None
    assert await client.store.get(REFRESH_KEY) is None


def test_humanize_messages_ignores_non_lists():
    assert humanize_messages("plain") is None
    assert humanize_messages(["title must be a string"]) == "title must be a string"


async def test_requests_carry_bearer_by_default():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/login":
            assert "authorization" not in request.headers
            return httpx.Response(200, json={"accessToken": "a1", "refreshToken": "r1"})
        assert request.headers["authorization"] == "Bearer a1"
        return httpx.Response(200, json=[])

    client = make_client(handler)
    await client.login("a@example.com", "secret-pass-1")
    assert await client.request("GET", "/courses/mine") == []
