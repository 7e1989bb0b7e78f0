# app/core/deps.py
from typing import Iterable, Optional

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import get_request
from app.core.enum import UserRole
from app.core.security import SecurityService
from app.db.models.database import Session, User
from app.db.session import get_session
from app.libs.formats.datetime import now as get_now


class Policy:
    """Capability sets consulted by ``AuthorizationService.require_role``."""

    MANAGE: frozenset[str] = frozenset({UserRole.ADMIN.value, UserRole.MANAGER.value})
    TEACH: frozenset[str] = frozenset(
        {UserRole.ADMIN.value, UserRole.MANAGER.value, UserRole.INSTRUCTOR.value}
    )

    @staticmethod
    def allows(user: User, roles: Iterable[str]) -> bool:
        return user.role in set(roles)


def _bearer_token() -> Optional[str]:
    request = get_request()
    header = request.headers.get("authorization") or ""
    if header.lower().startswith("bearer "):
        token = header.split(" ", 1)[1].strip()
        return token or None
    return None


class AuthorizationService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
    ):
        self.db = db
        self.security = security

    # ==============================
    # 🧩 CORE AUTH CHECKS
    # ==============================

    async def get_current_user(self) -> User:
        """Resolve the caller from the bearer token and its server-side session.

        Read-only: nothing about the session or user is written here.
        """
        token = _bearer_token()
        if not token:
            raise HTTPException(status_code=401, detail="Unauthorized")

        try:
            payload = await self.security.decode_access_token(token)
        except ValueError:
            raise HTTPException(status_code=401, detail="Unauthorized")

        sid = payload.get("sid")
        if not sid:
            raise HTTPException(status_code=401, detail="Session missing")

        session = await self.db.get(Session, int(sid))
        if (
            not session
            or session.revoked_at is not None
            or session.refresh_token_exp < get_now()
        ):
            raise HTTPException(status_code=401, detail="Session invalid")

        user = await self.db.get(User, session.user_id)
        if not user or not user.is_active or str(user.id) != str(payload.get("sub")):
            raise HTTPException(status_code=401, detail="User inactive")
        return user

    # ==============================
    # 🧩 ROLE-BASED ACCESS CONTROL
    # ==============================

    async def require_role(self, required_roles: Optional[Iterable[str]] = None) -> User:
        current_user = await self.get_current_user()
        if not required_roles:
            return current_user
        if not Policy.allows(current_user, required_roles):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return current_user
