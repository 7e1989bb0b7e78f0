from fastapi import Depends, HTTPException, status
from loguru import logger
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import SecurityService
from app.db.models.database import Session, User
from app.db.session import get_session
from app.libs.formats.datetime import now as get_now

# Stored until the signed refresh token (which embeds the session id) exists
_PENDING_HASH = "pending"


class SessionService:
    """Server-side sessions backing the access/refresh token pair.

    Every access token carries the ``sid`` of a row in ``sessions``; revoking
    that row is what makes both tokens unusable before they expire.
    """

    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
    ):
        self.db = db
        self.security = security

    async def create_session_async(
        self,
        user: User,
        user_agent: str | None = None,
        ip: str | None = None,
        device: str | None = None,
    ) -> dict[str, str]:
        try:
            jti = self.security.new_jti()
            session = Session(
                user_id=user.id,
                refresh_token_hash=_PENDING_HASH,
                refresh_token_exp=self.security.refresh_expiry(get_now()),
                jti=jti,
                user_agent=user_agent,
                ip=ip,
                device=device,
            )
            self.db.add(session)
            await self.db.flush()

            access_token = await self.security.create_access_token(
                user.id, session.id, user.email, user.role
            )
            refresh_token = await self.security.create_refresh_token(
                user.id, session.id, jti
            )
            session.refresh_token_hash = self.security.hash_token(refresh_token)
            await self.db.commit()
            return {"accessToken": access_token, "refreshToken": refresh_token}
        except Exception:
            await self.db.rollback()
            raise

    async def record_login_async(self, user: User) -> User:
        try:
            user.login_count = (user.login_count or 0) + 1
            user.last_login_at = get_now()
            user.is_logged_in = True
            await self.db.commit()
            return user
        except Exception:
            await self.db.rollback()
            raise

    async def refresh_async(self, refresh_token: str) -> dict[str, str]:
        try:
            try:
                payload = await self.security.decode_refresh_token(refresh_token)
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid refresh token",
                )

            sid = payload.get("sid")
            session = await self.db.get(Session, int(sid)) if sid else None
            if (
                not session
                or session.revoked_at is not None
                or session.refresh_token_exp < get_now()
            ):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED, detail="Session invalid"
                )
            if str(session.user_id) != str(payload.get("sub")):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid refresh token",
                )
            if not self.security.token_matches(refresh_token, session.refresh_token_hash):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid refresh token",
                )

            user = await self.db.get(User, session.user_id)
            if not user or not user.is_active:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive"
                )

            # rotate: the stored hash is replaced, the previous refresh token stops matching
            access_token = await self.security.create_access_token(
                user.id, session.id, user.email, user.role
            )
            session.jti = self.security.new_jti()
            new_refresh = await self.security.create_refresh_token(
                user.id, session.id, session.jti
            )
            session.refresh_token_hash = self.security.hash_token(new_refresh)
            session.refresh_token_exp = self.security.refresh_expiry(get_now())
            await self.db.commit()
            return {"accessToken": access_token, "refreshToken": new_refresh}
        except Exception:
            await self.db.rollback()
            raise

    async def logout_async(self, user: User, refresh_token: str | None) -> dict[str, str]:
        try:
            if not refresh_token:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Refresh token required.",
                )
            try:
                payload = await self.security.decode_refresh_token(refresh_token)
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid refresh token",
                )
            if str(payload.get("sub")) != str(user.id):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Token/user mismatch",
                )

            sid = payload.get("sid")
            session = await self.db.get(Session, int(sid)) if sid else None
            if session and session.user_id == user.id and session.revoked_at is None:
                session.revoked_at = get_now()
                await self.db.flush()

            if await self.count_live_sessions_async(user.id) == 0:
                user.is_logged_in = False
            await self.db.commit()
            logger.info(f"👋 User {user.id} logged out (session {sid})")
            return {"message": "Logged out successfully"}
        except Exception:
            await self.db.rollback()
            raise

    async def count_live_sessions_async(self, user_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(Session)
            .where(
                Session.user_id == user_id,
                Session.revoked_at.is_(None),
                Session.refresh_token_exp > get_now(),
            )
        )
        return int(await self.db.scalar(stmt) or 0)

    async def drop_all_for_user_async(self, user_id: int) -> None:
        """Delete every session of a user. The caller commits."""
        await self.db.execute(delete(Session).where(Session.user_id == user_id))

    async def purge_stale_async(self) -> int:
        """Delete revoked or expired sessions. Returns the number removed."""
        try:
            result = await self.db.execute(
                delete(Session).where(
                    or_(Session.revoked_at.is_not(None), Session.refresh_token_exp < get_now())
                )
            )
            await self.db.commit()
            return int(result.rowcount or 0)
        except Exception:
            await self.db.rollback()
            raise
