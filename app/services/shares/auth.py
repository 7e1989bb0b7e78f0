from __future__ import annotations

from datetime import timedelta
from typing import Any

from fastapi import BackgroundTasks, Depends, HTTPException, Request, UploadFile, status
from google.auth.transport import requests
from google.oauth2 import id_token
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import get_client_ip
from app.core.enum import AuthProvider, FileType, UserRole
from app.core.security import SecurityService
from app.core.settings import settings
from app.db.models.database import User
from app.db.session import get_session
from app.libs.formats.datetime import now as get_now
from app.schemas.auth.user import (
    ChangePassword,
    ForgotPassword,
    GoogleLogin,
    LoginUser,
    ResetPassword,
    UserCreate,
    UserOut,
)
from app.services.shares.mailer import (
    MailerService,
    build_link,
    dispatch_email,
    get_mailer_service,
)
from app.services.shares.session import SessionService
from app.services.shares.upload import AVATAR_MAX_BYTES, IMAGE_TYPES, LocalUploadService


def format_user(user: User) -> dict[str, Any]:
    return UserOut.model_validate(user).model_dump(by_alias=True, mode="json")


class AuthService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
        sessions: SessionService = Depends(SessionService),
        mail_service: MailerService = Depends(get_mailer_service),
        uploads: LocalUploadService = Depends(LocalUploadService),
    ):
        self.db = db
        self.security = security
        self.sessions = sessions
        self.mail_service = mail_service
        self.uploads = uploads

    async def _get_by_email(self, email: str) -> User | None:
        return await self.db.scalar(select(User).where(User.email == email.strip().lower()))

    async def register_async(self, schema: UserCreate) -> dict[str, Any]:
        try:
            existing_id = await self.db.scalar(select(User.id).where(User.email == schema.email))
            if existing_id:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Email is already registered",
                )
            user = User(
                email=schema.email,
                password_hash=await self.security.hash_password(schema.password),
                name=schema.name,
                title=schema.title,
                role=schema.role or UserRole.TRAINEE.value,
                provider=AuthProvider.LOCAL.value,
            )
            self.db.add(user)
            await self.db.commit()
            logger.info(f"🆕 Registered user {user.id} <{user.email}>")
            return format_user(user)
        except Exception:
            await self.db.rollback()
            raise

    async def login_async(self, schema: LoginUser, request: Request) -> dict[str, Any]:
        user = await self._get_by_email(schema.email)
        if (
            not user
            or not user.is_active
            or not await self.security.verify_password(schema.password, user.password_hash)
        ):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Invalid credentials"
            )
        return await self._open_session_async(user, request, schema.device)

    async def _open_session_async(
        self, user: User, request: Request, device: str | None
    ) -> dict[str, Any]:
        tokens = await self.sessions.create_session_async(
            user,
            user_agent=request.headers.get("user-agent"),
            ip=get_client_ip(request),
            device=device,
        )
        await self.sessions.record_login_async(user)
        logger.info(f"🔑 User {user.id} logged in (device={device or '-'})")
        return {**tokens, "user": format_user(user)}

    # ==============================
    # GOOGLE
    # ==============================

    def _verify_google_token(self, token: str) -> dict[str, Any]:
        audiences = settings.google_client_ids
        if not audiences:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Google sign-in is not configured",
            )
        for audience in audiences:
            try:
                return id_token.verify_oauth2_token(token, requests.Request(), audience)
            except ValueError:
                continue
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Google token"
        )

    async def login_google_async(self, schema: GoogleLogin, request: Request) -> dict[str, Any]:
        info = self._verify_google_token(schema.id_token)
        google_uid = info.get("sub")
        email = (info.get("email") or "").strip().lower()
        if not google_uid or not email:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Google account has no email",
            )

        try:
            user = await self.db.scalar(select(User).where(User.google_id == google_uid))
            if not user:
                user = await self._get_by_email(email)
            if not user:
                user = User(
                    email=email,
                    name=info.get("name"),
                    password_hash=await self.security.hash_password(
                        self.security.random_token(16)
                    ),
                    role=UserRole.TRAINEE.value,
                    is_email_verified=True,
                    email_verified_at=get_now(),
                    is_active=True,
                )
                self.db.add(user)
            if not user.is_active:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN, detail="Invalid credentials"
                )
            user.google_id = google_uid
            user.google_picture = info.get("picture")
            user.provider = AuthProvider.GOOGLE.value
            if info.get("email_verified") and not user.is_email_verified:
                user.is_email_verified = True
                user.email_verified_at = get_now()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self._open_session_async(user, request, schema.device or "google")

    # ==============================
    # PROFILE
    # ==============================

    async def me_async(self, user: User) -> dict[str, Any]:
        return format_user(user)

    async def upload_avatar_async(self, user: User, file: UploadFile) -> dict[str, Any]:
        url = await self.uploads.save_async(
            file, FileType.AVATARS, IMAGE_TYPES, AVATAR_MAX_BYTES, prefix=str(user.id)
        )
        try:
            previous = user.avatar_url
            user.avatar_url = url
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.uploads.remove_async(previous, FileType.AVATARS)
        return format_user(user)

    async def delete_avatar_async(self, user: User) -> dict[str, Any]:
        try:
            previous = user.avatar_url
            user.avatar_url = None
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.uploads.remove_async(previous, FileType.AVATARS)
        return format_user(user)

    # ==============================
    # PASSWORDS
    # ==============================

    async def forgot_password_async(
        self, schema: ForgotPassword, background_tasks: BackgroundTasks
    ) -> dict[str, str]:
        try:
            user = await self._get_by_email(schema.email)
            if not user:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
                )
            token = self.security.random_token()
            user.password_reset_token = self.security.hash_token(token)
            user.password_reset_expires_at = get_now() + timedelta(
                minutes=settings.RESET_TOKEN_TTL_MINUTES
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        base = settings.RESET_PASSWORD_URL or settings.FRONTEND_URL
        link = build_link(base, "/reset-password", email=user.email, token=token)
        background_tasks.add_task(
            dispatch_email,
            self.mail_service.send_reset_password_email,
            user.email,
            user.name or "",
            link,
        )
        return {"message": "Password reset email sent"}

    async def reset_password_async(self, schema: ResetPassword) -> dict[str, str]:
        try:
            user = await self._get_by_email(schema.email)
            if (
                not user
                or not self.security.token_matches(schema.token, user.password_reset_token)
                or not user.password_reset_expires_at
                or user.password_reset_expires_at < get_now()
            ):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid or expired token",
                )
            user.password_hash = await self.security.hash_password(schema.password)
            user.password_reset_token = None
            user.password_reset_expires_at = None
            user.is_logged_in = False
            await self.sessions.drop_all_for_user_async(user.id)
            await self.db.commit()
            return {"message": "Password has been reset"}
        except Exception:
            await self.db.rollback()
            raise

    async def change_password_async(self, user: User, schema: ChangePassword) -> dict[str, str]:
        try:
            if not await self.security.verify_password(schema.current_password, user.password_hash):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Current password is incorrect",
                )
            user.password_hash = await self.security.hash_password(schema.new_password)
            user.is_logged_in = False
            await self.sessions.drop_all_for_user_async(user.id)
            await self.db.commit()
            return {"message": "Password changed"}
        except Exception:
            await self.db.rollback()
            raise
