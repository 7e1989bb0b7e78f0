from datetime import timedelta

from fastapi import BackgroundTasks, Depends, HTTPException, status
from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import desc

from app.core.security import SecurityService
from app.core.settings import settings
from app.db.models.database import EmailVerificationSend, User
from app.db.session import get_session
from app.libs.formats.datetime import now as get_now
from app.services.shares.mailer import (
    MailerService,
    build_link,
    dispatch_email,
    get_mailer_service,
)

GENERIC_MESSAGE = "If the account exists and is not verified, a verification email has been sent."


class EmailVerificationService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
        mail_service: MailerService = Depends(get_mailer_service),
    ):
        self.db = db
        self.security = security
        self.mail_service = mail_service

    async def _check_rate_limit(self, user: User) -> None:
        now = get_now()
        last_sent = (
            await self.db.scalars(
                select(EmailVerificationSend.created_at)
                .where(EmailVerificationSend.user_id == user.id)
                .order_by(desc(EmailVerificationSend.created_at))
                .limit(1)
            )
        ).first()
        cooldown = timedelta(seconds=settings.VERIFY_RESEND_COOLDOWN_SECONDS)
        if last_sent and now - last_sent < cooldown:
            wait = int((cooldown - (now - last_sent)).total_seconds()) + 1
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Please wait {wait}s before requesting another email",
            )

        sent_last_hour = await self.db.scalar(
            select(func.count())
            .select_from(EmailVerificationSend)
            .where(
                EmailVerificationSend.user_id == user.id,
                EmailVerificationSend.created_at >= now - timedelta(hours=1),
            )
        )
        if (sent_last_hour or 0) >= settings.VERIFY_MAX_SENDS_PER_HOUR:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many verification emails requested, try again later",
            )

    async def request_async(self, email: str, background_tasks: BackgroundTasks) -> dict[str, str]:
        """Issue a fresh verification token and mail it.

        Unknown and already verified addresses get the same answer, so the
        endpoint cannot be used to probe which emails are registered.
        """
        try:
            user = await self.db.scalar(select(User).where(User.email == email.strip().lower()))
            if not user or user.is_email_verified:
                return {"message": GENERIC_MESSAGE}

            await self._check_rate_limit(user)

            token = self.security.random_token()
            user.verification_token_hash = self.security.hash_token(token)
            user.verification_token_expires_at = get_now() + timedelta(
                minutes=settings.VERIFY_TOKEN_TTL_MINUTES
            )
            self.db.add(EmailVerificationSend(user_id=user.id, email=user.email))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        base = settings.VERIFY_EMAIL_URL or settings.FRONTEND_URL
        link = build_link(base, "/verify-email", email=user.email, token=token)
        background_tasks.add_task(
            dispatch_email,
            self.mail_service.send_verification_email,
            user.email,
            user.name or "",
            link,
        )
        logger.info(f"✉ Verification email queued for user {user.id}")
        return {"message": GENERIC_MESSAGE}

    async def verify_async(self, email: str, token: str) -> dict[str, bool]:
        try:
            user = await self.db.scalar(select(User).where(User.email == email.strip().lower()))
            if (
                not user
                or not self.security.token_matches(token, user.verification_token_hash)
                or not user.verification_token_expires_at
                or user.verification_token_expires_at < get_now()
            ):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid or expired token",
                )
            user.is_email_verified = True
            user.email_verified_at = get_now()
            user.verification_token_hash = None
            user.verification_token_expires_at = None
            await self.db.commit()
            logger.success(f"✔ Email verified for user {user.id}")
            return {"success": True}
        except Exception:
            await self.db.rollback()
            raise

    async def confirm_async(self, email: str | None, token: str | None) -> dict[str, bool]:
        if not email or not token:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="email and token are required",
            )
        try:
            return await self.verify_async(email, token)
        except HTTPException as e:
            if e.status_code == status.HTTP_400_BAD_REQUEST:
                return {"success": False}
            raise

    async def purge_send_log_async(self, older_than: timedelta = timedelta(days=1)) -> int:
        try:
            result = await self.db.execute(
                delete(EmailVerificationSend).where(
                    EmailVerificationSend.created_at < get_now() - older_than
                )
            )
            await self.db.commit()
            return int(result.rowcount or 0)
        except Exception:
            await self.db.rollback()
            raise
