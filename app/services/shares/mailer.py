# app/services/shares/mailer.py
from functools import lru_cache
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import urlencode, urlsplit, urlunsplit

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from loguru import logger
from pydantic import SecretStr

from app.core.settings import settings


class MailerService:
    """System emails (verification, password reset)."""

    def __init__(self):
        base_dir = Path(__file__).resolve().parent.parent.parent  # -> app/
        template_dir = base_dir / "templates" / "emails"

        self.app_name = settings.APP_NAME
        self.conf = ConnectionConfig(
            MAIL_USERNAME=settings.MAIL_USERNAME,
            MAIL_PASSWORD=SecretStr(settings.MAIL_PASSWORD),
            MAIL_FROM=settings.MAIL_FROM,
            MAIL_FROM_NAME=settings.APP_NAME,
            MAIL_PORT=settings.MAIL_PORT,
            MAIL_SERVER=settings.MAIL_SERVER,
            MAIL_STARTTLS=settings.MAIL_TLS,
            MAIL_SSL_TLS=settings.MAIL_SSL,
            USE_CREDENTIALS=bool(settings.MAIL_USERNAME),
            VALIDATE_CERTS=True,
            SUPPRESS_SEND=int(settings.MAIL_SUPPRESS_SEND),
            TEMPLATE_FOLDER=template_dir,
        )
        self.fastmail = FastMail(self.conf)

    async def send_verification_email(self, email: str, name: str, verify_link: str):
        message = MessageSchema(
            subject=f"[{self.app_name}] Verify your email address",
            recipients=[email],
            template_body={
                "name": name or email,
                "verify_link": verify_link,
                "app_name": self.app_name,
                "ttl_minutes": settings.VERIFY_TOKEN_TTL_MINUTES,
            },
            subtype=MessageType.html,
        )
        await self.fastmail.send_message(message, template_name="verify_email.html")
        return {"message": f"Verification email sent to {email}"}

    async def send_reset_password_email(self, email: str, name: str, reset_link: str):
        message = MessageSchema(
            subject=f"[{self.app_name}] Reset your password",
            recipients=[email],
            template_body={
                "name": name or email,
                "reset_link": reset_link,
                "app_name": self.app_name,
                "ttl_minutes": settings.RESET_TOKEN_TTL_MINUTES,
            },
            subtype=MessageType.html,
        )
        await self.fastmail.send_message(message, template_name="reset_password.html")
        return {"message": f"Password reset email sent to {email}"}


@lru_cache(maxsize=1)
def get_mailer_service() -> MailerService:
    """Process-wide mailer: built on first use and reused, no teardown."""
    logger.info("📧 MailerService created")
    return MailerService()


async def dispatch_email(
    send: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
) -> None:
    """Run a mail send as a background task.

    Failures are logged and never reach the HTTP caller.
    """
    try:
        await send(*args, **kwargs)
    except Exception as e:
        logger.error(f"❌ Email send failed ({getattr(send, '__name__', send)}): {e}")


def build_link(base: str, default_path: str, **params: str) -> str:
    """``base`` with ``default_path`` appended when missing, plus query params."""
    parts = urlsplit(base)
    path = parts.path.rstrip("/")
    if not path.endswith(default_path):
        path = f"{path}{default_path}"
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))
