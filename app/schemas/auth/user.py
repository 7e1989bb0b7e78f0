from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, EmailStr, Field, field_validator
from pydantic_core import PydanticCustomError

from app.core.settings import settings
from app.schemas.base import CamelModel

BCRYPT_MAX_BYTES = 72


def _fits_bcrypt(v: str) -> str:
    # bcrypt only looks at the first 72 bytes and newer releases reject longer input
    if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise PydanticCustomError(
            "password_too_long",
            "must be shorter than or equal to {max_bytes} bytes",
            {"max_bytes": BCRYPT_MAX_BYTES},
        )
    return v


Password = Annotated[
    str,
    Field(min_length=settings.PASSWORD_MIN_LENGTH, max_length=BCRYPT_MAX_BYTES),
    AfterValidator(_fits_bcrypt),
]


class UserCreate(CamelModel):
    email: EmailStr
    password: Password
    name: Optional[str] = None
    title: Optional[str] = None
    role: Optional[Literal["TRAINEE", "INSTRUCTOR", "ADMIN"]] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginUser(CamelModel):
    email: EmailStr
    password: str
    device: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class RefreshTokenIn(CamelModel):
    refresh_token: str = Field(min_length=1)


class LogoutIn(CamelModel):
    refresh_token: Optional[str] = None


class GoogleLogin(CamelModel):
    id_token: str = Field(min_length=1)
    device: Optional[str] = None


class ForgotPassword(CamelModel):
    email: EmailStr


class ResetPassword(CamelModel):
    email: EmailStr
    token: str = Field(min_length=1)
    password: Password


class ChangePassword(CamelModel):
    current_password: str
    new_password: Password


class UserOut(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    title: Optional[str] = None
    role: str
    avatar_url: Optional[str] = None
    is_email_verified: bool
    email_verified_at: Optional[datetime] = None
    provider: str
    login_count: int
    last_login_at: Optional[datetime] = None
    is_logged_in: bool
    is_active: bool
    created_at: datetime


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str


class LoginOut(TokenPair):
    user: UserOut
