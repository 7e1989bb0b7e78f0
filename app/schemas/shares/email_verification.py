from pydantic import BaseModel, EmailStr, Field


class EmailIn(BaseModel):
    email: EmailStr


class VerifyEmailIn(BaseModel):
    email: EmailStr
    token: str = Field(min_length=1)
