from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.base import CamelModel


class SetRole(BaseModel):
    role: Literal["TRAINEE", "INSTRUCTOR", "ADMIN", "MANAGER"]


class AddEnrollment(CamelModel):
    course_id: int = Field(ge=1)
