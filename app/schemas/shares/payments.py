from datetime import datetime
from typing import Optional

from pydantic import Field

from app.core.enum import EnrollType
from app.schemas.base import CamelModel


class CheckoutIn(CamelModel):
    course_id: int = Field(ge=1)
    enroll_type: EnrollType
    selected_start_date: Optional[datetime] = None


class CheckoutOut(CamelModel):
    checkout_url: str
    payment_id: int
    provider_order_id: Optional[str] = None
