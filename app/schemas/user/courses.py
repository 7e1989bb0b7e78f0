from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.schemas.base import CamelModel


class LearningOutcomeIn(CamelModel):
    text: str = Field(min_length=1)


class CourseCreate(CamelModel):
    title: str = Field(min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    full_description: Optional[str] = None
    instructor_id: Optional[int] = None
    instructor_email: Optional[EmailStr] = None
    instructor_name: Optional[str] = None
    instructors_ids: Optional[list[int]] = None
    level: Optional[str] = None
    language: Optional[str] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    thumbnail_url: Optional[str] = None
    promo_url: Optional[str] = None
    preview_video_url: Optional[str] = None
    brochure_url: Optional[str] = None
    currency: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    discount_price: Optional[float] = Field(default=None, ge=0)
    show_price: Optional[bool] = None
    price_recorded_egp: Optional[float] = Field(default=None, ge=0)
    price_recorded_usd: Optional[float] = Field(default=None, ge=0)
    price_online_egp: Optional[float] = Field(default=None, ge=0)
    price_online_usd: Optional[float] = Field(default=None, ge=0)
    is_published: Optional[bool] = None
    is_featured: Optional[bool] = None
    categories_ids: Optional[list[int]] = None
    learning_outcomes: Optional[list[LearningOutcomeIn]] = None


class CourseUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    short_description: Optional[str] = None
    full_description: Optional[str] = None
    instructor_id: Optional[int] = None
    level: Optional[str] = None
    language: Optional[str] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    thumbnail_url: Optional[str] = None
    promo_url: Optional[str] = None
    preview_video_url: Optional[str] = None
    brochure_url: Optional[str] = None
    currency: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    discount_price: Optional[float] = Field(default=None, ge=0)
    show_price: Optional[bool] = None
    price_recorded_egp: Optional[float] = Field(default=None, ge=0)
    price_recorded_usd: Optional[float] = Field(default=None, ge=0)
    price_online_egp: Optional[float] = Field(default=None, ge=0)
    price_online_usd: Optional[float] = Field(default=None, ge=0)
    is_published: Optional[bool] = None
    is_featured: Optional[bool] = None
    categories_ids: Optional[list[int]] = None
    learning_outcomes: Optional[list[LearningOutcomeIn]] = None


# Fields an owning instructor may change on their own course
INSTRUCTOR_EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "thumbnail_url",
        "promo_url",
        "language",
        "level",
        "duration_seconds",
    }
)


class ReorderItem(BaseModel):
    id: int
    position: int


class ReorderCourses(BaseModel):
    items: list[ReorderItem] = []


class InstructorSummary(CamelModel):
    id: int
    name: Optional[str] = None
    title: Optional[str] = None
    avatar_url: Optional[str] = None


class CategorySummary(CamelModel):
    id: int
    name: str
    slug: str


class CourseListItem(CamelModel):
    id: int
    slug: str
    title: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    level: Optional[str] = None
    language: Optional[str] = None
    duration_seconds: Optional[int] = None
    currency: Optional[str] = None
    price: Optional[float] = None
    discount_price: Optional[float] = None
    show_price: bool = True
    is_featured: bool = False
    position: int
    published_at: Optional[datetime] = None
    average_rating: float = 0
    rating_count: int = 0
    instructor: Optional[InstructorSummary] = None
    categories: list[CategorySummary] = []


class CourseDetail(CourseListItem):
    full_description: Optional[str] = None
    promo_url: Optional[str] = None
    preview_video_url: Optional[str] = None
    brochure_url: Optional[str] = None
    price_recorded_egp: Optional[float] = None
    price_recorded_usd: Optional[float] = None
    price_online_egp: Optional[float] = None
    price_online_usd: Optional[float] = None
    is_published: bool = True
    students_count: int = 0
    learning_outcomes: list[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MyCourseItem(CourseListItem):
    enrollment_id: int
    enroll_type: str
    progress_pct: int = 0
    enrolled_at: Optional[datetime] = None
