from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote

from fastapi import Depends, HTTPException, status
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.expression import asc, desc

from app.db.models.database import (
    Course,
    CourseCategory,
    CourseInstructor,
    Enrollment,
)
from app.db.session import get_session
from app.schemas.user.courses import CourseDetail, CourseListItem
from app.services.shares.upload import PUBLIC_PREFIX, public_url_to_path, upload_root

DEFAULT_TAKE = 20
MAX_TAKE = 50

CATALOG_ORDER = (
    asc(Course.position),
    desc(Course.published_at).nulls_last(),
    desc(Course.id),
)


def clamp_take(raw: Optional[str | int]) -> int:
    try:
        value = int(raw) if raw is not None and str(raw).strip() else DEFAULT_TAKE
    except (TypeError, ValueError):
        value = DEFAULT_TAKE
    return min(max(value, 1), MAX_TAKE)


def parse_int_list(raw: Optional[str]) -> list[int]:
    ids: list[int] = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.append(int(part))
    return ids


def course_load_options():
    return (
        selectinload(Course.instructor),
        selectinload(Course.course_categories).selectinload(CourseCategory.category),
    )


def serialize_course(course: Course) -> dict[str, Any]:
    return CourseListItem.model_validate(course).model_dump(by_alias=True, mode="json")


class CourseService:
    """Public catalog reads."""

    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def list_async(
        self,
        take: Optional[str | int] = None,
        cursor: Optional[str | int] = None,
        category_ids: Optional[str] = None,
        instructor_id: Optional[str | int] = None,
    ) -> dict[str, Any]:
        limit = clamp_take(take)
        stmt = select(Course).where(Course.is_published.is_(True))

        instructor = None
        if instructor_id is not None and str(instructor_id).strip().isdigit():
            instructor = int(instructor_id)
        if instructor:
            co_taught = select(CourseInstructor.course_id).where(
                CourseInstructor.user_id == instructor
            )
            stmt = stmt.where(
                or_(Course.instructor_id == instructor, Course.id.in_(co_taught))
            )

        categories = parse_int_list(category_ids)
        if categories:
            in_categories = select(CourseCategory.course_id).where(
                CourseCategory.category_id.in_(categories)
            )
            stmt = stmt.where(Course.id.in_(in_categories))

        if cursor is not None and str(cursor).strip().isdigit():
            anchor = await self.db.get(Course, int(cursor))
            if not anchor:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid cursor"
                )
            stmt = stmt.where(self._after(anchor))

        stmt = stmt.options(*course_load_options()).order_by(*CATALOG_ORDER).limit(limit + 1)
        rows = list((await self.db.scalars(stmt)).all())
        has_more = len(rows) > limit
        rows = rows[:limit]
        return {
            "data": [serialize_course(c) for c in rows],
            "nextCursor": rows[-1].id if has_more and rows else None,
        }

    @staticmethod
    def _after(anchor: Course):
        """Rows strictly after ``anchor`` in catalog order
        (position asc, published_at desc nulls last, id desc)."""
        same_position = Course.position == anchor.position
        if anchor.published_at is None:
            tail = and_(same_position, Course.published_at.is_(None), Course.id < anchor.id)
            return or_(Course.position > anchor.position, tail)
        return or_(
            Course.position > anchor.position,
            and_(same_position, Course.published_at < anchor.published_at),
            and_(same_position, Course.published_at.is_(None)),
            and_(
                same_position,
                Course.published_at == anchor.published_at,
                Course.id < anchor.id,
            ),
        )

    async def get_by_slug_async(self, slug: str, published_only: bool = True) -> dict[str, Any]:
        stmt = (
            select(Course)
            .where(Course.slug == slug)
            .options(*course_load_options(), selectinload(Course.learning_outcomes))
        )
        course = await self.db.scalar(stmt)
        if not course or (published_only and not course.is_published):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")

        students = await self.db.scalar(
            select(func.count()).select_from(Enrollment).where(Enrollment.course_id == course.id)
        )
        base = serialize_course(course)
        detail = CourseDetail.model_validate(
            {
                **base,
                "full_description": course.full_description,
                "promo_url": course.promo_url,
                "preview_video_url": course.preview_video_url,
                "brochure_url": course.brochure_url,
                "price_recorded_egp": course.price_recorded_egp,
                "price_recorded_usd": course.price_recorded_usd,
                "price_online_egp": course.price_online_egp,
                "price_online_usd": course.price_online_usd,
                "is_published": course.is_published,
                "students_count": int(students or 0),
                "learning_outcomes": [o.text for o in course.learning_outcomes],
                "created_at": course.created_at,
                "updated_at": course.updated_at,
            }
        )
        return detail.model_dump(by_alias=True, mode="json")

    async def get_model_by_slug_async(self, slug: str) -> Course:
        course = await self.db.scalar(select(Course).where(Course.slug == slug))
        if not course:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
        return course

    # ==============================
    # BROCHURE
    # ==============================

    async def brochure_path_async(self, slug: str) -> tuple[Path, str]:
        course = await self.get_model_by_slug_async(slug)
        if not course.brochure_url:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="No brochure for this course"
            )
        path = public_url_to_path(course.brochure_url)
        if path is None or not path.is_file():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Brochure file not found"
            )
        return path, unquote(course.brochure_url.rsplit("/", 1)[-1]) or "brochure.pdf"

    async def brochure_data_async(self, slug: str) -> dict[str, Any]:
        path, file_name = await self.brochure_path_async(slug)
        return {
            "slug": slug,
            "url": f"{PUBLIC_PREFIX}/{path.relative_to(upload_root()).as_posix()}",
            "fileName": file_name,
            "size": path.stat().st_size,
            "contentType": "application/pdf",
        }
