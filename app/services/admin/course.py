import time
from typing import Any

from fastapi import Depends, HTTPException, status
from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import Policy
from app.core.enum import UserRole
from app.core.security import SecurityService
from app.db.models.database import (
    Category,
    Course,
    CourseCategory,
    CourseInstructor,
    CourseLearningOutcome,
    Enrollment,
    User,
)
from app.db.session import get_session
from app.libs.formats.datetime import now as get_now
from app.libs.formats.text import generate_slug
from app.schemas.user.courses import (
    INSTRUCTOR_EDITABLE_FIELDS,
    CourseCreate,
    CourseUpdate,
    ReorderItem,
)

# Relation helpers that never map straight onto Course columns
_RELATION_FIELDS = {"categories_ids", "learning_outcomes", "instructors_ids"}
_CREATE_MANAGED_FIELDS = {
    "slug",
    "instructor_id",
    "instructor_email",
    "instructor_name",
    "is_published",
    "currency",
    "price",
    "show_price",
}


def course_row(course: Course) -> dict[str, Any]:
    return {
        "id": course.id,
        "slug": course.slug,
        "title": course.title,
        "instructorId": course.instructor_id,
        "isPublished": course.is_published,
        "publishedAt": course.published_at.isoformat() if course.published_at else None,
        "position": course.position,
    }


class CourseAdminService:
    """Course writes: create, update, reorder, delete."""

    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
    ):
        self.db = db
        self.security = security

    # ==============================
    # HELPERS
    # ==============================

    async def _resolve_instructor(self, schema: CourseCreate) -> int:
        if schema.instructor_id:
            instructor = await self.db.get(User, schema.instructor_id)
            if not instructor:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Instructor not found",
                )
            return instructor.id

        if schema.instructor_email:
            email = schema.instructor_email.strip().lower()
            existing = await self.db.scalar(select(User).where(User.email == email))
            if existing:
                return existing.id
            created = User(
                email=email,
                name=schema.instructor_name or email.split("@")[0],
                role=UserRole.INSTRUCTOR.value,
                password_hash=await self.security.hash_password(self.security.random_token(16)),
                is_email_verified=True,
                email_verified_at=get_now(),
                is_active=True,
            )
            self.db.add(created)
            await self.db.flush()
            logger.info(f"👤 Created instructor {created.id} <{email}> for new course")
            return created.id

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="instructorId or instructorEmail is required",
        )

    async def _unique_slug(self, raw: str) -> str:
        base = generate_slug(raw) or f"course-{int(time.time() * 1000)}"
        slug, suffix = base, 1
        while await self.db.scalar(select(Course.id).where(Course.slug == slug)):
            suffix += 1
            slug = f"{base}-{suffix}"
        return slug

    async def _replace_categories(self, course_id: int, ids: list[int]) -> None:
        await self.db.execute(delete(CourseCategory).where(CourseCategory.course_id == course_id))
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return
        valid = (await self.db.scalars(select(Category.id).where(Category.id.in_(unique_ids)))).all()
        for category_id in valid:
            self.db.add(CourseCategory(course_id=course_id, category_id=category_id))

    async def _replace_outcomes(self, course_id: int, texts: list[str]) -> None:
        await self.db.execute(
            delete(CourseLearningOutcome).where(CourseLearningOutcome.course_id == course_id)
        )
        clean = [t.strip() for t in texts if t and t.strip()]
        for idx, text in enumerate(clean, start=1):
            self.db.add(CourseLearningOutcome(course_id=course_id, text=text, position=idx))

    # ==============================
    # CREATE
    # ==============================

    async def create_async(self, schema: CourseCreate) -> dict[str, Any]:
        try:
            instructor_id = await self._resolve_instructor(schema)
            total = await self.db.scalar(select(func.count()).select_from(Course))
            is_published = True if schema.is_published is None else schema.is_published

            values = schema.model_dump(
                exclude_unset=True,
                exclude=_RELATION_FIELDS | _CREATE_MANAGED_FIELDS,
            )
            course = Course(
                **values,
                slug=await self._unique_slug(schema.slug or schema.title),
                instructor_id=instructor_id,
                currency=schema.currency or "EGP",
                price=schema.price if schema.price is not None else 0,
                show_price=True if schema.show_price is None else schema.show_price,
                is_published=is_published,
                published_at=get_now() if is_published else None,
                position=int(total or 0) + 1,
                average_rating=5,
                rating_count=0,
            )
            self.db.add(course)
            await self.db.flush()

            for user_id in sorted(set(schema.instructors_ids or []) - {instructor_id}):
                co = await self.db.get(User, user_id)
                if co and co.role == UserRole.INSTRUCTOR.value:
                    self.db.add(CourseInstructor(course_id=course.id, user_id=user_id))

            if schema.categories_ids:
                await self._replace_categories(course.id, schema.categories_ids)
            if schema.learning_outcomes:
                await self._replace_outcomes(course.id, [o.text for o in schema.learning_outcomes])

            await self.db.commit()
            logger.success(f"📚 Course {course.id} '{course.slug}' created at position {course.position}")
            return course_row(course)
        except Exception:
            await self.db.rollback()
            raise

    # ==============================
    # UPDATE
    # ==============================

    async def update_async(self, slug: str, schema: CourseUpdate, user: User) -> dict[str, Any]:
        try:
            course = await self.db.scalar(select(Course).where(Course.slug == slug))
            if not course:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")

            is_manager = Policy.allows(user, Policy.MANAGE)
            is_owner = user.role == UserRole.INSTRUCTOR.value and course.instructor_id == user.id
            if not is_manager and not is_owner:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")

            changes = schema.model_dump(exclude_unset=True, exclude=_RELATION_FIELDS)
            if not is_manager:
                changes = {k: v for k, v in changes.items() if k in INSTRUCTOR_EDITABLE_FIELDS}
            elif "is_published" in changes:
                if changes["is_published"] and not course.is_published:
                    course.published_at = get_now()
                elif not changes["is_published"]:
                    course.published_at = None

            for field, value in changes.items():
                setattr(course, field, value)

            if is_manager and schema.categories_ids is not None:
                await self._replace_categories(course.id, schema.categories_ids)
            if is_manager and schema.learning_outcomes is not None:
                await self._replace_outcomes(course.id, [o.text for o in schema.learning_outcomes])

            await self.db.commit()
            return course_row(course)
        except Exception:
            await self.db.rollback()
            raise

    # ==============================
    # REORDER / DELETE
    # ==============================

    async def reorder_async(self, items: list[ReorderItem]) -> dict[str, bool]:
        """Sort by requested position and reassign 1..n in one transaction."""
        valid = sorted(
            (item for item in items if item.position >= 1),
            key=lambda item: item.position,
        )
        if not valid:
            return {"ok": True}
        try:
            for idx, item in enumerate(valid, start=1):
                await self.db.execute(
                    update(Course).where(Course.id == item.id).values(position=idx)
                )
            await self.db.commit()
            return {"ok": True}
        except Exception:
            await self.db.rollback()
            raise

    async def delete_async(self, slug: str) -> dict[str, Any]:
        try:
            course_id = await self.db.scalar(select(Course.id).where(Course.slug == slug))
            if not course_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
            await self.db.execute(delete(Enrollment).where(Enrollment.course_id == course_id))
            await self.db.execute(delete(CourseCategory).where(CourseCategory.course_id == course_id))
            await self.db.execute(delete(CourseInstructor).where(CourseInstructor.course_id == course_id))
            await self.db.execute(
                delete(CourseLearningOutcome).where(CourseLearningOutcome.course_id == course_id)
            )
            await self.db.execute(delete(Course).where(Course.id == course_id))
            await self.db.commit()
            logger.info(f"🗑 Course {course_id} '{slug}' deleted")
            return {"ok": True, "id": course_id}
        except Exception:
            await self.db.rollback()
            raise
