from typing import Any

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enum import EnrollmentStatus
from app.db.models.database import Course, CourseCategory, Enrollment
from app.db.session import get_session
from app.schemas.user.courses import CourseListItem, MyCourseItem
from app.services.user.courses import CATALOG_ORDER


class CourseEnrolls:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def get_user_courses_async(self, user_id: int) -> dict[str, Any]:
        """Published courses the user holds an ACTIVE enrollment in, in catalog order."""
        stmt = (
            select(Enrollment)
            .join(Course, Course.id == Enrollment.course_id)
            .where(
                Enrollment.user_id == user_id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
                Course.is_published.is_(True),
            )
            .options(
                selectinload(Enrollment.course).selectinload(Course.instructor),
                selectinload(Enrollment.course)
                .selectinload(Course.course_categories)
                .selectinload(CourseCategory.category),
            )
            .order_by(*CATALOG_ORDER)
        )
        enrollments = (await self.db.scalars(stmt)).all()

        data = []
        for enrollment in enrollments:
            course = CourseListItem.model_validate(enrollment.course).model_dump()
            item = MyCourseItem.model_validate(
                {
                    **course,
                    "enrollment_id": enrollment.id,
                    "enroll_type": enrollment.enroll_type,
                    "progress_pct": enrollment.progress_pct or 0,
                    "enrolled_at": enrollment.created_at,
                }
            )
            data.append(item.model_dump(by_alias=True, mode="json"))
        return {"data": data}
