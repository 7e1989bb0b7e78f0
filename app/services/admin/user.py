from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi_pagination import Params
from fastapi_pagination.ext.sqlalchemy import paginate
from loguru import logger
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.expression import asc, desc

from app.core.enum import EnrollmentStatus, EnrollType
from app.db.models.database import Course, Enrollment, Session, User
from app.db.session import get_session
from app.services.shares.auth import format_user


def enrollment_row(enrollment: Enrollment) -> dict[str, Any]:
    course = enrollment.course
    return {
        "id": enrollment.id,
        "courseId": enrollment.course_id,
        "status": enrollment.status,
        "enrollType": enrollment.enroll_type,
        "currency": enrollment.currency,
        "priceCents": enrollment.price_cents,
        "progressPct": enrollment.progress_pct,
        "selectedStartDate": (
            enrollment.selected_start_date.isoformat() if enrollment.selected_start_date else None
        ),
        "createdAt": enrollment.created_at.isoformat() if enrollment.created_at else None,
        "course": (
            {"id": course.id, "slug": course.slug, "title": course.title} if course else None
        ),
    }


class ManagementService:
    """User, role and enrollment administration for ADMIN/MANAGER."""

    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def _get_user_or_400(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User not found")
        return user

    # ==============================
    # USERS
    # ==============================

    async def list_users_async(
        self,
        params: Params,
        search: Optional[str] = None,
        role: Optional[str] = None,
    ):
        stmt = select(User).order_by(desc(User.created_at), desc(User.id))
        if search:
            term = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(func.lower(User.email).like(term), func.lower(User.name).like(term))
            )
        if role:
            stmt = stmt.where(User.role == role.upper())
        return await paginate(
            self.db,
            stmt,
            params=params,
            transformer=lambda users: [format_user(u) for u in users],
        )

    async def get_user_async(self, user_id: int) -> dict[str, Any]:
        user = await self._get_user_or_400(user_id)
        enrollments = (
            await self.db.scalars(
                select(Enrollment)
                .where(Enrollment.user_id == user_id)
                .options(selectinload(Enrollment.course))
                .order_by(desc(Enrollment.created_at))
            )
        ).all()
        return {**format_user(user), "enrollments": [enrollment_row(e) for e in enrollments]}

    async def set_role_async(self, user_id: int, role: str) -> dict[str, Any]:
        try:
            user = await self._get_user_or_400(user_id)
            user.role = role
            await self.db.commit()
            logger.info(f"🛡 User {user_id} role set to {role}")
            return format_user(user)
        except Exception:
            await self.db.rollback()
            raise

    async def delete_user_async(self, user_id: int) -> dict[str, Any]:
        try:
            await self._get_user_or_400(user_id)
            await self.db.execute(delete(Enrollment).where(Enrollment.user_id == user_id))
            await self.db.execute(delete(Session).where(Session.user_id == user_id))
            await self.db.execute(delete(User).where(User.id == user_id))
            await self.db.commit()
            logger.info(f"🗑 User {user_id} deleted")
            return {"ok": True, "id": user_id}
        except Exception:
            await self.db.rollback()
            raise

    # ==============================
    # ENROLLMENTS
    # ==============================

    async def add_enrollment_async(self, user_id: int, course_id: int) -> dict[str, Any]:
        try:
            await self._get_user_or_400(user_id)
            course = await self.db.get(Course, course_id)
            if not course:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Course not found")

            existing = await self.db.scalar(
                select(Enrollment).where(
                    Enrollment.user_id == user_id, Enrollment.course_id == course_id
                )
            )
            if existing:
                return {"ok": True, "alreadyEnrolled": True, "enrollmentId": existing.id}

            enrollment = Enrollment(
                user_id=user_id,
                course_id=course_id,
                status=EnrollmentStatus.ACTIVE.value,
                enroll_type=EnrollType.RECORDED.value,
            )
            self.db.add(enrollment)
            await self.db.commit()
            return {"ok": True, "alreadyEnrolled": False, "enrollmentId": enrollment.id}
        except IntegrityError:
            # a concurrent insert won the unique (user_id, course_id) race
            await self.db.rollback()
            return {"ok": True, "alreadyEnrolled": True}
        except Exception:
            await self.db.rollback()
            raise

    async def remove_enrollment_async(self, user_id: int, course_id: int) -> dict[str, Any]:
        try:
            result = await self.db.execute(
                delete(Enrollment).where(
                    Enrollment.user_id == user_id, Enrollment.course_id == course_id
                )
            )
            await self.db.commit()
            return {"ok": True, "removed": int(result.rowcount or 0)}
        except Exception:
            await self.db.rollback()
            raise

    # ==============================
    # COURSES
    # ==============================

    async def list_courses_async(self) -> list[dict[str, Any]]:
        enroll_count = (
            select(func.count(Enrollment.id))
            .where(Enrollment.course_id == Course.id)
            .correlate(Course)
            .scalar_subquery()
        )
        stmt = (
            select(Course.id, Course.slug, Course.title, Course.position, enroll_count.label("enroll_count"))
            .where(Course.is_published.is_(True))
            .order_by(asc(Course.position), desc(Course.id))
        )
        rows = (await self.db.execute(stmt)).mappings().all()
        return [
            {
                "id": r["id"],
                "slug": r["slug"],
                "title": r["title"],
                "position": r["position"],
                "enrollCount": int(r["enroll_count"] or 0),
            }
            for r in rows
        ]
