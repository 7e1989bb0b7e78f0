from fastapi import Depends
from sqlalchemy import asc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.database import Category, CourseCategory
from app.db.session import get_session


class CategoryService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def get_all_categories_async(self):
        course_count = (
            select(func.count(CourseCategory.course_id))
            .where(CourseCategory.category_id == Category.id)
            .correlate(Category)
            .scalar_subquery()
        )
        query = select(
            Category.id,
            Category.name,
            Category.slug,
            Category.description,
            Category.position,
            course_count.label("course_count"),
        ).order_by(asc(Category.name))
        rows = (await self.db.execute(query)).mappings().all()
        return [
            {
                "id": r["id"],
                "name": r["name"],
                "slug": r["slug"],
                "description": r["description"],
                "position": r["position"],
                "courseCount": int(r["course_count"] or 0),
            }
            for r in rows
        ]
