from typing import Any

from fastapi import Depends, HTTPException, status
from sqlalchemy import asc, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.database import Category, CourseCategory
from app.db.session import get_session
from app.libs.formats.text import simple_slug
from app.schemas.admin.category import CategoryCreate, CategoryOut, CategoryUpdate


class CategoryAdminService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def _slug_taken(self, slug: str, exclude_id: int | None = None) -> bool:
        stmt = select(Category.id).where(Category.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        return bool(await self.db.scalar(stmt))

    async def list_categories_async(self) -> list[dict[str, Any]]:
        rows = (
            await self.db.scalars(select(Category).order_by(asc(Category.position), asc(Category.name)))
        ).all()
        return [CategoryOut.model_validate(c).model_dump() for c in rows]

    async def create_category_async(self, schema: CategoryCreate) -> dict[str, Any]:
        try:
            slug = simple_slug(schema.slug or schema.name)
            if not slug:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid slug")
            if await self._slug_taken(slug):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT, detail="Category slug already exists"
                )
            last = await self.db.scalar(select(func.max(Category.position)))
            category = Category(
                name=schema.name.strip(),
                slug=slug,
                description=schema.description,
                position=int(last or 0) + 1,
            )
            self.db.add(category)
            await self.db.commit()
            return CategoryOut.model_validate(category).model_dump()
        except Exception:
            await self.db.rollback()
            raise

    async def update_category_async(self, category_id: int, schema: CategoryUpdate) -> dict[str, Any]:
        try:
            category = await self.db.get(Category, category_id)
            if not category:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")

            if schema.name is not None:
                category.name = schema.name.strip()
            if schema.slug is not None or schema.name is not None:
                slug = simple_slug(schema.slug or category.name)
                if not slug:
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid slug")
                if await self._slug_taken(slug, exclude_id=category.id):
                    raise HTTPException(
                        status_code=status.HTTP_409_CONFLICT, detail="Category slug already exists"
                    )
                category.slug = slug
            if schema.description is not None:
                category.description = schema.description

            await self.db.commit()
            return CategoryOut.model_validate(category).model_dump()
        except Exception:
            await self.db.rollback()
            raise

    async def delete_category_async(self, category_id: int) -> dict[str, bool]:
        try:
            category = await self.db.get(Category, category_id)
            if not category:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
            await self.db.execute(delete(CourseCategory).where(CourseCategory.category_id == category_id))
            await self.db.execute(delete(Category).where(Category.id == category_id))
            await self.db.commit()
            return {"ok": True}
        except Exception:
            await self.db.rollback()
            raise

    async def reorder_categories_async(self, ids: list[int]) -> dict[str, bool]:
        try:
            for idx, category_id in enumerate(dict.fromkeys(ids), start=1):
                await self.db.execute(
                    update(Category).where(Category.id == category_id).values(position=idx)
                )
            await self.db.commit()
            return {"ok": True}
        except Exception:
            await self.db.rollback()
            raise
