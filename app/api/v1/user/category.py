from fastapi import APIRouter, Depends, status

from app.services.user.category import CategoryService

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", status_code=status.HTTP_200_OK)
async def get_categories(
    category_service: CategoryService = Depends(CategoryService),
):
    return await category_service.get_all_categories_async()
