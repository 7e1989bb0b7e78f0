from fastapi import APIRouter, Body, Depends

from app.core.deps import AuthorizationService, Policy
from app.schemas.admin.category import CategoryCreate, CategoryReorder, CategoryUpdate
from app.services.admin.category import CategoryAdminService

router = APIRouter(prefix="/management/categories", tags=["Management Categories"])


# ---------------- ROUTES ----------------
@router.get("")
async def get_categories(
    service: CategoryAdminService = Depends(CategoryAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.list_categories_async()


@router.post("")
async def create_category(
    service: CategoryAdminService = Depends(CategoryAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
    schema: CategoryCreate = Body(),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.create_category_async(schema)


@router.patch("/reorder")
async def reorder_categories(
    schema: CategoryReorder = Body(),
    service: CategoryAdminService = Depends(CategoryAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.reorder_categories_async(schema.ids)


@router.patch("/{category_id}")
async def update_category(
    category_id: int,
    schema: CategoryUpdate = Body(),
    service: CategoryAdminService = Depends(CategoryAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.update_category_async(category_id, schema)


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    service: CategoryAdminService = Depends(CategoryAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.delete_category_async(category_id)
