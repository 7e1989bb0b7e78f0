from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi_pagination import Params

from app.core.deps import AuthorizationService, Policy
from app.schemas.admin.management import AddEnrollment, SetRole
from app.services.admin.user import ManagementService

router = APIRouter(prefix="/management", tags=["Management"])


@router.get("/users")
async def get_users(
    authorization: AuthorizationService = Depends(AuthorizationService),
    service: ManagementService = Depends(ManagementService),
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    params: Params = Depends(),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.list_users_async(params, search=search, role=role)


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    authorization: AuthorizationService = Depends(AuthorizationService),
    service: ManagementService = Depends(ManagementService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.get_user_async(user_id)


@router.patch("/users/{user_id}/role")
async def set_role(
    user_id: int,
    schema: SetRole = Body(...),
    authorization: AuthorizationService = Depends(AuthorizationService),
    service: ManagementService = Depends(ManagementService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.set_role_async(user_id, schema.role)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    authorization: AuthorizationService = Depends(AuthorizationService),
    service: ManagementService = Depends(ManagementService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.delete_user_async(user_id)


@router.post("/users/{user_id}/enrollments")
async def add_enrollment(
    user_id: int,
    schema: AddEnrollment = Body(...),
    authorization: AuthorizationService = Depends(AuthorizationService),
    service: ManagementService = Depends(ManagementService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.add_enrollment_async(user_id, schema.course_id)


@router.delete("/users/{user_id}/enrollments/{course_id}")
async def remove_enrollment(
    user_id: int,
    course_id: int,
    authorization: AuthorizationService = Depends(AuthorizationService),
    service: ManagementService = Depends(ManagementService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.remove_enrollment_async(user_id, course_id)


@router.get("/courses")
async def get_courses(
    authorization: AuthorizationService = Depends(AuthorizationService),
    service: ManagementService = Depends(ManagementService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.list_courses_async()
