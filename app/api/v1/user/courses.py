from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Query, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse
from fastapi.templating import Jinja2Templates

from app.core.deps import AuthorizationService, Policy
from app.core.enum import FileType
from app.schemas.user.courses import CourseCreate, CourseUpdate, ReorderCourses
from app.services.admin.course import CourseAdminService
from app.services.shares.upload import (
    BROCHURE_MAX_BYTES,
    IMAGE_TYPES,
    PDF_TYPES,
    THUMBNAIL_MAX_BYTES,
    LocalUploadService,
)
from app.services.user.course_enroll import CourseEnrolls
from app.services.user.courses import CourseService

router = APIRouter(prefix="/courses", tags=["Courses"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[3] / "templates"))


# Static segments are declared before "/{slug}" so they never match as a slug.


@router.get("")
async def list_courses(
    take: Optional[str] = Query(None),
    cursor: Optional[str] = Query(None),
    category_ids: Optional[str] = Query(None, alias="categoryIds"),
    instructor_id: Optional[str] = Query(None, alias="instructorId"),
    service: CourseService = Depends(CourseService),
):
    return await service.list_async(
        take=take,
        cursor=cursor,
        category_ids=category_ids,
        instructor_id=instructor_id,
    )


@router.get("/mine")
async def my_courses(
    service: CourseEnrolls = Depends(CourseEnrolls),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    return await service.get_user_courses_async(user.id)


@router.post("")
async def create_course(
    schema: CourseCreate = Body(),
    service: CourseAdminService = Depends(CourseAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.create_async(schema)


@router.put("/reorder/bulk")
async def reorder_courses(
    schema: ReorderCourses = Body(),
    service: CourseAdminService = Depends(CourseAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.reorder_async(schema.items)


# ---------------- UPLOADS ----------------
@router.post("/thumbnail")
async def upload_thumbnail(
    thumbnail: UploadFile = File(...),
    uploads: LocalUploadService = Depends(LocalUploadService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.require_role(Policy.TEACH)
    url = await uploads.save_async(
        thumbnail, FileType.THUMBNAILS, IMAGE_TYPES, THUMBNAIL_MAX_BYTES, prefix=str(user.id)
    )
    return {"url": url}


@router.post("/brochure")
async def upload_brochure(
    brochure: UploadFile = File(...),
    uploads: LocalUploadService = Depends(LocalUploadService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.require_role(Policy.TEACH)
    url = await uploads.save_async(
        brochure, FileType.BROCHURES, PDF_TYPES, BROCHURE_MAX_BYTES, prefix=str(user.id)
    )
    return {"url": url}


# ---------------- DETAIL ----------------
@router.get("/{slug}")
async def get_course(
    slug: str,
    service: CourseService = Depends(CourseService),
):
    return await service.get_by_slug_async(slug)


@router.get("/{slug}/brochure/file")
async def brochure_file(
    slug: str,
    download: Optional[str] = Query(None),
    service: CourseService = Depends(CourseService),
):
    path, file_name = await service.brochure_path_async(slug)
    disposition = "attachment" if download in ("1", "true", "yes") else "inline"
    return FileResponse(
        path,
        media_type="application/pdf",
        filename=file_name,
        content_disposition_type=disposition,
        headers={
            "X-Content-Type-Options": "nosniff",
            "Cache-Control": "public, max-age=3600",
        },
    )


@router.get("/{slug}/brochure/data")
async def brochure_data(
    slug: str,
    service: CourseService = Depends(CourseService),
):
    return await service.brochure_data_async(slug)


@router.get("/{slug}/brochure/view", response_class=HTMLResponse)
async def brochure_view(request: Request, slug: str):
    return templates.TemplateResponse(
        request,
        "brochure_view.html",
        {"title": "Course Brochure", "file_url": f"{request.url.path.rsplit('/', 1)[0]}/file"},
    )


@router.put("/{slug}")
async def update_course(
    slug: str,
    schema: CourseUpdate = Body(),
    service: CourseAdminService = Depends(CourseAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    return await service.update_async(slug, schema, user)


@router.delete("/{slug}")
async def delete_course(
    slug: str,
    service: CourseAdminService = Depends(CourseAdminService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(Policy.MANAGE)
    return await service.delete_async(slug)
