from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi_pagination import add_pagination
from loguru import logger

# ===== IMPORT ROUTERS =====
from app.api.v1 import auth

# --- ADMIN ROUTES ---
from app.api.v1.admin import category as admin_category
from app.api.v1.admin import user as admin_user
from app.api.v1.shares import email_verification, payments

# --- USER ROUTES ---
from app.api.v1.user import category
from app.api.v1.user import courses as user_courses
from app.core.exceptions import register_exception_handlers
from app.core.scheduler import scheduler, start_scheduler
from app.core.settings import settings

# --- MIDDLEWARE ---
from app.middleware.request_context import RequestContextMiddleware
from app.services.shares.upload import PUBLIC_PREFIX, upload_root


@asynccontextmanager
async def lifespan(app: FastAPI):

    # ================================
    # 1) GLOBAL HTTP CLIENT
    # ================================
    app.state.http = httpx.AsyncClient(timeout=30)
    logger.info("🌐 HTTP client started")

    # ================================
    # 2) START APSCHEDULER
    # ================================
    start_scheduler()

    try:
        yield
    finally:
        # ================================
        # 3) CLOSE HTTP CLIENT
        # ================================
        await app.state.http.aclose()
        logger.info("🌐 HTTP client closed")

        # ================================
        # 4) STOP SCHEDULER
        # ================================
        try:
            scheduler.shutdown(wait=False)
            logger.info("🛑 Scheduler stopped")
        except Exception as e:
            logger.warning(f"⚠ Scheduler shutdown error: {e}")


# ===== APP CONFIG =====
app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Course catalog, enrollment and payments backend",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.add_middleware(RequestContextMiddleware)
register_exception_handlers(app)
add_pagination(app)

upload_root().mkdir(parents=True, exist_ok=True)
app.mount(PUBLIC_PREFIX, StaticFiles(directory=str(upload_root())), name="uploads")

prefix = settings.API_PREFIX

# ===== REGISTER ROUTERS =====

# --- Share ---
app.include_router(auth.router, prefix=prefix)
app.include_router(email_verification.router, prefix=prefix)
app.include_router(payments.router, prefix=prefix)

# --- USER ROUTES ---
app.include_router(category.router, prefix=prefix)
app.include_router(user_courses.router, prefix=prefix)

# --- ADMIN ROUTES ---
app.include_router(admin_category.router, prefix=prefix)
app.include_router(admin_user.router, prefix=prefix)


# ===== ROOT =====
@app.get("/")
async def health():
    return {"status": "ok", "app": settings.APP_NAME}


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT, reload=True, log_level="info")
