from fastapi import APIRouter, BackgroundTasks, Body, Depends, File, Request, UploadFile, status

from app.core.deps import AuthorizationService
from app.schemas.auth.user import (
    ChangePassword,
    ForgotPassword,
    GoogleLogin,
    LoginUser,
    LogoutIn,
    RefreshTokenIn,
    ResetPassword,
    UserCreate,
)
from app.services.shares.auth import AuthService
from app.services.shares.session import SessionService

router = APIRouter(prefix="/auth", tags=["Auth"])


def get_auth_service(auth: AuthService = Depends(AuthService)) -> AuthService:
    return auth


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    schema: UserCreate = Body(),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.register_async(schema)


@router.post("/login", status_code=status.HTTP_200_OK)
async def login(
    request: Request,
    schema: LoginUser = Body(),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.login_async(schema, request)


@router.post("/google", status_code=status.HTTP_200_OK)
async def login_google(
    request: Request,
    schema: GoogleLogin = Body(),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.login_google_async(schema, request)


@router.post("/refresh", status_code=status.HTTP_200_OK)
async def refresh(
    schema: RefreshTokenIn = Body(),
    sessions: SessionService = Depends(SessionService),
):
    return await sessions.refresh_async(schema.refresh_token)


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(
    schema: LogoutIn = Body(),
    sessions: SessionService = Depends(SessionService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    return await sessions.logout_async(user, schema.refresh_token)


@router.get("/me")
async def me(
    auth_service: AuthService = Depends(get_auth_service),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    return await auth_service.me_async(user)


# ---------------- AVATAR ----------------
@router.post("/avatar")
async def upload_avatar(
    avatar: UploadFile = File(...),
    auth_service: AuthService = Depends(get_auth_service),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    return await auth_service.upload_avatar_async(user, avatar)


@router.delete("/avatar")
async def delete_avatar(
    auth_service: AuthService = Depends(get_auth_service),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    return await auth_service.delete_avatar_async(user)


# ---------------- PASSWORD ----------------
@router.post("/forgot-password")
async def forgot_password(
    background_tasks: BackgroundTasks,
    schema: ForgotPassword = Body(),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.forgot_password_async(schema, background_tasks)


@router.post("/reset-password")
async def reset_password(
    schema: ResetPassword = Body(),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.reset_password_async(schema)


@router.post("/change-password")
async def change_password(
    schema: ChangePassword = Body(),
    auth_service: AuthService = Depends(get_auth_service),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    return await auth_service.change_password_async(user, schema)
