from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from app.schemas.shares.email_verification import EmailIn, VerifyEmailIn
from app.services.shares.email_verification import EmailVerificationService

router = APIRouter(prefix="/email-verification", tags=["Email Verification"])


@router.post("/request")
async def request_verification(
    background_tasks: BackgroundTasks,
    schema: EmailIn = Body(),
    service: EmailVerificationService = Depends(EmailVerificationService),
):
    return await service.request_async(schema.email, background_tasks)


@router.post("/resend")
async def resend_verification(
    background_tasks: BackgroundTasks,
    schema: EmailIn = Body(),
    service: EmailVerificationService = Depends(EmailVerificationService),
):
    return await service.request_async(schema.email, background_tasks)


@router.post("/verify")
async def verify_email(
    schema: VerifyEmailIn = Body(),
    service: EmailVerificationService = Depends(EmailVerificationService),
):
    return await service.verify_async(schema.email, schema.token)


@router.get("/confirm")
async def confirm_email(
    email: Optional[str] = Query(None),
    token: Optional[str] = Query(None),
    service: EmailVerificationService = Depends(EmailVerificationService),
):
    return await service.confirm_async(email, token)
