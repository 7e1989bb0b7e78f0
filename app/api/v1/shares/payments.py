from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from app.core.deps import AuthorizationService
from app.core.enum import PaymentProviderName
from app.schemas.shares.payments import CheckoutIn
from app.services.shares.payment import PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/checkout")
async def checkout(
    request: Request,
    schema: CheckoutIn = Body(),
    service: PaymentService = Depends(PaymentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    return await service.checkout_async(user, schema, request)


@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    service: PaymentService = Depends(PaymentService),
):
    payload = await request.body()
    return await service.handle_webhook_async(
        PaymentProviderName.STRIPE.value, payload, request.headers
    )


@router.post("/webhook/paymob")
async def paymob_webhook(
    request: Request,
    service: PaymentService = Depends(PaymentService),
):
    payload = await request.body()
    return await service.handle_webhook_async(
        PaymentProviderName.PAYMOB.value, payload, request.headers, request.query_params
    )


@router.get("/verify")
async def verify_payment(
    payment_id: Optional[int] = Query(None, alias="paymentId"),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    service: PaymentService = Depends(PaymentService),
):
    return await service.verify_async(payment_id=payment_id, session_id=session_id)
