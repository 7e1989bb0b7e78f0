from __future__ import annotations

import asyncio
import json
from typing import Mapping, Optional

import stripe

from app.core.enum import PaymentProviderName, PaymentStatus
from app.core.settings import settings
from app.services.shares.payment_providers import (
    CheckoutRequest,
    CheckoutResult,
    PaymentProvider,
    PaymentProviderError,
    WebhookEvent,
    WebhookVerificationError,
)

COMPLETED_EVENT = "checkout.session.completed"


class StripeProvider(PaymentProvider):
    """Stripe Checkout for international (USD) payments.

    The SDK is synchronous, so every call runs in a worker thread.
    """

    name = PaymentProviderName.STRIPE
    currency = "USD"

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        )

    def _require_key(self) -> str:
        if not self.secret_key:
            raise PaymentProviderError("STRIPE_SECRET_KEY is not configured")
        return self.secret_key

    async def create_checkout(self, req: CheckoutRequest) -> CheckoutResult:
        api_key = self._require_key()
        success_url = f"{settings.PAYMENT_SUCCESS_URL}?sessionId={{CHECKOUT_SESSION_ID}}"
        metadata = {
            "paymentId": str(req.payment_id),
            "courseId": str(req.course_id),
            "enrollType": req.enroll_type,
            "selectedStartDate": (
                req.selected_start_date.isoformat() if req.selected_start_date else ""
            ),
        }
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=api_key,
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency.lower(),
                            "unit_amount": req.amount_cents,
                            "product_data": {"name": req.course_title},
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=settings.PAYMENT_CANCEL_URL,
                customer_email=req.customer_email,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe checkout failed: {e}") from e

        return CheckoutResult(checkout_url=session.url, provider_order_id=session.id)

    async def verify_webhook(
        self,
        payload: bytes,
        headers: Mapping[str, str],
        query: Optional[Mapping[str, str]] = None,
    ) -> WebhookEvent:
        signature = headers.get("stripe-signature")
        if not signature or not self.webhook_secret:
            raise WebhookVerificationError("Missing stripe signature")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self.webhook_secret
            )
            event = json.loads(payload)
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise WebhookVerificationError("Invalid stripe webhook") from e

        event_type = event.get("type") or ""
        obj = (event.get("data") or {}).get("object") or {}
        metadata = obj.get("metadata") or {}
        payment_id = metadata.get("paymentId")

        return WebhookEvent(
            event_type=event_type,
            paid=event_type == COMPLETED_EVENT,
            payment_id=int(payment_id) if payment_id and str(payment_id).isdigit() else None,
            provider_order_id=obj.get("id"),
        )

    async def poll_status(self, provider_order_id: str) -> Optional[PaymentStatus]:
        api_key = self._require_key()
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.retrieve, provider_order_id, api_key=api_key
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe session lookup failed: {e}") from e

        if session.payment_status == "paid":
            return PaymentStatus.PAID
        return PaymentStatus.PENDING
