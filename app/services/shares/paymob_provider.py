from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Mapping, Optional

import httpx
from loguru import logger

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

# Field order Paymob uses when signing "transaction processed" callbacks.
HMAC_FIELDS = (
    "amount_cents",
    "created_at",
    "currency",
    "error_occured",
    "has_parent_transaction",
    "id",
    "integration_id",
    "is_3d_secure",
    "is_auth",
    "is_capture",
    "is_refunded",
    "is_standalone_payment",
    "is_voided",
    "order.id",
    "owner",
    "pending",
    "source_data.pan",
    "source_data.sub_type",
    "source_data.type",
    "success",
)


def _lookup(obj: Mapping[str, Any], dotted: str) -> Any:
    value: Any = obj
    for part in dotted.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _hmac_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def compute_hmac(obj: Mapping[str, Any], secret: str) -> str:
    message = "".join(_hmac_value(_lookup(obj, f)) for f in HMAC_FIELDS)
    return hmac.new(secret.encode(), message.encode(), hashlib.sha512).hexdigest()


def extract_order_id(body: Mapping[str, Any]) -> Optional[str]:
    obj = body.get("obj") if isinstance(body.get("obj"), Mapping) else None
    candidates = (
        _lookup(obj, "order.id") if obj else None,
        _lookup(body, "order.id"),
        body.get("id"),
    )
    for candidate in candidates:
        if candidate not in (None, ""):
            return str(candidate)
    return None


class PaymobProvider(PaymentProvider):
    """Paymob Accept iframe checkout for Egyptian (EGP) payments."""

    name = PaymentProviderName.PAYMOB
    currency = "EGP"

    def __init__(self, http: httpx.AsyncClient, timeout: float = 30.0):
        self.http = http
        self.base_url = settings.PAYMOB_BASE_URL.rstrip("/")
        self.api_key = settings.PAYMOB_API_KEY
        self.integration_id = settings.PAYMOB_INTEGRATION_ID
        self.iframe_id = settings.PAYMOB_IFRAME_ID or settings.PAYMOB_INTEGRATION_ID
        self.hmac_secret = settings.PAYMOB_HMAC_SECRET
        self.default_timeout = timeout

    # =========================================================
    # INTERNAL
    # =========================================================
    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self.http.post(
                f"{self.base_url}{path}", json=payload, timeout=self.default_timeout
            )
        except httpx.HTTPError as e:
            raise PaymentProviderError(f"Paymob {path} unreachable: {e}") from e
        if resp.status_code >= 400:
            raise PaymentProviderError(f"Paymob {path} error: {resp.status_code} {resp.text}")
        return resp.json()

    async def _auth_token(self) -> str:
        if not self.api_key or not self.integration_id:
            raise PaymentProviderError("Paymob is not configured")
        data = await self._post("/auth/tokens", {"api_key": self.api_key})
        token = data.get("token")
        if not token:
            raise PaymentProviderError("Paymob did not return an auth token")
        return token

    @staticmethod
    def _billing_data(email: Optional[str]) -> dict[str, str]:
        return {
            "apartment": "NA",
            "email": email or "na@example.com",
            "floor": "NA",
            "first_name": "Customer",
            "street": "NA",
            "building": "NA",
            "phone_number": "+200000000000",
            "shipping_method": "NA",
            "postal_code": "NA",
            "city": "Cairo",
            "country": "EG",
            "last_name": "User",
            "state": "NA",
        }

    # =========================================================
    # CHECKOUT
    # =========================================================
    async def create_checkout(self, req: CheckoutRequest) -> CheckoutResult:
        token = await self._auth_token()

        order = await self._post(
            "/ecommerce/orders",
            {
                "auth_token": token,
                "delivery_needed": "false",
                "amount_cents": req.amount_cents,
                "currency": self.currency,
                "items": [],
            },
        )
        order_id = order.get("id")
        if not order_id:
            raise PaymentProviderError("Paymob did not return an order id")

        key = await self._post(
            "/acceptance/payment_keys",
            {
                "auth_token": token,
                "amount_cents": req.amount_cents,
                "expiration": 3600,
                "order_id": order_id,
                "billing_data": self._billing_data(req.customer_email),
                "currency": self.currency,
                "integration_id": int(self.integration_id)
                if str(self.integration_id).isdigit()
                else self.integration_id,
            },
        )
        payment_key = key.get("token")
        if not payment_key:
            raise PaymentProviderError("Paymob did not return a payment key")

        url = f"{self.base_url}/acceptance/iframes/{self.iframe_id}?payment_token={payment_key}"
        return CheckoutResult(checkout_url=url, provider_order_id=str(order_id))

    # =========================================================
    # WEBHOOK
    # =========================================================
    async def verify_webhook(
        self,
        payload: bytes,
        headers: Mapping[str, str],
        query: Optional[Mapping[str, str]] = None,
    ) -> WebhookEvent:
        try:
            body = json.loads(payload or b"{}")
        except ValueError:
            logger.warning("⚠️ Paymob webhook body is not JSON, ignoring")
            return WebhookEvent(event_type="invalid", paid=False)
        if not isinstance(body, dict):
            return WebhookEvent(event_type="invalid", paid=False)

        obj = body.get("obj") if isinstance(body.get("obj"), dict) else body

        if self.hmac_secret:
            received = (query or {}).get("hmac") or body.get("hmac")
            expected = compute_hmac(obj, self.hmac_secret)
            if not isinstance(received, str) or not hmac.compare_digest(
                received.strip().lower().encode("utf-8"), expected.encode("utf-8")
            ):
                raise WebhookVerificationError("Invalid paymob signature", status_code=403)
        else:
            logger.warning("⚠️ PAYMOB_HMAC_SECRET not set, accepting unsigned Paymob webhook")

        # deliveries without a success flag are treated as paid
        paid = obj.get("success") is not False
        return WebhookEvent(
            event_type=str(body.get("type") or "TRANSACTION"),
            paid=paid,
            provider_order_id=extract_order_id(body),
        )

    async def poll_status(self, provider_order_id: str) -> Optional[PaymentStatus]:
        return None
