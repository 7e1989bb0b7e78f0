from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

import httpx
from fastapi import Request

from app.core.enum import PaymentProviderName, PaymentStatus, Region


class PaymentProviderError(RuntimeError):
    """Provider call failed; detail is logged, never shown to the client."""


class WebhookVerificationError(RuntimeError):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class CheckoutRequest:
    payment_id: int
    course_id: int
    course_title: str
    enroll_type: str
    amount: float
    currency: str
    customer_email: Optional[str] = None
    selected_start_date: Optional[datetime] = None

    @property
    def amount_cents(self) -> int:
        return int(round(self.amount * 100))


@dataclass
class CheckoutResult:
    checkout_url: str
    provider_order_id: Optional[str]


@dataclass
class WebhookEvent:
    event_type: str
    paid: bool
    payment_id: Optional[int] = None
    provider_order_id: Optional[str] = None


class PaymentProvider(ABC):
    name: PaymentProviderName
    currency: str

    @abstractmethod
    async def create_checkout(self, req: CheckoutRequest) -> CheckoutResult:
        ...

    @abstractmethod
    async def verify_webhook(
        self,
        payload: bytes,
        headers: Mapping[str, str],
        query: Optional[Mapping[str, str]] = None,
    ) -> WebhookEvent:
        """Authenticate a webhook delivery and extract the payment reference.

        Raises ``WebhookVerificationError`` when the delivery cannot be trusted.
        """

    @abstractmethod
    async def poll_status(self, provider_order_id: str) -> Optional[PaymentStatus]:
        """Ask the provider for the current status; ``None`` when unsupported."""


class PaymentProviders:
    """Provider lookup by region or by name."""

    def __init__(self, stripe: PaymentProvider, paymob: PaymentProvider):
        self._by_name = {
            PaymentProviderName.STRIPE.value: stripe,
            PaymentProviderName.PAYMOB.value: paymob,
        }

    def for_region(self, region: Region) -> PaymentProvider:
        if region == Region.EG:
            return self._by_name[PaymentProviderName.PAYMOB.value]
        return self._by_name[PaymentProviderName.STRIPE.value]

    def get(self, name: str) -> PaymentProvider:
        provider = self._by_name.get(name)
        if provider is None:
            raise PaymentProviderError(f"Unknown provider {name}")
        return provider


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def get_payment_providers(request: Request) -> PaymentProviders:
    from app.services.shares.paymob_provider import PaymobProvider
    from app.services.shares.stripe_provider import StripeProvider

    return PaymentProviders(
        stripe=StripeProvider(),
        paymob=PaymobProvider(http=get_http_client(request)),
    )
