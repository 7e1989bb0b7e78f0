from typing import Any, Mapping, Optional

from fastapi import Depends, HTTPException, Request, status
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import get_client_ip
from app.core.enum import (
    EnrollmentStatus,
    EnrollType,
    PaymentProviderName,
    PaymentStatus,
    Region,
)
from app.db.models.database import Course, Enrollment, Payment, User
from app.db.session import get_session
from app.libs.formats.datetime import strip_tz
from app.schemas.shares.payments import CheckoutIn, CheckoutOut
from app.services.shares.payment_providers import (
    CheckoutRequest,
    PaymentProviderError,
    PaymentProviders,
    WebhookVerificationError,
    get_payment_providers,
)
from app.services.shares.region import RegionResolver, get_region_resolver


def course_price(course: Course, enroll_type: str, region: Region) -> Optional[float]:
    kind = "online" if enroll_type == EnrollType.ONLINE.value else "recorded"
    currency = "egp" if region == Region.EG else "usd"
    value = getattr(course, f"price_{kind}_{currency}", None)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return None
    return float(value)


def enrollment_payload(enrollment: Optional[Enrollment]) -> Optional[dict[str, Any]]:
    if enrollment is None:
        return None
    return {
        "id": enrollment.id,
        "userId": enrollment.user_id,
        "courseId": enrollment.course_id,
        "status": enrollment.status,
        "enrollType": enrollment.enroll_type,
        "currency": enrollment.currency,
        "priceCents": enrollment.price_cents,
        "selectedStartDate": (
            enrollment.selected_start_date.isoformat() if enrollment.selected_start_date else None
        ),
    }


class PaymentService:
    """Checkout, webhook reconciliation and the verify polling fallback."""

    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        providers: PaymentProviders = Depends(get_payment_providers),
        regions: RegionResolver = Depends(get_region_resolver),
    ):
        self.db = db
        self.providers = providers
        self.regions = regions

    # ==============================
    # CHECKOUT
    # ==============================

    async def checkout_async(self, user: User, schema: CheckoutIn, request: Request) -> dict[str, Any]:
        course = await self.db.get(Course, schema.course_id)
        if not course:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Course not found")

        enroll_type = schema.enroll_type.value
        start_date = strip_tz(schema.selected_start_date) if schema.selected_start_date else None
        if enroll_type == EnrollType.ONLINE.value and not start_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="selectedStartDate required for ONLINE",
            )

        region = await self.regions.detect(get_client_ip(request))
        amount = course_price(course, enroll_type, region)
        if amount is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Price not configured")

        provider = self.providers.for_region(region)
        try:
            payment = Payment(
                user_id=user.id,
                course_id=course.id,
                enroll_type=enroll_type,
                provider=provider.name.value,
                status=PaymentStatus.PENDING.value,
                amount=amount,
                currency=provider.currency,
                selected_start_date=start_date,
            )
            self.db.add(payment)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        try:
            result = await provider.create_checkout(
                CheckoutRequest(
                    payment_id=payment.id,
                    course_id=course.id,
                    course_title=course.title,
                    enroll_type=enroll_type,
                    amount=amount,
                    currency=provider.currency,
                    customer_email=user.email,
                    selected_start_date=start_date,
                )
            )
        except PaymentProviderError as e:
            logger.error(f"❌ {provider.name.value} checkout failed for payment {payment.id}: {e}")
            label = "Paymob order" if provider.name == PaymentProviderName.PAYMOB else "Stripe session"
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=f"Failed to create {label}"
            )

        try:
            payment.provider_order_id = result.provider_order_id
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"💳 Checkout started: payment={payment.id} provider={provider.name.value} "
            f"region={region.value} amount={amount} {provider.currency}"
        )
        return CheckoutOut(
            checkout_url=result.checkout_url,
            payment_id=payment.id,
            provider_order_id=result.provider_order_id,
        ).model_dump(by_alias=True)

    # ==============================
    # WEBHOOKS
    # ==============================

    async def handle_webhook_async(
        self,
        provider_name: str,
        payload: bytes,
        headers: Mapping[str, str],
        query: Optional[Mapping[str, str]] = None,
    ) -> dict[str, bool]:
        provider = self.providers.get(provider_name)
        try:
            event = await provider.verify_webhook(payload, headers, query)
        except WebhookVerificationError as e:
            logger.warning(f"⚠️ Rejected {provider_name} webhook: {e}")
            raise HTTPException(status_code=e.status_code, detail=str(e))

        if not event.paid:
            logger.info(f"ℹ️ Ignoring {provider_name} webhook event {event.event_type}")
            return {"ok": True}

        payment: Optional[Payment] = None
        if event.payment_id is not None:
            payment = await self.db.get(Payment, event.payment_id)
        elif event.provider_order_id:
            payment = await self.db.scalar(
                select(Payment).where(
                    Payment.provider == provider.name.value,
                    Payment.provider_order_id == event.provider_order_id,
                )
            )

        if payment is None:
            logger.warning(
                f"⚠️ {provider_name} webhook for unknown payment "
                f"(id={event.payment_id}, order={event.provider_order_id})"
            )
            return {"ok": True}

        await self.mark_paid_async(payment, event.provider_order_id)
        return {"ok": True}

    # ==============================
    # FULFILMENT
    # ==============================

    async def _find_enrollment(self, payment: Payment) -> Optional[Enrollment]:
        # (user, course) is unique, so it also covers a row of a different enroll type
        return await self.db.scalar(
            select(Enrollment).where(
                Enrollment.user_id == payment.user_id,
                Enrollment.course_id == payment.course_id,
            )
        )

    async def mark_paid_async(
        self, payment: Payment, provider_order_id: Optional[str] = None
    ) -> Optional[Enrollment]:
        payment_id = payment.id
        try:
            payment.status = PaymentStatus.PAID.value
            if provider_order_id:
                payment.provider_order_id = provider_order_id

            enrollment = await self._find_enrollment(payment)
            if enrollment is None:
                enrollment = Enrollment(
                    user_id=payment.user_id,
                    course_id=payment.course_id,
                    status=EnrollmentStatus.ACTIVE.value,
                    enroll_type=payment.enroll_type,
                    selected_start_date=payment.selected_start_date,
                    currency=payment.currency,
                    price_cents=int(round(payment.amount * 100)),
                )
                self.db.add(enrollment)
                logger.info(f"🎓 Enrollment granted for payment {payment_id}")
            await self.db.commit()
            return enrollment
        except IntegrityError:
            # concurrent delivery created the enrollment first
            await self.db.rollback()
            payment = await self.db.get(Payment, payment_id)
            payment.status = PaymentStatus.PAID.value
            if provider_order_id:
                payment.provider_order_id = provider_order_id
            await self.db.commit()
            return await self._find_enrollment(payment)
        except Exception:
            await self.db.rollback()
            raise

    # ==============================
    # VERIFY
    # ==============================

    async def verify_async(
        self, payment_id: Optional[int] = None, session_id: Optional[str] = None
    ) -> dict[str, Any]:
        payment: Optional[Payment] = None
        if payment_id is not None:
            payment = await self.db.get(Payment, payment_id)
        elif session_id:
            payment = await self.db.scalar(
                select(Payment).where(Payment.provider_order_id == session_id)
            )
        if payment is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment not found")

        if payment.status == PaymentStatus.PAID.value:
            enrollment = await self._find_enrollment(payment)
            return {"status": payment.status, "enrollment": enrollment_payload(enrollment)}

        if payment.provider_order_id:
            provider = self.providers.get(payment.provider)
            try:
                remote = await provider.poll_status(payment.provider_order_id)
            except PaymentProviderError as e:
                logger.error(f"❌ Status poll failed for payment {payment.id}: {e}")
                remote = None
            if remote == PaymentStatus.PAID:
                enrollment = await self.mark_paid_async(payment, payment.provider_order_id)
                return {"status": PaymentStatus.PAID.value, "enrollment": enrollment_payload(enrollment)}

        return {"status": payment.status}
