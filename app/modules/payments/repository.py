"""Payment repository layer."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import PaymentStatusEnum, WebhookStatusEnum
from app.modules.payments.models import CoursePayment, PaymentWebhook, RegistrationPayment

PaymentRecord = RegistrationPayment | CoursePayment


class PaymentsRepository:
    """DB access methods for registration and course payments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_registration_payment(
        self,
        student_id: int,
        *,
        for_update: bool = False,
    ) -> RegistrationPayment | None:
        stmt = select(RegistrationPayment).where(RegistrationPayment.student_id == student_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def get_course_payment(
        self,
        student_id: int,
        course_id: int,
        *,
        for_update: bool = False,
    ) -> CoursePayment | None:
        stmt = select(CoursePayment).where(
            CoursePayment.student_id == student_id,
            CoursePayment.course_id == course_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def list_course_payments(self, student_id: int) -> list[CoursePayment]:
        stmt = (
            select(CoursePayment)
            .where(CoursePayment.student_id == student_id)
            .order_by(CoursePayment.created_at.desc())
        )
        return (await self.session.scalars(stmt)).all()

    async def get_registration_payment_by_order(self, order_id: str) -> RegistrationPayment | None:
        stmt = (
            select(RegistrationPayment)
            .where(RegistrationPayment.order_id == order_id)
            .with_for_update()
        )
        return await self.session.scalar(stmt)

    async def get_course_payment_by_order(self, order_id: str) -> CoursePayment | None:
        stmt = select(CoursePayment).where(CoursePayment.order_id == order_id).with_for_update()
        return await self.session.scalar(stmt)

    async def has_paid_registration(self, student_id: int) -> bool:
        payment = await self.get_registration_payment(student_id)
        return payment is not None and payment.status == PaymentStatusEnum.PAID

    async def create_registration_payment(
        self,
        student_id: int,
        amount: Decimal,
        currency: str,
        order_id: str,
    ) -> RegistrationPayment:
        payment = RegistrationPayment(
            student_id=student_id,
            amount=amount,
            currency=currency,
            order_id=order_id,
            status=PaymentStatusEnum.PENDING,
        )
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def create_course_payment(
        self,
        student_id: int,
        course_id: int,
        amount: Decimal,
        currency: str,
        order_id: str,
    ) -> CoursePayment:
        payment = CoursePayment(
            student_id=student_id,
            course_id=course_id,
            amount=amount,
            currency=currency,
            order_id=order_id,
            status=PaymentStatusEnum.PENDING,
        )
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def attach_new_order(
        self,
        payment: PaymentRecord,
        order_id: str,
        amount: Decimal,
    ) -> PaymentRecord:
        payment.order_id = order_id
        payment.amount = amount
        payment.status = PaymentStatusEnum.PENDING
        payment.payment_id = None
        payment.signature = None
        payment.error_message = None
        await self.session.flush()
        return payment

    async def mark_paid(
        self,
        payment: PaymentRecord,
        payment_id: str | None,
        signature: str | None,
    ) -> PaymentRecord:
        payment.status = PaymentStatusEnum.PAID
        payment.payment_id = payment_id
        payment.signature = signature
        payment.error_message = None
        await self.session.flush()
        return payment

    async def mark_failed(
        self,
        payment: PaymentRecord,
        payment_id: str | None,
        error_message: str,
    ) -> PaymentRecord:
        payment.status = PaymentStatusEnum.FAILED
        payment.payment_id = payment_id
        payment.error_message = error_message
        await self.session.flush()
        return payment

    async def record_webhook(
        self,
        webhook_id: str,
        event_type: str,
        payload: dict,
        signature_valid: bool,
        status: WebhookStatusEnum,
        error_message: str | None,
    ) -> PaymentWebhook:
        """Insert the webhook log row, or count a repeated delivery of it."""
        stmt = select(PaymentWebhook).where(PaymentWebhook.webhook_id == webhook_id).with_for_update()
        webhook = await self.session.scalar(stmt)
        if webhook is None:
            webhook = PaymentWebhook(
                webhook_id=webhook_id,
                event_type=event_type,
                payload=payload,
                signature_valid=signature_valid,
                status=status,
                error_message=error_message,
                retry_count=0,
            )
            self.session.add(webhook)
        else:
            webhook.retry_count += 1
            # An unsigned copy never overwrites a signed delivery.
            if signature_valid or not webhook.signature_valid:
                webhook.event_type = event_type
                webhook.payload = payload
                webhook.signature_valid = signature_valid
                webhook.status = status
                webhook.error_message = error_message
                webhook.processed_at = None
        await self.session.flush()
        return webhook

    async def set_webhook_status(
        self,
        webhook_id: str,
        status: WebhookStatusEnum,
        error_message: str | None,
        processed_at: datetime,
    ) -> bool:
        stmt = (
            update(PaymentWebhook)
            .where(PaymentWebhook.webhook_id == webhook_id)
            .values(
                status=status,
                error_message=error_message,
                processed_at=processed_at,
                updated_at=processed_at,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
