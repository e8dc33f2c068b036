"""Payment state machine and gateway orchestration."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.database import get_db_session
from app.core.enums import PaymentStatusEnum, PaymentTypeEnum, WebhookStatusEnum
from app.modules.courses.repository import CoursesRepository
from app.modules.leads.models import StudentLead
from app.modules.leads.repository import LeadsRepository
from app.modules.messaging.events import (
    InterviewScheduleEvent,
    PaymentInitiatedEvent,
    PaymentVerifiedEvent,
)
from app.modules.messaging.publisher import EventPublisher
from app.modules.messaging.runtime import get_event_publisher
from app.modules.payments.gateway import RazorpayGateway
from app.modules.payments.repository import PaymentRecord, PaymentsRepository
from app.modules.payments.schemas import (
    PaymentInitiate,
    PaymentOrderRead,
    PaymentRecordRead,
    PaymentVerification,
    PaymentVerify,
    StudentPaymentsRead,
    WebhookAck,
)
from app.shared.exceptions import (
    AppException,
    ConflictException,
    InternalException,
    InvalidException,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import interview_time, meeting_link, utc_now

logger = logging.getLogger(__name__)

CONFIRMING_WEBHOOK_EVENTS = frozenset({"payment.captured", "order.paid"})
FAILING_WEBHOOK_EVENTS = frozenset({"payment.failed"})


def decode_webhook(body: bytes) -> dict:
    """Parse a webhook body into a JSON object carrying an ``event`` name."""
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise InvalidException("Invalid webhook payload") from exc
    if not isinstance(payload, dict):
        raise InvalidException("Invalid webhook payload")
    event = payload.get("event")
    if not isinstance(event, str) or not event:
        raise InvalidException("Webhook payload has no event")
    return payload


def payment_entity(payload: dict) -> dict:
    """Return ``payload.payment.entity``, checking each level is an object."""
    node: object = payload
    for field in ("payload", "payment", "entity"):
        node = node.get(field) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            raise InvalidException(f"Invalid webhook payload: {field} must be an object")
    return node


def webhook_identity(payload: dict, body: bytes, event_id: str | None) -> str:
    """Delivery id from the gateway header or body, else a digest of the body."""
    if event_id:
        return event_id
    body_id = payload.get("id")
    if isinstance(body_id, str) and body_id:
        return body_id
    return f"sha256:{hashlib.sha256(body).hexdigest()}"


def _optional_text(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


@dataclass(slots=True)
class PaymentConfirmation:
    payment: PaymentRecord
    lead: StudentLead
    replayed: bool


class PaymentsService:
    """Payment domain service."""

    def __init__(
        self,
        session: AsyncSession,
        repository: PaymentsRepository,
        leads_repository: LeadsRepository,
        courses_repository: CoursesRepository,
        gateway: RazorpayGateway,
        publisher: EventPublisher,
        settings: Settings,
        *,
        now_provider: Callable = utc_now,
        link_factory: Callable[[str], str] = meeting_link,
    ) -> None:
        self.session = session
        self.repository = repository
        self.leads_repository = leads_repository
        self.courses_repository = courses_repository
        self.gateway = gateway
        self.publisher = publisher
        self.settings = settings
        self.now_provider = now_provider
        self.link_factory = link_factory

    async def initiate_payment(self, payload: PaymentInitiate) -> PaymentOrderRead:
        """Create a gateway order and store it on a new or reused PENDING record.

        The gateway call happens before any payment row is locked; the row is
        re-read under lock and re-checked before the order is attached.
        """
        lead = await self.leads_repository.get_lead_by_id(payload.student_id)
        if lead is None:
            raise NotFoundException("Student not found")

        if payload.payment_type == PaymentTypeEnum.REGISTRATION:
            amount = self.settings.registration_fee
        else:
            if payload.course_id is None:
                raise InvalidException("course_id is required for COURSE_FEE payments")
            if not await self.repository.has_paid_registration(lead.id):
                raise InvalidException("Registration fee must be paid before the course fee")
            course = await self.courses_repository.get_course_by_id(payload.course_id)
            if course is None:
                raise NotFoundException("Course not found")
            amount = Decimal(course.fee)
        self._ensure_payable(await self._existing_payment(lead.id, payload))

        currency = self.settings.payment_currency
        order = await self.gateway.create_order(
            amount,
            currency,
            receipt=f"rcpt_{lead.id}_{payload.payment_type}",
        )

        try:
            existing = await self._existing_payment(lead.id, payload, for_update=True)
            self._ensure_payable(existing)
            if existing is not None:
                await self.repository.attach_new_order(existing, order.id, amount)
            elif payload.payment_type == PaymentTypeEnum.REGISTRATION:
                await self.repository.create_registration_payment(lead.id, amount, currency, order.id)
            else:
                await self.repository.create_course_payment(
                    lead.id,
                    payload.course_id,
                    amount,
                    currency,
                    order.id,
                )
            await self.session.commit()
        except AppException:
            await self.session.rollback()
            logger.warning("Discarding gateway order %s for student %s", order.id, lead.id)
            raise
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictException("A payment for this student is already being created") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Storing payment order %s failed", order.id)
            raise InternalException("Failed to store payment order") from exc

        logger.info(
            "Payment order %s created for student %s (%s)",
            order.id,
            lead.id,
            payload.payment_type,
        )
        await self.publisher.publish(
            self.settings.kafka_payment_topic,
            f"student-{lead.id}",
            PaymentInitiatedEvent(
                student_id=lead.id,
                payment_type=payload.payment_type,
                order_id=order.id,
                amount=amount,
                currency=currency,
                course_id=payload.course_id,
            ),
        )
        return PaymentOrderRead(
            order_id=order.id,
            student_id=lead.id,
            payment_type=payload.payment_type,
            course_id=payload.course_id,
            amount=amount,
            amount_minor=order.amount_minor,
            currency=order.currency,
            key_id=self.gateway.key_id,
        )

    async def verify_checkout(self, payload: PaymentVerify) -> PaymentVerification:
        """Check a checkout signature. State changes arrive through the webhook."""
        if not self.gateway.verify_checkout_signature(
            payload.order_id,
            payload.payment_id,
            payload.signature,
        ):
            raise UnauthorizedException("Invalid payment signature")

        payment = await self._find_by_order(payload.order_id)
        return PaymentVerification(
            verified=True,
            order_id=payload.order_id,
            payment_id=payload.payment_id,
            status=payment.status,
        )

    async def confirm_payment(
        self,
        order_id: str,
        payment_id: str | None,
        signature: str | None,
    ) -> PaymentConfirmation:
        """Move a payment to PAID once; replays re-emit events without writing."""
        try:
            payment = await self._find_by_order(order_id)
            if payment.status == PaymentStatusEnum.CANCELLED:
                raise ConflictException("Cannot confirm a cancelled payment")

            lead = await self.leads_repository.get_lead_by_id(payment.student_id, for_update=True)
            if lead is None:
                raise NotFoundException("Student not found")

            replayed = payment.status == PaymentStatusEnum.PAID
            if not replayed:
                await self.repository.mark_paid(payment, payment_id, signature)
                if payment.payment_type == PaymentTypeEnum.REGISTRATION:
                    interview_at = interview_time(
                        self.now_provider(),
                        self.settings.interview_delay_minutes,
                    )
                    await self.leads_repository.mark_registration_paid(
                        lead,
                        payment.id,
                        interview_at,
                        lead.meet_link or self.link_factory(self.settings.meet_base_url),
                    )
                else:
                    await self.leads_repository.mark_course_paid(lead, payment.id, payment.course_id)
            await self.session.commit()
        except AppException:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Payment confirmation for order %s failed", order_id)
            raise InternalException("Failed to confirm payment") from exc

        if replayed:
            logger.info("Order %s already paid, re-emitting confirmation events", order_id)
        else:
            logger.info("Order %s marked PAID for student %s", order_id, lead.id)
        await self._publish_confirmation_events(payment, lead)
        return PaymentConfirmation(payment=payment, lead=lead, replayed=replayed)

    async def fail_payment(
        self,
        order_id: str,
        payment_id: str | None,
        error_code: str | None,
        error_description: str | None,
    ) -> PaymentRecord:
        """Record a gateway failure. A PAID record is left untouched."""
        try:
            payment = await self._find_by_order(order_id)
            if payment.status == PaymentStatusEnum.PAID:
                logger.warning("Ignoring failure for already paid order %s", order_id)
            else:
                await self.repository.mark_failed(
                    payment,
                    payment_id,
                    f"{error_code or 'UNKNOWN'}: {error_description or 'no description'}",
                )
            await self.session.commit()
        except AppException:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Recording payment failure for order %s failed", order_id)
            raise InternalException("Failed to record payment failure") from exc
        return payment

    async def handle_webhook(
        self,
        body: bytes,
        signature: str | None,
        event_id: str | None = None,
    ) -> WebhookAck:
        """Log and apply a gateway webhook.

        Every parseable delivery is written to the webhook log, including ones
        with a bad signature, before anything else happens. Only signed
        deliveries change payment state.
        """
        signature_valid = self.gateway.verify_webhook_signature(body, signature)
        try:
            payload = decode_webhook(body)
        except InvalidException:
            if not signature_valid:
                raise UnauthorizedException("Invalid webhook signature") from None
            raise

        event = payload["event"]
        webhook_id = webhook_identity(payload, body, event_id)
        if not signature_valid:
            await self._log_webhook(
                webhook_id,
                event,
                payload,
                signature_valid=False,
                status=WebhookStatusEnum.FAILED,
                error_message="Invalid webhook signature",
            )
            raise UnauthorizedException("Invalid webhook signature")
        await self._log_webhook(webhook_id, event, payload, signature_valid=True)

        if event not in CONFIRMING_WEBHOOK_EVENTS | FAILING_WEBHOOK_EVENTS:
            logger.info("Acknowledging unhandled webhook event %s", event)
            await self._finish_webhook(webhook_id, WebhookStatusEnum.COMPLETED)
            return WebhookAck(status="acknowledged", event=event)

        try:
            entity = payment_entity(payload)
            order_id = entity.get("order_id")
            if not isinstance(order_id, str) or not order_id:
                raise InvalidException("Webhook payment entity has no order_id")
            payment_id = _optional_text(entity.get("id"))

            if event in CONFIRMING_WEBHOOK_EVENTS:
                await self.confirm_payment(order_id, payment_id, signature)
            else:
                await self.fail_payment(
                    order_id,
                    payment_id,
                    _optional_text(entity.get("error_code")),
                    _optional_text(entity.get("error_description")),
                )
        except AppException as exc:
            await self._finish_webhook(webhook_id, WebhookStatusEnum.FAILED, exc.message)
            raise
        await self._finish_webhook(webhook_id, WebhookStatusEnum.COMPLETED)
        return WebhookAck(status="processed", event=event)

    async def _log_webhook(
        self,
        webhook_id: str,
        event: str,
        payload: dict,
        *,
        signature_valid: bool,
        status: WebhookStatusEnum = WebhookStatusEnum.RECEIVED,
        error_message: str | None = None,
    ) -> None:
        # The log is an audit trail; losing a row must not block the payment.
        try:
            await self.repository.record_webhook(
                webhook_id,
                event,
                payload,
                signature_valid,
                status,
                error_message,
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Could not log webhook %s (%s)", webhook_id, event)

    async def _finish_webhook(
        self,
        webhook_id: str,
        status: WebhookStatusEnum,
        error_message: str | None = None,
    ) -> None:
        try:
            await self.repository.set_webhook_status(
                webhook_id,
                status,
                error_message,
                self.now_provider(),
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Could not mark webhook %s as %s", webhook_id, status)

    async def get_student_payments(self, student_id: int) -> StudentPaymentsRead:
        lead = await self.leads_repository.get_lead_by_id(student_id)
        if lead is None:
            raise NotFoundException("Student not found")
        registration = await self.repository.get_registration_payment(student_id)
        courses = await self.repository.list_course_payments(student_id)
        return StudentPaymentsRead(
            student_id=student_id,
            registration=PaymentRecordRead.model_validate(registration) if registration else None,
            courses=[PaymentRecordRead.model_validate(item) for item in courses],
        )

    async def _existing_payment(
        self,
        student_id: int,
        payload: PaymentInitiate,
        *,
        for_update: bool = False,
    ) -> PaymentRecord | None:
        if payload.payment_type == PaymentTypeEnum.REGISTRATION:
            return await self.repository.get_registration_payment(student_id, for_update=for_update)
        return await self.repository.get_course_payment(
            student_id,
            payload.course_id,
            for_update=for_update,
        )

    @staticmethod
    def _ensure_payable(existing: PaymentRecord | None) -> None:
        if existing is None:
            return
        if existing.status == PaymentStatusEnum.PAID:
            if existing.payment_type == PaymentTypeEnum.REGISTRATION:
                raise ConflictException("Registration payment already completed")
            raise ConflictException("Course payment already completed")
        if existing.status == PaymentStatusEnum.CANCELLED:
            raise ConflictException("Payment was cancelled")

    async def _find_by_order(self, order_id: str) -> PaymentRecord:
        payment = await self.repository.get_registration_payment_by_order(order_id)
        if payment is None:
            payment = await self.repository.get_course_payment_by_order(order_id)
        if payment is None:
            raise NotFoundException("Payment order not found")
        return payment

    async def _publish_confirmation_events(self, payment: PaymentRecord, lead: StudentLead) -> None:
        key = f"student-{lead.id}"
        await self.publisher.publish(
            self.settings.kafka_payment_topic,
            key,
            PaymentVerifiedEvent(
                student_id=lead.id,
                payment_type=payment.payment_type,
                order_id=payment.order_id,
                payment_id=payment.payment_id,
                course_id=getattr(payment, "course_id", None),
            ),
        )
        if payment.payment_type == PaymentTypeEnum.REGISTRATION:
            await self.publisher.publish(
                self.settings.kafka_email_topic,
                key,
                InterviewScheduleEvent(
                    student_id=lead.id,
                    name=lead.name,
                    email=lead.email,
                    scheduled_at=lead.interview_scheduled_at,
                    meet_link=lead.meet_link,
                ),
            )


async def get_payments_service(
    session: AsyncSession = Depends(get_db_session),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> PaymentsService:
    """Dependency provider for payments service."""
    settings = get_settings()
    return PaymentsService(
        session=session,
        repository=PaymentsRepository(session),
        leads_repository=LeadsRepository(session),
        courses_repository=CoursesRepository(session),
        gateway=RazorpayGateway.from_settings(settings),
        publisher=publisher,
        settings=settings,
    )
