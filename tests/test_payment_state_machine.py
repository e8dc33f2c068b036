from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.config import Settings
from app.core.enums import (
    ApplicationStatusEnum,
    EventTypeEnum,
    FeeStatusEnum,
    PaymentStatusEnum,
    PaymentTypeEnum,
    WebhookStatusEnum,
)
from app.modules.payments.gateway import GatewayOrder
from app.modules.payments.schemas import PaymentInitiate, PaymentVerify
from app.modules.payments.service import PaymentsService
from app.shared.exceptions import (
    ConflictException,
    InvalidException,
    NotFoundException,
    UnauthorizedException,
)

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class FakeSession:
    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


def _payment(payment_id: int, student_id: int, payment_type: PaymentTypeEnum, **values) -> SimpleNamespace:
    defaults = {
        "id": payment_id,
        "student_id": student_id,
        "payment_type": payment_type,
        "course_id": None,
        "amount": Decimal("0"),
        "currency": "INR",
        "status": PaymentStatusEnum.PENDING,
        "order_id": None,
        "payment_id": None,
        "signature": None,
        "error_message": None,
    }
    defaults.update(values)
    return SimpleNamespace(**defaults)


class FakePaymentsRepository:
    def __init__(self) -> None:
        self.registrations: dict[int, SimpleNamespace] = {}
        self.course_payments: dict[tuple[int, int], SimpleNamespace] = {}
        self.webhooks: dict[str, SimpleNamespace] = {}
        self.locked_reads = 0
        self._next_id = 1

    def _new_id(self) -> int:
        payment_id = self._next_id
        self._next_id += 1
        return payment_id

    async def get_registration_payment(self, student_id: int, *, for_update: bool = False):
        self.locked_reads += for_update
        return self.registrations.get(student_id)

    async def get_course_payment(self, student_id: int, course_id: int, *, for_update: bool = False):
        self.locked_reads += for_update
        return self.course_payments.get((student_id, course_id))

    async def list_course_payments(self, student_id: int):
        return [item for (owner, _), item in self.course_payments.items() if owner == student_id]

    async def get_registration_payment_by_order(self, order_id: str):
        return next((p for p in self.registrations.values() if p.order_id == order_id), None)

    async def get_course_payment_by_order(self, order_id: str):
        return next((p for p in self.course_payments.values() if p.order_id == order_id), None)

    async def has_paid_registration(self, student_id: int) -> bool:
        payment = self.registrations.get(student_id)
        return payment is not None and payment.status == PaymentStatusEnum.PAID

    async def create_registration_payment(self, student_id, amount, currency, order_id):
        payment = _payment(
            self._new_id(),
            student_id,
            PaymentTypeEnum.REGISTRATION,
            amount=amount,
            currency=currency,
            order_id=order_id,
        )
        self.registrations[student_id] = payment
        return payment

    async def create_course_payment(self, student_id, course_id, amount, currency, order_id):
        payment = _payment(
            self._new_id(),
            student_id,
            PaymentTypeEnum.COURSE_FEE,
            course_id=course_id,
            amount=amount,
            currency=currency,
            order_id=order_id,
        )
        self.course_payments[(student_id, course_id)] = payment
        return payment

    async def attach_new_order(self, payment, order_id, amount):
        payment.order_id = order_id
        payment.amount = amount
        payment.status = PaymentStatusEnum.PENDING
        payment.payment_id = None
        payment.signature = None
        payment.error_message = None
        return payment

    async def mark_paid(self, payment, payment_id, signature):
        payment.status = PaymentStatusEnum.PAID
        payment.payment_id = payment_id
        payment.signature = signature
        payment.error_message = None
        return payment

    async def mark_failed(self, payment, payment_id, error_message):
        payment.status = PaymentStatusEnum.FAILED
        payment.payment_id = payment_id
        payment.error_message = error_message
        return payment

    async def record_webhook(self, webhook_id, event_type, payload, signature_valid, status, error_message):
        webhook = self.webhooks.get(webhook_id)
        if webhook is None:
            webhook = SimpleNamespace(webhook_id=webhook_id, retry_count=0, processed_at=None)
            self.webhooks[webhook_id] = webhook
        else:
            webhook.retry_count += 1
        webhook.event_type = event_type
        webhook.payload = payload
        webhook.signature_valid = signature_valid
        webhook.status = status
        webhook.error_message = error_message
        return webhook

    async def set_webhook_status(self, webhook_id, status, error_message, processed_at):
        webhook = self.webhooks.get(webhook_id)
        if webhook is None:
            return False
        webhook.status = status
        webhook.error_message = error_message
        webhook.processed_at = processed_at
        return True


class FakeLeadsRepository:
    def __init__(self, leads: dict[int, SimpleNamespace]) -> None:
        self.leads = leads
        self.registration_marks = 0

    async def get_lead_by_id(self, lead_id: int, *, for_update: bool = False):
        return self.leads.get(lead_id)

    async def mark_registration_paid(self, lead, registration_payment_id, interview_at, meet_link):
        self.registration_marks += 1
        lead.registration_fee_status = FeeStatusEnum.PAID
        lead.registration_payment_id = registration_payment_id
        lead.interview_scheduled_at = interview_at
        lead.meet_link = meet_link
        lead.application_status = ApplicationStatusEnum.INTERVIEW_SCHEDULED
        return lead

    async def mark_course_paid(self, lead, course_payment_id, course_id):
        lead.course_fee_status = FeeStatusEnum.PAID
        lead.course_payment_id = course_payment_id
        lead.selected_course_id = course_id
        return lead


class FakeCoursesRepository:
    def __init__(self, courses: dict[int, SimpleNamespace]) -> None:
        self.courses = courses

    async def get_course_by_id(self, course_id: int):
        return self.courses.get(course_id)


class FakeGateway:
    key_id = "rzp_test_key"

    def __init__(self) -> None:
        self.orders: list[tuple[Decimal, str, str]] = []
        self.signature_valid = True
        self.webhook_valid = True

    async def create_order(self, amount: Decimal, currency: str, receipt: str) -> GatewayOrder:
        self.orders.append((amount, currency, receipt))
        return GatewayOrder(
            id=f"order_{len(self.orders)}",
            amount_minor=int(amount * 100),
            currency=currency,
            receipt=receipt,
        )

    def verify_checkout_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return self.signature_valid

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        return self.webhook_valid


class FakePublisher:
    def __init__(self) -> None:
        self.published: list[tuple[str, str | None, object]] = []

    async def publish(self, topic: str, key: str | None, event) -> None:
        self.published.append((topic, key, event))

    def kinds(self) -> list[str]:
        return [event.event for _, _, event in self.published]


def _lead(lead_id: int = 1) -> SimpleNamespace:
    return SimpleNamespace(
        id=lead_id,
        name="Priya",
        email="priya@studentmail.in",
        registration_fee_status=FeeStatusEnum.PENDING,
        course_fee_status=FeeStatusEnum.PENDING,
        application_status=ApplicationStatusEnum.NEW,
        registration_payment_id=None,
        course_payment_id=None,
        selected_course_id=None,
        interview_scheduled_at=None,
        meet_link=None,
    )


def _build_service():
    session = FakeSession()
    payments = FakePaymentsRepository()
    leads = FakeLeadsRepository({1: _lead()})
    courses = FakeCoursesRepository({7: SimpleNamespace(id=7, name="Data Science", fee=Decimal("52000.00"))})
    gateway = FakeGateway()
    publisher = FakePublisher()
    service = PaymentsService(
        session=session,
        repository=payments,
        leads_repository=leads,
        courses_repository=courses,
        gateway=gateway,
        publisher=publisher,
        settings=Settings(_env_file=None),
        now_provider=lambda: NOW,
        link_factory=lambda base_url: f"{base_url}/abc-defg-hij",
    )
    return service, SimpleNamespace(
        session=session,
        payments=payments,
        leads=leads,
        gateway=gateway,
        publisher=publisher,
    )


def _webhook_body(event: str, order_id: str, **entity) -> bytes:
    return json.dumps(
        {"event": event, "payload": {"payment": {"entity": {"order_id": order_id, **entity}}}},
    ).encode("utf-8")


@pytest.mark.asyncio
async def test_registration_round_trip_schedules_interview() -> None:
    service, deps = _build_service()

    order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    assert order.amount == Decimal("1870.00")
    assert order.amount_minor == 187000
    assert order.key_id == "rzp_test_key"
    assert deps.gateway.orders[0][2] == "rcpt_1_REGISTRATION"
    assert deps.publisher.kinds() == [EventTypeEnum.PAYMENT_INITIATED]

    confirmation = await service.confirm_payment(order.order_id, "pay_1", "sig")

    lead = deps.leads.leads[1]
    assert confirmation.replayed is False
    assert confirmation.payment.status == PaymentStatusEnum.PAID
    assert lead.registration_fee_status == FeeStatusEnum.PAID
    assert lead.application_status == ApplicationStatusEnum.INTERVIEW_SCHEDULED
    assert lead.interview_scheduled_at == NOW + timedelta(minutes=60)
    assert deps.publisher.kinds()[1:] == [
        EventTypeEnum.PAYMENT_VERIFIED,
        EventTypeEnum.INTERVIEW_SCHEDULE,
    ]
    assert lead.meet_link == "https://meet.google.com/abc-defg-hij"
    topic, key, invitation = deps.publisher.published[2]
    assert topic == "emails"
    assert key == "student-1"
    assert invitation.meet_link == lead.meet_link


@pytest.mark.asyncio
async def test_repeated_confirmation_reemits_events_without_rewriting() -> None:
    service, deps = _build_service()
    order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    await service.confirm_payment(order.order_id, "pay_1", "sig")

    replay = await service.confirm_payment(order.order_id, "pay_other", "sig2")

    assert replay.replayed is True
    assert replay.payment.payment_id == "pay_1"
    assert deps.leads.registration_marks == 1
    assert deps.publisher.kinds().count(EventTypeEnum.PAYMENT_VERIFIED) == 2


@pytest.mark.asyncio
async def test_second_registration_after_payment_is_rejected() -> None:
    service, deps = _build_service()
    order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    await service.confirm_payment(order.order_id, "pay_1", "sig")

    with pytest.raises(ConflictException):
        await service.initiate_payment(
            PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
        )
    assert len(deps.gateway.orders) == 1


@pytest.mark.asyncio
async def test_course_fee_requires_paid_registration_and_creates_nothing() -> None:
    service, deps = _build_service()

    with pytest.raises(InvalidException):
        await service.initiate_payment(
            PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.COURSE_FEE, course_id=7),
        )

    assert deps.payments.course_payments == {}
    assert deps.gateway.orders == []
    assert deps.publisher.published == []


@pytest.mark.asyncio
async def test_course_fee_after_registration_marks_course_paid() -> None:
    service, deps = _build_service()
    registration = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    await service.confirm_payment(registration.order_id, "pay_1", "sig")

    course_order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.COURSE_FEE, course_id=7),
    )
    assert course_order.amount == Decimal("52000.00")

    await service.confirm_payment(course_order.order_id, "pay_2", "sig")

    lead = deps.leads.leads[1]
    assert lead.course_fee_status == FeeStatusEnum.PAID
    assert lead.selected_course_id == 7
    assert deps.publisher.kinds()[-1] == EventTypeEnum.PAYMENT_VERIFIED


@pytest.mark.asyncio
async def test_unknown_course_is_not_found() -> None:
    service, deps = _build_service()
    deps.payments.registrations[1] = _payment(
        99,
        1,
        PaymentTypeEnum.REGISTRATION,
        status=PaymentStatusEnum.PAID,
        order_id="order_paid",
    )

    with pytest.raises(NotFoundException):
        await service.initiate_payment(
            PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.COURSE_FEE, course_id=8),
        )


@pytest.mark.asyncio
async def test_failed_payment_is_reused_with_a_fresh_order() -> None:
    service, deps = _build_service()
    first = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    failed = await service.fail_payment(first.order_id, "pay_x", "BAD_REQUEST_ERROR", "Card declined")
    assert failed.status == PaymentStatusEnum.FAILED
    assert failed.error_message == "BAD_REQUEST_ERROR: Card declined"

    second = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )

    record = deps.payments.registrations[1]
    assert second.order_id != first.order_id
    assert record.order_id == second.order_id
    assert record.status == PaymentStatusEnum.PENDING
    assert record.error_message is None
    assert len(deps.payments.registrations) == 1


@pytest.mark.asyncio
async def test_failure_does_not_downgrade_a_paid_record() -> None:
    service, _ = _build_service()
    order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    await service.confirm_payment(order.order_id, "pay_1", "sig")

    payment = await service.fail_payment(order.order_id, "pay_1", "X", "late failure")

    assert payment.status == PaymentStatusEnum.PAID
    assert payment.error_message is None


@pytest.mark.asyncio
async def test_cancelled_payment_cannot_be_confirmed() -> None:
    service, deps = _build_service()
    deps.payments.registrations[1] = _payment(
        5,
        1,
        PaymentTypeEnum.REGISTRATION,
        status=PaymentStatusEnum.CANCELLED,
        order_id="order_cancelled",
    )

    with pytest.raises(ConflictException):
        await service.confirm_payment("order_cancelled", "pay_1", "sig")
    assert deps.session.rollbacks == 1
    assert deps.publisher.published == []


@pytest.mark.asyncio
async def test_verify_checkout_rejects_bad_signature_without_writes() -> None:
    service, deps = _build_service()
    order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    deps.gateway.signature_valid = False

    with pytest.raises(UnauthorizedException):
        await service.verify_checkout(
            PaymentVerify(order_id=order.order_id, payment_id="pay_1", signature="forged"),
        )
    assert deps.payments.registrations[1].status == PaymentStatusEnum.PENDING


@pytest.mark.asyncio
async def test_verify_checkout_reports_current_status() -> None:
    service, deps = _build_service()
    order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )

    result = await service.verify_checkout(
        PaymentVerify(order_id=order.order_id, payment_id="pay_1", signature="good"),
    )

    assert result.verified is True
    assert result.status == PaymentStatusEnum.PENDING
    assert deps.leads.registration_marks == 0


@pytest.mark.asyncio
async def test_webhook_capture_confirms_and_failure_records_error() -> None:
    service, deps = _build_service()
    order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )

    failed_ack = await service.handle_webhook(
        _webhook_body("payment.failed", order.order_id, id="pay_f", error_code="GATEWAY_ERROR"),
        "sig",
    )
    assert failed_ack.status == "processed"
    assert deps.payments.registrations[1].status == PaymentStatusEnum.FAILED
    assert deps.payments.registrations[1].error_message == "GATEWAY_ERROR: no description"

    captured_ack = await service.handle_webhook(
        _webhook_body("payment.captured", order.order_id, id="pay_ok"),
        "sig",
    )
    assert captured_ack.status == "processed"
    assert deps.payments.registrations[1].status == PaymentStatusEnum.PAID
    assert deps.payments.registrations[1].payment_id == "pay_ok"


@pytest.mark.asyncio
async def test_webhook_with_bad_signature_is_unauthorized() -> None:
    service, deps = _build_service()
    deps.gateway.webhook_valid = False

    with pytest.raises(UnauthorizedException):
        await service.handle_webhook(_webhook_body("payment.captured", "order_1"), "forged")


@pytest.mark.asyncio
async def test_unhandled_webhook_event_is_acknowledged() -> None:
    service, _ = _build_service()

    ack = await service.handle_webhook(_webhook_body("refund.created", "order_1"), "sig")

    assert ack.status == "acknowledged"
    assert ack.event == "refund.created"


@pytest.mark.asyncio
async def test_malformed_webhook_payload_is_invalid() -> None:
    service, _ = _build_service()

    with pytest.raises(InvalidException):
        await service.handle_webhook(b"not json", "sig")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"event": "payment.captured", "payload": {"payment": None}},
        {"event": "payment.captured", "payload": ["payment"]},
        {"event": "payment.failed", "payload": {"payment": {"entity": "order_1"}}},
        {"event": "order.paid"},
    ],
)
async def test_webhook_with_wrongly_shaped_payment_is_invalid(body: dict) -> None:
    service, deps = _build_service()

    with pytest.raises(InvalidException):
        await service.handle_webhook(json.dumps(body).encode("utf-8"), "sig", "evt_shape")

    webhook = deps.payments.webhooks["evt_shape"]
    assert webhook.status == WebhookStatusEnum.FAILED
    assert "must be an object" in webhook.error_message


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"[1, 2]", b'"payment.captured"', b'{"payload": {}}', b'{"event": 7}'])
async def test_webhook_body_that_is_not_an_event_object_is_invalid(body: bytes) -> None:
    service, deps = _build_service()

    with pytest.raises(InvalidException):
        await service.handle_webhook(body, "sig")
    assert deps.payments.webhooks == {}


@pytest.mark.asyncio
async def test_webhook_log_tracks_completion_and_repeats() -> None:
    service, deps = _build_service()
    order = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    body = _webhook_body("payment.captured", order.order_id, id="pay_ok")

    await service.handle_webhook(body, "sig", "evt_1")
    await service.handle_webhook(body, "sig", "evt_1")

    webhook = deps.payments.webhooks["evt_1"]
    assert webhook.event_type == "payment.captured"
    assert webhook.signature_valid is True
    assert webhook.status == WebhookStatusEnum.COMPLETED
    assert webhook.processed_at == NOW
    assert webhook.retry_count == 1
    assert webhook.payload["payload"]["payment"]["entity"]["id"] == "pay_ok"


@pytest.mark.asyncio
async def test_webhook_for_unknown_order_is_logged_as_failed() -> None:
    service, deps = _build_service()

    with pytest.raises(NotFoundException):
        await service.handle_webhook(_webhook_body("payment.captured", "order_missing"), "sig", "evt_2")

    webhook = deps.payments.webhooks["evt_2"]
    assert webhook.status == WebhookStatusEnum.FAILED
    assert webhook.error_message == "Payment order not found"


@pytest.mark.asyncio
async def test_unsigned_webhook_is_logged_then_rejected() -> None:
    service, deps = _build_service()
    deps.gateway.webhook_valid = False
    body = json.dumps({"id": "evt_forged", "event": "payment.captured", "payload": {}}).encode("utf-8")

    with pytest.raises(UnauthorizedException):
        await service.handle_webhook(body, "forged")

    webhook = deps.payments.webhooks["evt_forged"]
    assert webhook.signature_valid is False
    assert webhook.status == WebhookStatusEnum.FAILED


@pytest.mark.asyncio
async def test_webhook_without_delivery_id_is_keyed_by_body_digest() -> None:
    service, deps = _build_service()

    await service.handle_webhook(_webhook_body("refund.created", "order_1"), "sig")

    (webhook_id,) = deps.payments.webhooks
    assert webhook_id.startswith("sha256:")
    assert deps.payments.webhooks[webhook_id].status == WebhookStatusEnum.COMPLETED


@pytest.mark.asyncio
async def test_gateway_order_is_created_before_payment_row_is_locked() -> None:
    service, deps = _build_service()
    create_order = deps.gateway.create_order
    locked_reads_at_order: list[int] = []

    async def _create_order(amount, currency, receipt):
        locked_reads_at_order.append(deps.payments.locked_reads)
        return await create_order(amount, currency, receipt)

    deps.gateway.create_order = _create_order

    await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )

    assert locked_reads_at_order == [0]
    assert deps.payments.locked_reads == 1


@pytest.mark.asyncio
async def test_payment_confirmed_during_gateway_call_is_not_reopened() -> None:
    service, deps = _build_service()
    first = await service.initiate_payment(
        PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
    )
    create_order = deps.gateway.create_order

    async def _create_order(amount, currency, receipt):
        deps.payments.registrations[1].status = PaymentStatusEnum.PAID
        return await create_order(amount, currency, receipt)

    deps.gateway.create_order = _create_order

    with pytest.raises(ConflictException):
        await service.initiate_payment(
            PaymentInitiate(student_id=1, payment_type=PaymentTypeEnum.REGISTRATION),
        )

    record = deps.payments.registrations[1]
    assert record.order_id == first.order_id
    assert record.status == PaymentStatusEnum.PAID
    assert deps.session.rollbacks == 1
