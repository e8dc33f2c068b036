"""Event payloads exchanged over the broker.

Every message is a JSON object whose ``event`` field selects one of the
models below. Decoding goes through a discriminated union, so an unknown or
missing ``event`` is a validation error like any other malformed payload.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from app.shared.utils import utc_now


class BaseEvent(BaseModel):
    """Fields common to every event."""

    model_config = ConfigDict(extra="ignore")

    timestamp: datetime = Field(default_factory=utc_now)


class LeadCreatedEvent(BaseEvent):
    event: Literal["lead.created"] = "lead.created"
    lead_id: int
    student_name: str
    student_email: str
    student_phone: str
    counselor_id: int | None = None
    lead_source: str


class PaymentInitiatedEvent(BaseEvent):
    event: Literal["payment.initiated"] = "payment.initiated"
    student_id: int
    payment_type: str
    order_id: str
    amount: Decimal
    currency: str
    course_id: int | None = None


class PaymentVerifiedEvent(BaseEvent):
    event: Literal["payment.verified"] = "payment.verified"
    student_id: int
    payment_type: str
    order_id: str
    payment_id: str | None = None
    course_id: int | None = None


class EmailSendEvent(BaseEvent):
    event: Literal["email.send"] = "email.send"
    recipient: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)


class EmailSentEvent(BaseEvent):
    event: Literal["email.sent"] = "email.sent"
    recipient: str
    subject: str


class InterviewScheduleEvent(BaseEvent):
    event: Literal["interview.schedule"] = "interview.schedule"
    student_id: int
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    scheduled_at: datetime | None = None
    meet_link: str | None = None


class ApplicationAcceptedEvent(BaseEvent):
    event: Literal["application.accepted"] = "application.accepted"
    student_id: int
    email: str
    course: str | None = None
    status: str = "ACCEPTED"


class ApplicationRejectedEvent(BaseEvent):
    event: Literal["application.rejected"] = "application.rejected"
    student_id: int
    email: str
    status: str = "REJECTED"


AdmissionEvent = Annotated[
    Union[
        LeadCreatedEvent,
        PaymentInitiatedEvent,
        PaymentVerifiedEvent,
        EmailSendEvent,
        EmailSentEvent,
        InterviewScheduleEvent,
        ApplicationAcceptedEvent,
        ApplicationRejectedEvent,
    ],
    Field(discriminator="event"),
]

_event_adapter: TypeAdapter[AdmissionEvent] = TypeAdapter(AdmissionEvent)


def encode_event(event: BaseEvent) -> bytes:
    """Serialize an event to its JSON wire form."""
    return event.model_dump_json().encode("utf-8")


def decode_event(value: bytes | str) -> BaseEvent:
    """Parse raw bytes into the matching event model.

    Raises pydantic.ValidationError for malformed JSON, a missing or unknown
    ``event`` field, or missing event-specific fields.
    """
    return _event_adapter.validate_json(value)
