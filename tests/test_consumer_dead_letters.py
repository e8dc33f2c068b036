from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.core.enums import EventTypeEnum
from app.modules.messaging.consumer import EventConsumer
from app.modules.messaging.dispatcher import EventDispatcher
from app.modules.messaging.events import EmailSentEvent, LeadCreatedEvent, encode_event


class FakeRecorder:
    def __init__(self) -> None:
        self.records: list[dict] = []

    async def record(self, topic, key, value, error_message, failure_reason) -> None:
        self.records.append(
            {
                "topic": topic,
                "key": key,
                "value": value,
                "error_message": error_message,
                "failure_reason": failure_reason,
            },
        )


def _consumer(dispatcher: EventDispatcher, recorder: FakeRecorder) -> EventConsumer:
    return EventConsumer(
        SimpleNamespace(),
        dispatcher,
        recorder,
        topics=("leads", "emails"),
    )


def _lead_event() -> LeadCreatedEvent:
    return LeadCreatedEvent(
        lead_id=4,
        student_name="Kiran",
        student_email="kiran@studentmail.in",
        student_phone="+919812345678",
        lead_source="website",
    )


@pytest.mark.asyncio
async def test_processed_message_is_not_dead_lettered() -> None:
    dispatcher = EventDispatcher()
    handled: list = []

    async def _handle(event) -> None:
        handled.append(event)

    dispatcher.register(EventTypeEnum.EMAIL_SENT, _handle)
    recorder = FakeRecorder()

    ok = await _consumer(dispatcher, recorder).handle_message(
        "emails",
        b"kiran@studentmail.in",
        encode_event(EmailSentEvent(recipient="kiran@studentmail.in", subject="Welcome")),
    )

    assert ok is True
    assert len(handled) == 1
    assert recorder.records == []


@pytest.mark.asyncio
async def test_handler_failure_dead_letters_original_bytes() -> None:
    dispatcher = EventDispatcher()

    async def _fail(_) -> None:
        raise RuntimeError("smtp unavailable")

    dispatcher.register(EventTypeEnum.LEAD_CREATED, _fail)
    recorder = FakeRecorder()
    raw = encode_event(_lead_event())

    ok = await _consumer(dispatcher, recorder).handle_message("leads", b"lead-4", raw)

    assert ok is False
    assert recorder.records == [
        {
            "topic": "leads",
            "key": "lead-4",
            "value": raw,
            "error_message": "handler for lead.created failed: smtp unavailable",
            "failure_reason": "consume",
        },
    ]


@pytest.mark.asyncio
async def test_poison_message_is_dead_lettered_and_loop_continues() -> None:
    recorder = FakeRecorder()
    consumer = _consumer(EventDispatcher(), recorder)

    first = await consumer.handle_message("leads", None, b"garbage")
    second = await consumer.handle_message("leads", None, b'{"event":"nope"}')

    assert (first, second) == (False, False)
    assert [record["error_message"] for record in recorder.records] == [
        "malformed JSON payload",
        "unknown event type",
    ]
    assert recorder.records[0]["key"] is None
