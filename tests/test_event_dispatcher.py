from __future__ import annotations

import pytest

from app.core.enums import EventTypeEnum
from app.modules.messaging.dispatcher import EventDispatcher, EventDispatchError
from app.modules.messaging.events import (
    EmailSendEvent,
    InterviewScheduleEvent,
    decode_event,
    encode_event,
)


def _dispatcher_with(handled: list) -> EventDispatcher:
    dispatcher = EventDispatcher()

    async def _record(event) -> None:
        handled.append(event)

    for event_type in EventTypeEnum:
        dispatcher.register(event_type, _record)
    return dispatcher


@pytest.mark.asyncio
async def test_known_event_reaches_its_handler() -> None:
    handled: list = []
    dispatcher = _dispatcher_with(handled)
    event = EmailSendEvent(recipient="a@b.in", subject="Hi", body="Welcome")

    result = await dispatcher.dispatch(encode_event(event))

    assert isinstance(result, EmailSendEvent)
    assert handled == [result]
    assert result.recipient == "a@b.in"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("raw", "message"),
    [
        (b'{"event":"lead.updated","lead_id":1}', "unknown event type"),
        (b'{"lead_id":1}', "missing event field"),
        (b"{not json", "malformed JSON payload"),
    ],
)
async def test_undecodable_messages_raise_dispatch_error(raw: bytes, message: str) -> None:
    handled: list = []
    dispatcher = _dispatcher_with(handled)

    with pytest.raises(EventDispatchError) as exc:
        await dispatcher.dispatch(raw)

    assert str(exc.value) == message
    assert handled == []


@pytest.mark.asyncio
async def test_missing_required_field_names_the_field() -> None:
    dispatcher = _dispatcher_with([])

    with pytest.raises(EventDispatchError) as exc:
        await dispatcher.dispatch(b'{"event":"interview.schedule","student_id":3,"email":"a@b.in"}')

    assert "name" in str(exc.value)


@pytest.mark.asyncio
async def test_handler_failure_carries_event_type() -> None:
    dispatcher = EventDispatcher()

    async def _explode(_) -> None:
        raise LookupError("Student 3 not found")

    dispatcher.register(EventTypeEnum.INTERVIEW_SCHEDULE, _explode)
    raw = encode_event(InterviewScheduleEvent(student_id=3, name="Ravi", email="ravi@b.in"))

    with pytest.raises(EventDispatchError) as exc:
        await dispatcher.dispatch(raw)

    assert exc.value.event_type == "interview.schedule"
    assert "Student 3 not found" in str(exc.value)


@pytest.mark.asyncio
async def test_event_without_handler_is_rejected() -> None:
    dispatcher = EventDispatcher()

    with pytest.raises(EventDispatchError) as exc:
        await dispatcher.dispatch(b'{"event":"email.sent","recipient":"a@b.in","subject":"Hi"}')

    assert exc.value.event_type == "email.sent"


def test_ensure_complete_lists_missing_kinds() -> None:
    dispatcher = EventDispatcher()

    async def _noop(_) -> None:
        return None

    dispatcher.register(EventTypeEnum.LEAD_CREATED, _noop)

    with pytest.raises(RuntimeError) as exc:
        dispatcher.ensure_complete()
    assert "email.send" in str(exc.value)


def test_duplicate_registration_is_rejected() -> None:
    dispatcher = EventDispatcher()

    async def _noop(_) -> None:
        return None

    dispatcher.register(EventTypeEnum.LEAD_CREATED, _noop)
    with pytest.raises(ValueError):
        dispatcher.register(EventTypeEnum.LEAD_CREATED, _noop)


def test_extra_fields_are_ignored_on_decode() -> None:
    event = decode_event(b'{"event":"email.sent","recipient":"a@b.in","subject":"Hi","trace":"x"}')

    assert event.event == "email.sent"
    assert not hasattr(event, "trace")
