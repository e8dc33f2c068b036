from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from types import SimpleNamespace
from uuid import uuid4

import pytest

import app.modules.dead_letters.service as dead_letter_service_module
from app.modules.dead_letters.service import DeadLetterRecorder
from app.modules.messaging.client import BrokerPublishError, BrokerUnavailableError
from app.modules.messaging.events import EmailSendEvent, encode_event
from app.modules.messaging.publisher import EventPublisher, OutgoingMessage


class FakeClient:
    def __init__(self, failures: int = 0, *, hang: bool = False) -> None:
        self.failures = failures
        self.hang = hang
        self.attempts = 0
        self.sent: list[tuple[str, str | None, bytes]] = []

    async def send(self, topic: str, key: str | None, value: bytes) -> None:
        self.attempts += 1
        if self.hang:
            await asyncio.Event().wait()
        if self.attempts <= self.failures:
            raise BrokerPublishError("broker down")
        self.sent.append((topic, key, value))


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
                "broker": True,
            },
        )

    async def store(self, topic, key, value, error_message, failure_reason) -> None:
        self.records.append(
            {
                "topic": topic,
                "key": key,
                "value": value,
                "error_message": error_message,
                "failure_reason": failure_reason,
                "broker": False,
            },
        )


def _publisher(client: FakeClient, recorder: FakeRecorder, sleeps: list[float], **overrides) -> EventPublisher:
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    options = {"queue_size": 10, "workers": 2, "max_attempts": 3, "attempt_timeout_seconds": 1.0}
    options.update(overrides)
    return EventPublisher(client, recorder, base_backoff_seconds=1.0, sleep=_sleep, **options)


@pytest.mark.asyncio
async def test_exhausted_attempts_dead_letter_the_exact_bytes() -> None:
    client = FakeClient(failures=3)
    recorder = FakeRecorder()
    sleeps: list[float] = []
    publisher = _publisher(client, recorder, sleeps)
    value = b'{"event":"email.send","recipient":"a@b.in","subject":"Hi \\u00e9","body":"x"}'

    delivered = await publisher.deliver(OutgoingMessage(topic="emails", key="a@b.in", value=value))

    assert delivered is False
    assert client.attempts == 3
    assert sleeps == [1.0, 2.0]
    assert len(recorder.records) == 1
    record = recorder.records[0]
    assert record["value"] == value
    assert record["topic"] == "emails"
    assert record["key"] == "a@b.in"
    assert record["failure_reason"] == "publish"
    assert "broker down" in record["error_message"]


@pytest.mark.asyncio
async def test_transient_failure_is_retried_then_delivered() -> None:
    client = FakeClient(failures=1)
    recorder = FakeRecorder()
    sleeps: list[float] = []
    publisher = _publisher(client, recorder, sleeps)

    delivered = await publisher.deliver(OutgoingMessage(topic="leads", key="lead-1", value=b"{}"))

    assert delivered is True
    assert client.sent == [("leads", "lead-1", b"{}")]
    assert sleeps == [1.0]
    assert recorder.records == []


@pytest.mark.asyncio
async def test_hanging_broker_counts_as_failed_attempt() -> None:
    client = FakeClient(hang=True)
    recorder = FakeRecorder()
    publisher = _publisher(client, recorder, [], max_attempts=2, attempt_timeout_seconds=0.01)

    delivered = await publisher.deliver(OutgoingMessage(topic="leads", key=None, value=b"{}"))

    assert delivered is False
    assert client.attempts == 2
    assert recorder.records[0]["failure_reason"] == "publish"


@pytest.mark.asyncio
async def test_full_queue_dead_letters_instead_of_blocking() -> None:
    client = FakeClient()
    recorder = FakeRecorder()
    publisher = _publisher(client, recorder, [], queue_size=1)
    event = EmailSendEvent(recipient="a@b.in", subject="Hello", body="Body")

    await publisher.publish("emails", "first", event)
    await publisher.publish("emails", "second", event)

    assert len(recorder.records) == 1
    assert recorder.records[0]["key"] == "second"
    assert recorder.records[0]["failure_reason"] == "queue_overflow"
    assert recorder.records[0]["value"] == encode_event(event)
    assert recorder.records[0]["broker"] is False
    assert client.attempts == 0


@pytest.mark.asyncio
async def test_overflow_store_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    class BrokenStoreRecorder(FakeRecorder):
        async def store(self, topic, key, value, error_message, failure_reason) -> None:
            raise RuntimeError("database unavailable")

    publisher = _publisher(FakeClient(), BrokenStoreRecorder(), [], queue_size=1)

    await publisher.publish("leads", "lead-1", b"{}")
    await publisher.publish("leads", "lead-2", b"{}")

    assert "could not be dead-lettered" in caplog.text


@pytest.mark.asyncio
async def test_workers_drain_queue_on_stop() -> None:
    client = FakeClient()
    recorder = FakeRecorder()
    publisher = _publisher(client, recorder, [])
    await publisher.start()

    for index in range(5):
        await publisher.publish("leads", f"lead-{index}", b"{}")
    await publisher.stop()

    assert sorted(key for _, key, _ in client.sent) == [f"lead-{index}" for index in range(5)]
    assert recorder.records == []


class FakeDeadLetterSession:
    def __init__(self) -> None:
        self.commits = 0

    async def __aenter__(self) -> "FakeDeadLetterSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def commit(self) -> None:
        self.commits += 1


class FakeDeadLetterRepository:
    rows: list[SimpleNamespace] = []

    def __init__(self, session: FakeDeadLetterSession) -> None:
        self.session = session

    async def create_message(self, topic, key, value, error_message, max_retries) -> SimpleNamespace:
        row = SimpleNamespace(
            message_id=uuid4(),
            topic=topic,
            key=key,
            value=value,
            error_message=error_message,
            max_retries=max_retries,
            retry_count=0,
            resolved=False,
        )
        self.rows.append(row)
        return row


def _recorder(
    monkeypatch: pytest.MonkeyPatch,
    client: FakeClient,
) -> tuple[DeadLetterRecorder, list[FakeDeadLetterSession]]:
    FakeDeadLetterRepository.rows = []
    monkeypatch.setattr(dead_letter_service_module, "DeadLetterRepository", FakeDeadLetterRepository)
    sessions: list[FakeDeadLetterSession] = []

    def _session_factory() -> FakeDeadLetterSession:
        session = FakeDeadLetterSession()
        sessions.append(session)
        return session

    recorder = DeadLetterRecorder(
        _session_factory,
        client,
        dlq_topic="admissions.dlq",
        max_retries=3,
        topic_timeout_seconds=1.0,
        now_provider=lambda: datetime(2026, 3, 1, tzinfo=UTC),
    )
    return recorder, sessions


@pytest.mark.asyncio
async def test_recorder_writes_envelope_and_persists_row(monkeypatch: pytest.MonkeyPatch) -> None:
    client = FakeClient()
    recorder, sessions = _recorder(monkeypatch, client)

    row = await recorder.record("leads", "lead-9", b'{"event":"lead.created"}', "boom", "consume")

    assert row.value == b'{"event":"lead.created"}'
    assert row.max_retries == 3
    assert sessions[0].commits == 1

    topic, key, value = client.sent[0]
    envelope = json.loads(value)
    assert topic == "admissions.dlq"
    assert key == "lead-9"
    assert envelope == {
        "original_topic": "leads",
        "original_key": "lead-9",
        "original_value": '{"event":"lead.created"}',
        "error_message": "boom",
        "timestamp": "2026-03-01T00:00:00+00:00",
        "failure_reason": "consume",
    }


@pytest.mark.asyncio
async def test_recorder_persists_even_when_dlq_topic_is_down(monkeypatch: pytest.MonkeyPatch) -> None:
    class UnavailableClient(FakeClient):
        async def send(self, topic, key, value) -> None:
            raise BrokerUnavailableError("No Kafka brokers configured")

    recorder, sessions = _recorder(monkeypatch, UnavailableClient())

    row = await recorder.record("payments", None, b"raw", "publish failed", "publish")

    assert row.topic == "payments"
    assert len(FakeDeadLetterRepository.rows) == 1
    assert sessions[0].commits == 1


@pytest.mark.asyncio
async def test_recorder_store_skips_the_broker(monkeypatch: pytest.MonkeyPatch) -> None:
    client = FakeClient()
    recorder, sessions = _recorder(monkeypatch, client)

    row = await recorder.store("emails", "a@b.in", b"{}", "publish queue full", "queue_overflow")

    assert row.key == "a@b.in"
    assert client.attempts == 0
    assert sessions[0].commits == 1
