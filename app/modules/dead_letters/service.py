"""Dead-letter business logic layer."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.database import get_db_session
from app.core.metrics import EVENTS_DEAD_LETTERED_TOTAL
from app.modules.dead_letters.models import DeadLetterMessage
from app.modules.dead_letters.repository import DeadLetterRepository
from app.modules.messaging.client import BrokerError, KafkaClient
from app.modules.messaging.dispatcher import EventDispatcher, EventDispatchError
from app.shared.exceptions import ConflictException, NotFoundException
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)

AUTO_RETRY_NOTE = "Auto-retried successfully"
MANUAL_RETRY_NOTE = "Manually retried successfully"
MANUAL_RESOLVE_NOTE = "Manually resolved"


class DeadLetterRecorder:
    """Hand off an undeliverable message to the dead-letter topic and store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: KafkaClient,
        *,
        dlq_topic: str,
        max_retries: int,
        topic_timeout_seconds: float,
        now_provider: Callable = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.client = client
        self.dlq_topic = dlq_topic
        self.max_retries = max_retries
        self.topic_timeout_seconds = topic_timeout_seconds
        self.now_provider = now_provider

    async def record(
        self,
        topic: str,
        key: str | None,
        value: bytes,
        error_message: str,
        failure_reason: str,
    ) -> DeadLetterMessage:
        """Best-effort write to the DLQ topic, then always persist the row."""
        await self._send_to_topic(topic, key, value, error_message, failure_reason)
        return await self.store(topic, key, value, error_message, failure_reason)

    async def store(
        self,
        topic: str,
        key: str | None,
        value: bytes,
        error_message: str,
        failure_reason: str,
    ) -> DeadLetterMessage:
        """Persist the dead-letter row without touching the broker."""
        async with self.session_factory() as session:
            message = await DeadLetterRepository(session).create_message(
                topic=topic,
                key=key,
                value=value,
                error_message=error_message,
                max_retries=self.max_retries,
            )
            await session.commit()

        EVENTS_DEAD_LETTERED_TOTAL.labels(topic=topic, source=failure_reason).inc()
        logger.warning(
            "Dead-lettered message %s from topic %s (%s): %s",
            message.message_id,
            topic,
            failure_reason,
            error_message,
        )
        return message

    async def _send_to_topic(
        self,
        topic: str,
        key: str | None,
        value: bytes,
        error_message: str,
        failure_reason: str,
    ) -> None:
        envelope = {
            "original_topic": topic,
            "original_key": key,
            "original_value": value.decode("utf-8", errors="replace"),
            "error_message": error_message,
            "timestamp": self.now_provider().isoformat(),
            "failure_reason": failure_reason,
        }
        try:
            await asyncio.wait_for(
                self.client.send(self.dlq_topic, key, json.dumps(envelope).encode("utf-8")),
                timeout=self.topic_timeout_seconds,
            )
        except (BrokerError, TimeoutError) as exc:
            logger.warning("Could not write to dead-letter topic %s: %s", self.dlq_topic, exc)


class DeadLetterService:
    """Inspection, replay and resolution of dead-lettered messages."""

    def __init__(
        self,
        repository: DeadLetterRepository,
        dispatcher: EventDispatcher,
        *,
        now_provider: Callable = utc_now,
    ) -> None:
        self.repository = repository
        self.dispatcher = dispatcher
        self.now_provider = now_provider

    async def list_unresolved(self, limit: int) -> list[DeadLetterMessage]:
        return await self.repository.list_unresolved(limit)

    async def get_stats(self) -> dict[str, int]:
        return await self.repository.get_stats()

    async def retry_message(self, message_id: UUID) -> DeadLetterMessage:
        """Replay one message on operator request, regardless of its retry budget."""
        message = await self.repository.get_by_message_id(message_id, for_update=True)
        if message is None:
            raise NotFoundException("Dead-letter message not found")
        if message.resolved:
            raise ConflictException("Dead-letter message is already resolved")
        await self._replay(message, MANUAL_RETRY_NOTE)
        return message

    async def resolve_message(self, message_id: UUID, notes: str | None) -> DeadLetterMessage:
        message = await self.repository.get_by_message_id(message_id, for_update=True)
        if message is None:
            raise NotFoundException("Dead-letter message not found")
        return await self.repository.mark_resolved(
            message,
            self.now_provider(),
            notes or MANUAL_RESOLVE_NOTE,
        )

    async def retry_pending(self, batch_size: int) -> dict[str, int]:
        """Replay the oldest retryable messages once each."""
        stats = {"picked": 0, "resolved": 0, "failed": 0}
        messages = await self.repository.list_retryable(batch_size)
        for message in messages:
            stats["picked"] += 1
            if await self._replay(message, AUTO_RETRY_NOTE):
                stats["resolved"] += 1
            else:
                stats["failed"] += 1
        return stats

    async def _replay(self, message: DeadLetterMessage, success_note: str) -> bool:
        try:
            await self.dispatcher.dispatch(message.value)
        except EventDispatchError as exc:
            await self.repository.mark_retry_failed(message, self.now_provider(), str(exc))
            logger.warning(
                "Replay of dead-letter message %s failed (attempt %s): %s",
                message.message_id,
                message.retry_count,
                exc,
            )
            return False

        await self.repository.mark_retry_succeeded(message, self.now_provider(), success_note)
        logger.info("Dead-letter message %s replayed and resolved", message.message_id)
        return True


async def get_dead_letter_service(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> DeadLetterService:
    """Dependency provider for dead-letter service."""
    return DeadLetterService(
        repository=DeadLetterRepository(session),
        dispatcher=request.app.state.messaging.dispatcher,
    )


def build_dead_letter_recorder(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    client: KafkaClient,
) -> DeadLetterRecorder:
    return DeadLetterRecorder(
        session_factory,
        client,
        dlq_topic=settings.kafka_dlq_topic,
        max_retries=settings.dlq_max_retries,
        topic_timeout_seconds=settings.kafka_publish_timeout_seconds,
    )
