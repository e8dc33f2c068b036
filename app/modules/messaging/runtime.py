"""Construction and lifecycle of the messaging components."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.modules.dead_letters.service import DeadLetterRecorder, build_dead_letter_recorder
from app.modules.messaging.client import KafkaClient
from app.modules.messaging.consumer import EventConsumer
from app.modules.messaging.dispatcher import EventDispatcher
from app.modules.messaging.handlers import AdmissionEventHandlers, build_dispatcher
from app.modules.messaging.publisher import EventPublisher
from app.modules.notifications.sender import EmailSender

logger = logging.getLogger(__name__)


@dataclass
class MessagingRuntime:
    """One broker client shared by everything that publishes or consumes."""

    client: KafkaClient
    recorder: DeadLetterRecorder
    publisher: EventPublisher
    dispatcher: EventDispatcher
    consumer: EventConsumer
    _consumer_task: asyncio.Task | None = field(default=None, init=False)

    async def start(self, *, consume: bool = True) -> None:
        await self.publisher.start()
        if consume and self.client.enabled:
            self._consumer_task = asyncio.create_task(self.consumer.run(), name="event-consumer")
        elif consume:
            logger.warning("Kafka brokers not configured, consumer not started")

    async def stop(self) -> None:
        if self._consumer_task is not None:
            self._consumer_task.cancel()
            await asyncio.gather(self._consumer_task, return_exceptions=True)
            self._consumer_task = None
        await self.publisher.stop()
        await self.client.close()


def build_messaging_runtime(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> MessagingRuntime:
    client = KafkaClient(settings)
    recorder = build_dead_letter_recorder(settings, session_factory, client)
    publisher = EventPublisher(
        client,
        recorder,
        queue_size=settings.publisher_queue_size,
        workers=settings.publisher_workers,
        max_attempts=settings.kafka_publish_max_attempts,
        attempt_timeout_seconds=settings.kafka_publish_timeout_seconds,
        base_backoff_seconds=settings.kafka_publish_backoff_seconds,
    )
    handlers = AdmissionEventHandlers(
        session_factory,
        EmailSender.from_settings(settings),
        publisher,
        settings,
    )
    dispatcher = build_dispatcher(handlers)
    consumer = EventConsumer(
        client,
        dispatcher,
        recorder,
        topics=settings.kafka_consumer_topics,
        poll_timeout_ms=settings.kafka_consumer_poll_timeout_ms,
    )
    return MessagingRuntime(
        client=client,
        recorder=recorder,
        publisher=publisher,
        dispatcher=dispatcher,
        consumer=consumer,
    )


def get_event_publisher(request: Request) -> EventPublisher:
    """FastAPI dependency returning the process-wide publisher."""
    return request.app.state.messaging.publisher
