"""Long-running broker consumer."""

from __future__ import annotations

import logging

from app.core.metrics import EVENTS_CONSUMED_TOTAL
from app.modules.dead_letters.service import DeadLetterRecorder
from app.modules.messaging.client import KafkaClient
from app.modules.messaging.dispatcher import EventDispatcher, EventDispatchError

logger = logging.getLogger(__name__)


class EventConsumer:
    """Pull messages and dispatch them, dead-lettering anything that fails."""

    def __init__(
        self,
        client: KafkaClient,
        dispatcher: EventDispatcher,
        recorder: DeadLetterRecorder,
        *,
        topics: tuple[str, ...],
        poll_timeout_ms: int = 10_000,
    ) -> None:
        self.client = client
        self.dispatcher = dispatcher
        self.recorder = recorder
        self.topics = topics
        self.poll_timeout_ms = poll_timeout_ms

    async def handle_message(self, topic: str, key: bytes | None, value: bytes) -> bool:
        """Process one message. Returns False when it was dead-lettered."""
        try:
            event = await self.dispatcher.dispatch(value)
        except EventDispatchError as exc:
            EVENTS_CONSUMED_TOTAL.labels(event=exc.event_type or "unknown", outcome="failed").inc()
            logger.warning("Failed to process message from %s: %s", topic, exc)
            await self.recorder.record(
                topic,
                key.decode("utf-8", errors="replace") if key else None,
                value,
                str(exc),
                failure_reason="consume",
            )
            return False

        EVENTS_CONSUMED_TOTAL.labels(event=event.event, outcome="processed").inc()
        return True

    async def run(self) -> None:
        """Poll until cancelled. An empty poll simply loops."""
        consumer = self.client.create_consumer(self.topics)
        await consumer.start()
        logger.info("Kafka consumer subscribed to %s", ", ".join(self.topics))
        try:
            while True:
                batches = await consumer.getmany(timeout_ms=self.poll_timeout_ms)
                for messages in batches.values():
                    for message in messages:
                        try:
                            await self.handle_message(
                                message.topic,
                                message.key,
                                message.value or b"",
                            )
                        except Exception:
                            logger.exception(
                                "Message at %s[%s]@%s could not be processed or dead-lettered",
                                message.topic,
                                message.partition,
                                message.offset,
                            )
        finally:
            await consumer.stop()
            logger.info("Kafka consumer stopped")
