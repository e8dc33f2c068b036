"""Bounded publish queue drained by a fixed pool of workers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from app.core.metrics import EVENT_PUBLISH_RETRIES_TOTAL, EVENTS_PUBLISHED_TOTAL
from app.modules.dead_letters.service import DeadLetterRecorder
from app.modules.messaging.client import BrokerError, KafkaClient
from app.modules.messaging.events import BaseEvent, encode_event

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OutgoingMessage:
    topic: str
    key: str | None
    value: bytes


class EventPublisher:
    """Fire-and-forget publishing with bounded retry and dead-letter fallback.

    Callers only enqueue. Workers write to the broker with a per-attempt
    timeout, back off exponentially between attempts, and hand exhausted
    messages to the dead-letter recorder so nothing is dropped silently.
    """

    def __init__(
        self,
        client: KafkaClient,
        recorder: DeadLetterRecorder,
        *,
        queue_size: int = 1000,
        workers: int = 4,
        max_attempts: int = 3,
        attempt_timeout_seconds: float = 5.0,
        base_backoff_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.recorder = recorder
        self.workers = workers
        self.max_attempts = max_attempts
        self.attempt_timeout_seconds = attempt_timeout_seconds
        self.base_backoff_seconds = base_backoff_seconds
        self.sleep = sleep
        self._queue: asyncio.Queue[OutgoingMessage] = asyncio.Queue(maxsize=queue_size)
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(), name=f"event-publisher-{index}")
            for index in range(self.workers)
        ]
        logger.info("Event publisher started with %s workers", self.workers)

    async def stop(self) -> None:
        """Drain queued messages, then stop the workers."""
        if self._tasks:
            await self._queue.join()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Event publisher stopped")

    async def publish(self, topic: str, key: str | None, event: BaseEvent | bytes) -> None:
        """Queue an event for delivery without waiting on the broker.

        Never raises: on overflow the message goes straight to the dead-letter
        store, and a failure there is only logged.
        """
        value = event if isinstance(event, bytes) else encode_event(event)
        message = OutgoingMessage(topic=topic, key=key, value=value)
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Publish queue full, dead-lettering message for topic %s", topic)
            try:
                await self.recorder.store(
                    topic,
                    key,
                    value,
                    "publish queue full",
                    failure_reason="queue_overflow",
                )
            except Exception:
                logger.exception(
                    "Overflowed message for topic %s with key %s could not be dead-lettered",
                    topic,
                    key,
                )

    async def deliver(self, message: OutgoingMessage) -> bool:
        """Try to write one message, dead-lettering it once attempts run out."""
        last_error = "unknown error"
        for attempt in range(1, self.max_attempts + 1):
            try:
                await asyncio.wait_for(
                    self.client.send(message.topic, message.key, message.value),
                    timeout=self.attempt_timeout_seconds,
                )
            except (BrokerError, TimeoutError) as exc:
                last_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "Publish attempt %s/%s to %s failed: %s",
                    attempt,
                    self.max_attempts,
                    message.topic,
                    last_error,
                )
                if attempt < self.max_attempts:
                    EVENT_PUBLISH_RETRIES_TOTAL.labels(topic=message.topic).inc()
                    await self.sleep(self.base_backoff_seconds * (2 ** (attempt - 1)))
                continue

            EVENTS_PUBLISHED_TOTAL.labels(topic=message.topic).inc()
            logger.debug("Published message to %s with key %s", message.topic, message.key)
            return True

        await self.recorder.record(
            message.topic,
            message.key,
            message.value,
            f"publish failed after {self.max_attempts} attempts: {last_error}",
            failure_reason="publish",
        )
        return False

    async def _worker(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.deliver(message)
            except Exception:
                logger.exception(
                    "Message for topic %s with key %s could not be dead-lettered",
                    message.topic,
                    message.key,
                )
            finally:
                self._queue.task_done()
