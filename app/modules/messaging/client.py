"""Kafka client shared by the publisher, dead-letter recorder and consumer."""

from __future__ import annotations

import asyncio
import logging

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError

from app.core.config import Settings

logger = logging.getLogger(__name__)


class BrokerError(Exception):
    """Base error for broker interactions."""


class BrokerUnavailableError(BrokerError):
    """Raised when no broker is configured or the producer cannot start."""


class BrokerPublishError(BrokerError):
    """Raised when a write to the broker fails."""


class KafkaClient:
    """Owns one lazily started producer, reused for every write."""

    def __init__(self, settings: Settings) -> None:
        self.brokers = settings.kafka_brokers
        self.client_id = settings.kafka_client_id
        self.consumer_group = settings.kafka_consumer_group
        self._producer: AIOKafkaProducer | None = None
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.brokers)

    async def _get_producer(self) -> AIOKafkaProducer:
        if self._producer is not None:
            return self._producer
        async with self._lock:
            if self._producer is None:
                if not self.enabled:
                    raise BrokerUnavailableError("No Kafka brokers configured")
                producer = AIOKafkaProducer(
                    bootstrap_servers=list(self.brokers),
                    client_id=self.client_id,
                    acks="all",
                )
                try:
                    await producer.start()
                except KafkaError as exc:
                    await producer.stop()
                    raise BrokerUnavailableError(f"Failed to connect to Kafka: {exc}") from exc
                self._producer = producer
                logger.info("Kafka producer connected to %s", ",".join(self.brokers))
        return self._producer

    async def send(self, topic: str, key: str | None, value: bytes) -> None:
        """Write one message and wait for the broker acknowledgement."""
        producer = await self._get_producer()
        try:
            await producer.send_and_wait(
                topic,
                value=value,
                key=key.encode("utf-8") if key else None,
            )
        except KafkaError as exc:
            raise BrokerPublishError(f"Failed to publish to {topic}: {exc}") from exc

    def create_consumer(self, topics: tuple[str, ...]) -> AIOKafkaConsumer:
        if not self.enabled:
            raise BrokerUnavailableError("No Kafka brokers configured")
        return AIOKafkaConsumer(
            *topics,
            bootstrap_servers=list(self.brokers),
            client_id=self.client_id,
            group_id=self.consumer_group,
            auto_offset_reset="earliest",
        )

    async def close(self) -> None:
        async with self._lock:
            if self._producer is not None:
                await self._producer.stop()
                self._producer = None
                logger.info("Kafka producer closed")
