"""Executable worker that replays dead-lettered messages."""

from __future__ import annotations

import asyncio
import logging
import os

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.modules.dead_letters.repository import DeadLetterRepository
from app.modules.dead_letters.service import DeadLetterService
from app.modules.messaging.dispatcher import EventDispatcher
from app.modules.messaging.runtime import build_messaging_runtime

logger = logging.getLogger(__name__)


async def run_cycle(dispatcher: EventDispatcher, batch_size: int) -> dict[str, int]:
    """Run a single retry cycle in one DB transaction."""
    async with SessionLocal() as session:
        service = DeadLetterService(DeadLetterRepository(session), dispatcher)
        stats = await service.retry_pending(batch_size)
        await session.commit()
        return stats


async def run_forever(
    dispatcher: EventDispatcher,
    batch_size: int,
    interval_seconds: int,
) -> None:
    """Retry on a fixed tick until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            stats = await run_cycle(dispatcher, batch_size)
            if stats["picked"]:
                logger.info("Dead-letter retry worker stats: %s", stats)
        except Exception:
            logger.exception("Dead-letter retry cycle failed")


async def main() -> None:
    """Run once or keep polling according to worker mode."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    mode = os.getenv("DLQ_WORKER_MODE", "once").strip().lower()

    runtime = build_messaging_runtime(settings, SessionLocal)
    await runtime.start(consume=False)
    try:
        if mode == "once":
            stats = await run_cycle(runtime.dispatcher, settings.dlq_retry_batch_size)
            logger.info("Dead-letter retry worker stats: %s", stats)
            return
        await run_forever(
            runtime.dispatcher,
            settings.dlq_retry_batch_size,
            settings.dlq_retry_interval_seconds,
        )
    finally:
        await runtime.stop()
        await close_engine()


if __name__ == "__main__":
    asyncio.run(main())
