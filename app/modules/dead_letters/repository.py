"""Dead-letter repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.dead_letters.models import DeadLetterMessage


class DeadLetterRepository:
    """DB access methods for dead-letter messages."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_message(
        self,
        topic: str,
        key: str | None,
        value: bytes,
        error_message: str,
        max_retries: int,
    ) -> DeadLetterMessage:
        message = DeadLetterMessage(
            topic=topic,
            key=key,
            value=value,
            error_message=error_message,
            retry_count=0,
            max_retries=max_retries,
            resolved=False,
        )
        self.session.add(message)
        await self.session.flush()
        return message

    async def get_by_message_id(
        self,
        message_id: UUID,
        *,
        for_update: bool = False,
    ) -> DeadLetterMessage | None:
        stmt = select(DeadLetterMessage).where(DeadLetterMessage.message_id == message_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def list_unresolved(self, limit: int) -> list[DeadLetterMessage]:
        stmt = (
            select(DeadLetterMessage)
            .where(DeadLetterMessage.resolved.is_(False))
            .order_by(DeadLetterMessage.created_at.desc())
            .limit(limit)
        )
        return (await self.session.scalars(stmt)).all()

    async def list_retryable(self, limit: int) -> list[DeadLetterMessage]:
        """Oldest unresolved rows with retries left, skipping rows another replay holds."""
        stmt = (
            select(DeadLetterMessage)
            .where(
                DeadLetterMessage.resolved.is_(False),
                DeadLetterMessage.retry_count < DeadLetterMessage.max_retries,
            )
            .order_by(DeadLetterMessage.created_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return (await self.session.scalars(stmt)).all()

    async def mark_retry_succeeded(
        self,
        message: DeadLetterMessage,
        retried_at: datetime,
        notes: str,
    ) -> DeadLetterMessage:
        message.retry_count += 1
        message.last_retry_at = retried_at
        message.resolved = True
        message.resolved_at = retried_at
        message.notes = notes
        await self.session.flush()
        return message

    async def mark_retry_failed(
        self,
        message: DeadLetterMessage,
        retried_at: datetime,
        error_message: str,
    ) -> DeadLetterMessage:
        message.retry_count += 1
        message.last_retry_at = retried_at
        message.error_message = error_message
        await self.session.flush()
        return message

    async def mark_resolved(
        self,
        message: DeadLetterMessage,
        resolved_at: datetime,
        notes: str,
    ) -> DeadLetterMessage:
        message.resolved = True
        message.resolved_at = resolved_at
        message.notes = notes
        await self.session.flush()
        return message

    async def get_stats(self) -> dict[str, int]:
        stmt = select(
            func.count(DeadLetterMessage.id),
            func.coalesce(func.sum(case((DeadLetterMessage.resolved.is_(False), 1), else_=0)), 0),
            func.coalesce(func.sum(case((DeadLetterMessage.resolved.is_(True), 1), else_=0)), 0),
        )
        total, unresolved, resolved = (await self.session.execute(stmt)).one()
        return {
            "total_dlq_messages": int(total or 0),
            "unresolved_messages": int(unresolved or 0),
            "resolved_messages": int(resolved or 0),
        }
