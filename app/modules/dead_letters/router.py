"""Dead-letter administration API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.modules.dead_letters.schemas import DeadLetterRead, DeadLetterResolve, DeadLetterStats
from app.modules.dead_letters.service import DeadLetterService, get_dead_letter_service
from app.shared.responses import Envelope, success

router = APIRouter(prefix="/dlq", tags=["dead-letters"])


@router.get("/messages", response_model=Envelope[list[DeadLetterRead]])
async def list_dead_letters(
    limit: int = Query(default=50, ge=1, le=500),
    service: DeadLetterService = Depends(get_dead_letter_service),
) -> Envelope[list[DeadLetterRead]]:
    """List unresolved dead-letter messages, newest first."""
    messages = await service.list_unresolved(limit)
    return success(
        [DeadLetterRead.model_validate(item) for item in messages],
        "Dead-letter messages retrieved",
    )


@router.post("/messages/{message_id}/retry", response_model=Envelope[DeadLetterRead])
async def retry_dead_letter(
    message_id: UUID,
    service: DeadLetterService = Depends(get_dead_letter_service),
) -> Envelope[DeadLetterRead]:
    """Replay one message through the event handlers."""
    message = await service.retry_message(message_id)
    outcome = "Message retried successfully" if message.resolved else "Message retry failed"
    return success(DeadLetterRead.model_validate(message), outcome)


@router.post("/messages/{message_id}/resolve", response_model=Envelope[DeadLetterRead])
async def resolve_dead_letter(
    message_id: UUID,
    payload: DeadLetterResolve | None = None,
    service: DeadLetterService = Depends(get_dead_letter_service),
) -> Envelope[DeadLetterRead]:
    """Mark a message as resolved without replaying it."""
    message = await service.resolve_message(message_id, payload.notes if payload else None)
    return success(DeadLetterRead.model_validate(message), "Message resolved")


@router.get("/stats", response_model=Envelope[DeadLetterStats])
async def dead_letter_stats(
    service: DeadLetterService = Depends(get_dead_letter_service),
) -> Envelope[DeadLetterStats]:
    """Counts of total, unresolved and resolved messages."""
    stats = await service.get_stats()
    return success(DeadLetterStats(**stats), "Dead-letter stats retrieved")
