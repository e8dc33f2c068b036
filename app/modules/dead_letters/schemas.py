"""Dead-letter schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeadLetterRead(BaseModel):
    """Dead-letter message response schema."""

    model_config = ConfigDict(from_attributes=True)

    message_id: UUID
    topic: str
    key: str | None
    value: str
    error_message: str | None
    retry_count: int
    max_retries: int
    created_at: datetime
    last_retry_at: datetime | None
    resolved: bool
    resolved_at: datetime | None
    notes: str | None

    @field_validator("value", mode="before")
    @classmethod
    def decode_value(cls, value: object) -> object:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode("utf-8", errors="replace")
        return value


class DeadLetterResolve(BaseModel):
    """Manual resolution request."""

    notes: str | None = Field(default=None, max_length=2000)


class DeadLetterStats(BaseModel):
    total_dlq_messages: int
    unresolved_messages: int
    resolved_messages: int
