"""Dead-letter ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Integer, LargeBinary, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin


class DeadLetterMessage(BaseModelMixin, Base):
    """Event that could not be delivered or processed."""

    __tablename__ = "dlq_messages"

    message_id: Mapped[UUID] = mapped_column(Uuid, default=uuid4, nullable=False, unique=True)
    topic: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    key: Mapped[str | None] = mapped_column(Text, nullable=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    last_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
