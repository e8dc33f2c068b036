"""Counselor ORM models."""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin


class Counselor(BaseModelMixin, Base):
    """Admission counselor with a bounded lead load."""

    __tablename__ = "counselor"
    __table_args__ = (
        CheckConstraint("assigned_count <= max_capacity", name="assigned_within_capacity"),
        Index("ix_counselor_load", "assigned_count", "id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    assigned_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    is_referral_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
