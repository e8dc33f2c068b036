"""Counselor schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CounselorRead(BaseModel):
    """Counselor response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: str | None
    assigned_count: int
    max_capacity: int
    is_referral_enabled: bool
