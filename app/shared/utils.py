"""Shared time and scheduling helpers."""

from __future__ import annotations

import secrets
import string
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def interview_time(now: datetime, delay_minutes: int) -> datetime:
    """Interview slot offered once the registration fee is settled."""
    return ensure_utc(now) + timedelta(minutes=delay_minutes)


def meeting_link(base_url: str) -> str:
    """Return a meeting URL with a random ``abc-defg-hij`` room code."""
    code = "-".join(
        "".join(secrets.choice(string.ascii_lowercase) for _ in range(size))
        for size in (3, 4, 3)
    )
    return f"{base_url.rstrip('/')}/{code}"
