"""Routing of decoded events to their registered handlers."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from app.core.enums import EventTypeEnum
from app.modules.messaging.events import BaseEvent, decode_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[BaseEvent], Awaitable[None]]


class EventDispatchError(Exception):
    """Raised when a message cannot be interpreted or its handler fails."""

    def __init__(self, message: str, event_type: str | None = None) -> None:
        self.event_type = event_type
        super().__init__(message)


def describe_decode_error(exc: ValidationError) -> str:
    error_types = {error["type"] for error in exc.errors()}
    if "json_invalid" in error_types:
        return "malformed JSON payload"
    if "union_tag_not_found" in error_types:
        return "missing event field"
    if "union_tag_invalid" in error_types:
        return "unknown event type"
    fields = sorted(
        ".".join(str(part) for part in error["loc"][1:])
        for error in exc.errors()
        if len(error["loc"]) > 1
    )
    if fields:
        return f"invalid event payload: {', '.join(fields)}"
    return "invalid event payload"


class EventDispatcher:
    """Registry of one handler per event kind."""

    def __init__(self) -> None:
        self._handlers: dict[EventTypeEnum, EventHandler] = {}

    def register(self, event_type: EventTypeEnum, handler: EventHandler) -> None:
        if event_type in self._handlers:
            raise ValueError(f"Handler already registered for {event_type}")
        self._handlers[event_type] = handler

    def ensure_complete(self) -> None:
        """Fail fast when an event kind has no handler."""
        missing = sorted(set(EventTypeEnum) - set(self._handlers))
        if missing:
            raise RuntimeError(f"No handler registered for: {', '.join(missing)}")

    async def dispatch(self, value: bytes) -> BaseEvent:
        """Decode and handle one raw message.

        Decoding failures, unhandled kinds and handler errors all surface as
        EventDispatchError so callers can dead-letter them uniformly.
        """
        try:
            event = decode_event(value)
        except ValidationError as exc:
            raise EventDispatchError(describe_decode_error(exc)) from exc

        handler = self._handlers.get(EventTypeEnum(event.event))
        if handler is None:
            raise EventDispatchError(f"no handler for event {event.event}", event.event)

        try:
            await handler(event)
        except Exception as exc:
            raise EventDispatchError(
                f"handler for {event.event} failed: {exc}",
                event.event,
            ) from exc
        return event
