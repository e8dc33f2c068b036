"""Success response envelope shared by all routers."""

from __future__ import annotations

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Uniform success payload."""

    status: Literal["success"] = "success"
    message: str
    data: T | None = None


def success(data: T | None = None, message: str = "OK") -> Envelope[T]:
    return Envelope(message=message, data=data)
