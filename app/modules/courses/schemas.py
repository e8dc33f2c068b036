"""Course schemas."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strip_name(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("name must not be blank")
    return value


class CourseCreate(BaseModel):
    """Create course request."""

    name: str = Field(max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    fee: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    duration: str | None = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        return _strip_name(value)


class CourseUpdate(BaseModel):
    """Update course request. Omitted fields are left unchanged."""

    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    fee: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    duration: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str | None) -> str | None:
        return _strip_name(value)


class CourseRead(BaseModel):
    """Course response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    fee: Decimal
    duration: str | None
    is_active: bool
