"""Student lead schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.enums import ApplicationStatusEnum, FeeStatusEnum

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"


class LeadCreate(BaseModel):
    """Create lead request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(pattern=PHONE_PATTERN)
    education: str | None = Field(default=None, max_length=200)
    lead_source: str = Field(min_length=1, max_length=100)
    counselor_id: int | None = Field(default=None, gt=0)


class LeadCreated(BaseModel):
    """Result of a successful admission."""

    student_id: int
    counselor_id: int | None
    counselor_name: str
    email: str


class LeadRead(BaseModel):
    """Student lead response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: str
    education: str | None
    lead_source: str
    counselor_id: int | None
    registration_fee_status: FeeStatusEnum
    course_fee_status: FeeStatusEnum
    application_status: ApplicationStatusEnum
    selected_course_id: int | None
    interview_scheduled_at: datetime | None
    meet_link: str | None
    created_at: datetime
    updated_at: datetime


class LeadImportFailure(BaseModel):
    """One spreadsheet row that could not be admitted."""

    row: int
    email: str | None
    phone: str | None
    error: str


class LeadImportResult(BaseModel):
    """Summary of a spreadsheet upload."""

    success_count: int
    failed_count: int
    total_count: int
    failures: list[LeadImportFailure]
