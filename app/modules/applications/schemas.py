"""Application review schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from app.core.enums import ApplicationDecisionEnum, ApplicationStatusEnum, PaymentTypeEnum


class ScheduleMeetRequest(BaseModel):
    """Schedule an interview for a student."""

    student_id: int = Field(gt=0)


class InterviewScheduled(BaseModel):
    student_id: int
    application_status: ApplicationStatusEnum
    interview_scheduled_at: datetime
    meet_link: str


class ApplicationActionRequest(BaseModel):
    """Accept or reject an application."""

    student_id: int = Field(gt=0)
    status: ApplicationDecisionEnum
    selected_course_id: int | None = Field(default=None, gt=0)

    @model_validator(mode="before")
    @classmethod
    def normalize_status(cls, data: object) -> object:
        if isinstance(data, dict) and isinstance(data.get("status"), str):
            return {**data, "status": data["status"].strip().upper()}
        return data

    @model_validator(mode="after")
    def require_course_for_acceptance(self) -> "ApplicationActionRequest":
        if self.status.is_acceptance and self.selected_course_id is None:
            raise ValueError("selected_course_id is required to accept an application")
        return self


class CourseFeeNextStep(BaseModel):
    """Course-fee payment the student must make next."""

    payment_type: PaymentTypeEnum = PaymentTypeEnum.COURSE_FEE
    course_id: int
    course_name: str
    amount: Decimal
    currency: str


class ApplicationDecision(BaseModel):
    student_id: int
    application_status: ApplicationStatusEnum
    next_step: CourseFeeNextStep | None = None
