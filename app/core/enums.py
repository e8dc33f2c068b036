"""Core enums used across modules."""

from enum import StrEnum


class LeadSourceEnum(StrEnum):
    """Lead source tags with special routing."""

    WEBSITE = "website"
    REFERRAL = "referral"


class FeeStatusEnum(StrEnum):
    """Fee status mirrored on the lead row."""

    PENDING = "PENDING"
    PAID = "PAID"


class ApplicationStatusEnum(StrEnum):
    """Application lifecycle status."""

    NEW = "NEW"
    INTERVIEW_SCHEDULED = "INTERVIEW_SCHEDULED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class PaymentStatusEnum(StrEnum):
    """Payment record status."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PaymentTypeEnum(StrEnum):
    """Kinds of payment obligations."""

    REGISTRATION = "REGISTRATION"
    COURSE_FEE = "COURSE_FEE"


class ApplicationDecisionEnum(StrEnum):
    """Accepted spellings of an application decision."""

    ACCEPT = "ACCEPT"
    ACCEPTED = "ACCEPTED"
    REJECT = "REJECT"
    REJECTED = "REJECTED"

    @property
    def is_acceptance(self) -> bool:
        return self in (ApplicationDecisionEnum.ACCEPT, ApplicationDecisionEnum.ACCEPTED)


class EventTypeEnum(StrEnum):
    """Closed set of event kinds travelling over the broker."""

    LEAD_CREATED = "lead.created"
    PAYMENT_INITIATED = "payment.initiated"
    PAYMENT_VERIFIED = "payment.verified"
    EMAIL_SEND = "email.send"
    EMAIL_SENT = "email.sent"
    INTERVIEW_SCHEDULE = "interview.schedule"
    APPLICATION_ACCEPTED = "application.accepted"
    APPLICATION_REJECTED = "application.rejected"


class WebhookStatusEnum(StrEnum):
    """Processing status of a logged gateway webhook."""

    RECEIVED = "RECEIVED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
