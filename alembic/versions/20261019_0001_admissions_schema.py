"""Admissions schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


fee_status_enum = sa.Enum("PENDING", "PAID", name="fee_status_enum", native_enum=False)
application_status_enum = sa.Enum(
    "NEW",
    "INTERVIEW_SCHEDULED",
    "ACCEPTED",
    "REJECTED",
    name="application_status_enum",
    native_enum=False,
)
payment_status_enum = sa.Enum(
    "PENDING",
    "PAID",
    "FAILED",
    "CANCELLED",
    name="payment_status_enum",
    native_enum=False,
)


def _id_col() -> sa.Column:
    return sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _payment_cols() -> list[sa.Column]:
    return [
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", payment_status_enum, nullable=False),
        sa.Column("order_id", sa.String(length=255), nullable=True),
        sa.Column("payment_id", sa.String(length=255), nullable=True),
        sa.Column("signature", sa.Text(), nullable=True),
        sa.Column("refund_id", sa.String(length=255), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "counselor",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("assigned_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("is_referral_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint(
            "assigned_count <= max_capacity",
            name="ck_counselor_assigned_within_capacity",
        ),
    )
    op.create_index(
        "ix_counselor_load",
        "counselor",
        ["assigned_count", "id"],
        unique=False,
    )

    op.create_table(
        "course",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "student_lead",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("education", sa.String(length=200), nullable=True),
        sa.Column("lead_source", sa.String(length=100), nullable=False),
        sa.Column("counselor_id", sa.Integer(), nullable=True),
        sa.Column("registration_fee_status", fee_status_enum, nullable=False),
        sa.Column("course_fee_status", fee_status_enum, nullable=False),
        sa.Column("application_status", application_status_enum, nullable=False),
        sa.Column("selected_course_id", sa.Integer(), nullable=True),
        sa.Column("registration_payment_id", sa.Integer(), nullable=True),
        sa.Column("course_payment_id", sa.Integer(), nullable=True),
        sa.Column("interview_scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["counselor_id"],
            ["counselor.id"],
            name="fk_student_lead_counselor_id_counselor",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["selected_course_id"],
            ["course.id"],
            name="fk_student_lead_selected_course_id_course",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("email", name="uq_student_lead_email"),
        sa.UniqueConstraint("phone", name="uq_student_lead_phone"),
    )
    op.create_index("ix_student_lead_counselor_id", "student_lead", ["counselor_id"], unique=False)

    op.create_table(
        "registration_payment",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", sa.Integer(), nullable=False),
        *_payment_cols(),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["student_lead.id"],
            name="fk_registration_payment_student_id_student_lead",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("student_id", name="uq_registration_payment_student_id"),
        sa.UniqueConstraint("order_id", name="uq_registration_payment_order_id"),
    )
    op.create_index(
        "ix_registration_payment_status",
        "registration_payment",
        ["status"],
        unique=False,
    )

    op.create_table(
        "course_payment",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        *_payment_cols(),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["student_lead.id"],
            name="fk_course_payment_student_id_student_lead",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["course_id"],
            ["course.id"],
            name="fk_course_payment_course_id_course",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("student_id", "course_id", name="uq_course_payment_student_id_course_id"),
        sa.UniqueConstraint("order_id", name="uq_course_payment_order_id"),
    )
    op.create_index("ix_course_payment_student_id", "course_payment", ["student_id"], unique=False)
    op.create_index("ix_course_payment_status", "course_payment", ["status"], unique=False)

    op.create_table(
        "dlq_messages",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("message_id", sa.Uuid(), nullable=False),
        sa.Column("topic", sa.String(length=255), nullable=False),
        sa.Column("key", sa.Text(), nullable=True),
        sa.Column("value", sa.LargeBinary(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("last_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("message_id", name="uq_dlq_messages_message_id"),
    )
    op.create_index("ix_dlq_messages_topic", "dlq_messages", ["topic"], unique=False)
    op.create_index("ix_dlq_messages_resolved", "dlq_messages", ["resolved"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_dlq_messages_resolved", table_name="dlq_messages")
    op.drop_index("ix_dlq_messages_topic", table_name="dlq_messages")
    op.drop_table("dlq_messages")

    op.drop_index("ix_course_payment_status", table_name="course_payment")
    op.drop_index("ix_course_payment_student_id", table_name="course_payment")
    op.drop_table("course_payment")

    op.drop_index("ix_registration_payment_status", table_name="registration_payment")
    op.drop_table("registration_payment")

    op.drop_index("ix_student_lead_counselor_id", table_name="student_lead")
    op.drop_table("student_lead")

    op.drop_table("course")

    op.drop_index("ix_counselor_load", table_name="counselor")
    op.drop_table("counselor")
