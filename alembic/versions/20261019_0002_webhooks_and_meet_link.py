"""Gateway webhook log and interview meeting links

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 15:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: Union[str, None] = "20261019_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


webhook_status_enum = sa.Enum(
    "RECEIVED",
    "COMPLETED",
    "FAILED",
    name="webhook_status_enum",
    native_enum=False,
)


def upgrade() -> None:
    op.add_column("student_lead", sa.Column("meet_link", sa.String(length=255), nullable=True))

    op.create_table(
        "razorpay_webhooks",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("webhook_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", webhook_status_enum, nullable=False),
        sa.Column("signature_valid", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), server_default="0", nullable=False),
        sa.UniqueConstraint("webhook_id", name="uq_razorpay_webhooks_webhook_id"),
    )
    op.create_index("ix_razorpay_webhooks_event_type", "razorpay_webhooks", ["event_type"], unique=False)
    op.create_index("ix_razorpay_webhooks_status", "razorpay_webhooks", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_razorpay_webhooks_status", table_name="razorpay_webhooks")
    op.drop_index("ix_razorpay_webhooks_event_type", table_name="razorpay_webhooks")
    op.drop_table("razorpay_webhooks")

    op.drop_column("student_lead", "meet_link")
