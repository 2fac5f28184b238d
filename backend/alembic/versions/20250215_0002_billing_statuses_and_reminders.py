"""Add billing period statuses and reminders owned by the portal."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from portal.db_types import GUID


revision = "20250215_0002"
down_revision = "20250110_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    billing_status_enum = sa.Enum(
        "under_review",
        "invoice_sent",
        "follow_up",
        "paid",
        name="billing_status_enum",
        native_enum=False,
    )

    op.create_table(
        "billing_period_statuses",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "company_id", GUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("period_key", sa.String(length=20), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("period_label", sa.String(length=60), nullable=False),
        sa.Column("hours_allocated", sa.Numeric(6, 2), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(8, 2), nullable=True),
        sa.Column("status", billing_status_enum, nullable=False, server_default="under_review"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint(
            "company_id", "period_key", name="billing_period_statuses_company_period_key"
        ),
        sa.CheckConstraint(
            "period_end >= period_start", name="ck_billing_period_statuses_valid_range"
        ),
    )

    op.create_table(
        "reminders",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "company_id", GUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("idx_reminders_company_open", "reminders", ["company_id", "is_completed"])


def downgrade() -> None:
    op.drop_index("idx_reminders_company_open", table_name="reminders")
    op.drop_table("reminders")
    op.drop_table("billing_period_statuses")
