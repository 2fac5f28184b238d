"""Tables owned by the hosted platform that the portal reads.

Production databases already have them; the revision is stamped there and
only local and test databases create the tables.
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from portal.db_types import GUID


revision = "20250110_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str = "created_at", nullable: bool = False) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=nullable, server_default=sa.func.now()
    )


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("retainer_type", sa.String(length=20), nullable=False, server_default="unlimited"),
        sa.Column("hours_allocated", sa.Numeric(10, 2), nullable=True, server_default="0"),
        sa.Column("hourly_rate", sa.Numeric(8, 2), nullable=True),
        sa.Column("payment_schedule", sa.String(length=20), nullable=True),
        sa.Column("billing_anchor_date", sa.Date(), nullable=True),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp(),
        _timestamp("updated_at"),
    )

    op.create_table(
        "profiles",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column(
            "company_id",
            GUID(),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp(),
    )

    op.create_table(
        "projects",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "company_id", GUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="queued"),
        sa.Column("phase", sa.String(length=40), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=True, server_default="normal"),
        sa.Column("assigned_to", GUID(), nullable=True),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("blocked_reason", sa.Text(), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("phase_due_date", sa.Date(), nullable=True),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("projects_company_blocked_idx", "projects", ["company_id", "is_blocked"])

    op.create_table(
        "updates",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "project_id", GUID(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("author_id", GUID(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_deliverable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_approved", sa.Boolean(), nullable=True),
        sa.Column("hours_logged", sa.Numeric(10, 2), nullable=True),
        sa.Column("change_request_text", sa.Text(), nullable=True),
        sa.Column("change_request_draft", sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.Column("change_request_submitted_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp(),
    )

    op.create_table(
        "tasks",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "project_id", GUID(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="todo"),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("assigned_to", GUID(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        _timestamp(),
        _timestamp("updated_at"),
    )

    op.create_table(
        "files",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "company_id", GUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "project_id", GUID(), sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("category", sa.String(length=20), nullable=False, server_default="other"),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(), nullable=True),
        sa.Column("is_external_link", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("uploaded_by", GUID(), nullable=True),
        _timestamp(),
    )

    op.create_table(
        "file_flags",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("file_id", GUID(), sa.ForeignKey("files.id", ondelete="CASCADE"), nullable=False),
        sa.Column("flagged_by", GUID(), nullable=False),
        sa.Column("flagged_by_role", sa.String(length=10), nullable=False),
        sa.Column("flagged_for", sa.String(length=10), nullable=False),
        sa.Column("flag_message", sa.Text(), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolved_message", sa.Text(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp(),
    )

    op.create_table(
        "time_entries",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "company_id", GUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "project_id", GUID(), sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("task_id", GUID(), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        _timestamp(nullable=True),
        sa.CheckConstraint("hours > 0", name="ck_time_entries_positive_hours"),
    )
    op.create_index("idx_time_entries_company", "time_entries", ["company_id"])
    op.create_index("idx_time_entries_date", "time_entries", ["date"])

    for table in ("company_updates", "company_credentials", "client_notes"):
        columns = [
            sa.Column("id", GUID(), primary_key=True),
            sa.Column(
                "company_id",
                GUID(),
                sa.ForeignKey("companies.id", ondelete="CASCADE"),
                nullable=False,
            ),
        ]
        if table == "company_updates":
            columns += [
                sa.Column("author_id", GUID(), nullable=False),
                sa.Column("content", sa.Text(), nullable=False),
            ]
        elif table == "company_credentials":
            columns += [
                sa.Column("label", sa.String(), nullable=False),
                sa.Column("value", sa.Text(), nullable=False),
                sa.Column("created_by", GUID(), nullable=True),
            ]
        else:
            columns += [
                sa.Column(
                    "category", sa.String(length=40), nullable=False, server_default="General Info"
                ),
                sa.Column("content", sa.Text(), nullable=False),
                sa.Column("created_by", GUID(), nullable=True),
            ]
        op.create_table(table, *columns, _timestamp())


def downgrade() -> None:
    for table in ("client_notes", "company_credentials", "company_updates"):
        op.drop_table(table)
    op.drop_index("idx_time_entries_date", table_name="time_entries")
    op.drop_index("idx_time_entries_company", table_name="time_entries")
    op.drop_table("time_entries")
    op.drop_table("file_flags")
    op.drop_table("files")
    op.drop_table("tasks")
    op.drop_table("updates")
    op.drop_index("projects_company_blocked_idx", table_name="projects")
    op.drop_table("projects")
    op.drop_table("profiles")
    op.drop_table("companies")
