"""SQLAlchemy model for the invoicing workflow status of a billing period."""

from __future__ import annotations

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)

from ..database import Base
from ..db_types import GUID, new_id


class BillingStatus(str, enum.Enum):
    """Invoice workflow for a closed billing period.

    Transitions are free-form: any status may be set from any other one.
    """

    UNDER_REVIEW = "under_review"
    INVOICE_SENT = "invoice_sent"
    FOLLOW_UP = "follow_up"
    PAID = "paid"


BILLING_STATUS_ENUM = SAEnum(
    BillingStatus,
    name="billing_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class BillingPeriodStatus(Base):
    """Status row keyed by ``(company_id, period_key)``.

    Period bounds, allocation and rate are snapshots taken when the row is
    first written so later retainer changes do not rewrite history.
    """

    __tablename__ = "billing_period_statuses"
    __table_args__ = (
        UniqueConstraint("company_id", "period_key", name="billing_period_statuses_company_period_key"),
        CheckConstraint("period_end >= period_start", name="ck_billing_period_statuses_valid_range"),
    )

    id = Column(GUID(), primary_key=True, default=new_id)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    period_key = Column(String(20), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    period_label = Column(String(60), nullable=False)
    hours_allocated = Column(Numeric(6, 2), nullable=True)
    hourly_rate = Column(Numeric(8, 2), nullable=True)
    status = Column(BILLING_STATUS_ENUM, nullable=False, default=BillingStatus.UNDER_REVIEW)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
