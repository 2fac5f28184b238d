from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import BillingStatus


class BillingPeriodRead(BaseModel):
    key: str
    label: str
    start: date
    end: date


class PeriodBreakdownRead(BaseModel):
    total_hours: Decimal = Field(..., ge=0)
    regular_hours: Decimal = Field(..., ge=0)
    overage_hours: Decimal = Field(..., ge=0)
    overage_entry_ids: List[str] = Field(default_factory=list)


class BillingPeriodSummary(BaseModel):
    """Closed billing period with its reconciled status and amounts."""

    period: BillingPeriodRead
    breakdown: PeriodBreakdownRead
    entry_ids: List[str] = Field(default_factory=list)
    status: BillingStatus
    status_id: Optional[str] = None
    regular_amount: Decimal
    overage_amount: Decimal
    total_amount: Decimal


class BillingHistoryResponse(BaseModel):
    company_id: str
    hours_allocated: Decimal
    hourly_rate: Decimal
    overage_rate: Decimal
    periods: List[BillingPeriodSummary]


class CurrentPeriodUsage(BaseModel):
    """Live, non-final usage of the in-progress billing period."""

    company_id: str
    period: BillingPeriodRead
    hours_allocated: Decimal
    hours_used: Decimal
    hours_remaining: Decimal
    overage_hours: Decimal
    percent_used: Decimal
    entry_count: int = Field(..., ge=0)


class BillingStatusUpdate(BaseModel):
    status: BillingStatus
    notes: Optional[str] = Field(default=None, max_length=2000)


class BillingPeriodStatusRead(BaseModel):
    id: str
    company_id: str
    period_key: str
    period_start: date
    period_end: date
    period_label: str
    hours_allocated: Optional[Decimal] = None
    hourly_rate: Optional[Decimal] = None
    status: BillingStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
