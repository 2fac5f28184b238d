"""Pydantic schemas exposed by the portal API."""

from .action_items import ActionItem, ActionItemsResponse, ActionItemType, ActionRole
from .activity import (
    LEGACY_ACTIVITY_TYPES,
    ActivityFeedResponse,
    ActivityItem,
    ActivityType,
)
from .billing import (
    BillingHistoryResponse,
    BillingPeriodRead,
    BillingPeriodStatusRead,
    BillingPeriodSummary,
    BillingStatusUpdate,
    CurrentPeriodUsage,
    PeriodBreakdownRead,
)
from .common import SourceFailure
from .health import HealthScoreResult, HealthSignal, SignalStatus
from .reminder import ReminderCreate, ReminderListResponse, ReminderRead

__all__ = [
    "LEGACY_ACTIVITY_TYPES",
    "ActionItem",
    "ActionItemsResponse",
    "ActionItemType",
    "ActionRole",
    "ActivityFeedResponse",
    "ActivityItem",
    "ActivityType",
    "BillingHistoryResponse",
    "BillingPeriodRead",
    "BillingPeriodStatusRead",
    "BillingPeriodSummary",
    "BillingStatusUpdate",
    "CurrentPeriodUsage",
    "HealthScoreResult",
    "HealthSignal",
    "PeriodBreakdownRead",
    "ReminderCreate",
    "ReminderListResponse",
    "ReminderRead",
    "SignalStatus",
    "SourceFailure",
]
