"""Service layer encapsulating the portal's aggregation and billing logic."""

from .action_items import ActionItemService
from .activity_feed import ActivityFeedService
from .billing_periods import BillingPeriodService, BillingServiceError
from .health_score import HealthScoreService, HealthWeights, compute_health_score
from .loaders import BatchLoader, PortalLoaders
from .reminders import ReminderService, ReminderServiceError
from .sources import PartialSuccess, SourceError, SourceResult, run_source

__all__ = [
    "ActionItemService",
    "ActivityFeedService",
    "BatchLoader",
    "BillingPeriodService",
    "BillingServiceError",
    "HealthScoreService",
    "HealthWeights",
    "PartialSuccess",
    "PortalLoaders",
    "ReminderService",
    "ReminderServiceError",
    "SourceError",
    "SourceResult",
    "compute_health_score",
    "run_source",
]
