"""Routers package."""

from .action_items import router as action_items_router
from .activity import router as activity_router
from .billing import router as billing_router
from .health import router as health_router
from .reminders import company_router as company_reminders_router
from .reminders import router as reminders_router

__all__ = [
    "action_items_router",
    "activity_router",
    "billing_router",
    "company_reminders_router",
    "health_router",
    "reminders_router",
]
