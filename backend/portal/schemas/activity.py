from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .common import SourceFailure


class ActivityType(str, Enum):
    """Canonical kinds of activity shown in a client's feed."""

    COMPANY_UPDATE = "company_update"
    CHANGE_REQUEST = "change_request"
    FILE_FLAG = "file_flag"
    PROJECT_BLOCKED = "project_blocked"
    DELIVERABLE_REVIEW = "deliverable_review"
    TASK_COMPLETED = "task_completed"
    PROJECT_COMPLETED = "project_completed"
    DELIVERABLE_APPROVED = "deliverable_approved"
    HOURS_LOGGED = "hours_logged"
    FILE_UPLOADED = "file_uploaded"
    CREDENTIAL_ADDED = "credential_added"
    NOTE_ADDED = "note_added"


# Deprecated: the kinds the first version of the feed returned. Requests
# flagged as legacy are limited to them; do not extend it.
LEGACY_ACTIVITY_TYPES = frozenset(
    {
        ActivityType.COMPANY_UPDATE,
        ActivityType.CHANGE_REQUEST,
        ActivityType.FILE_FLAG,
        ActivityType.PROJECT_BLOCKED,
        ActivityType.DELIVERABLE_REVIEW,
        ActivityType.TASK_COMPLETED,
        ActivityType.PROJECT_COMPLETED,
        ActivityType.DELIVERABLE_APPROVED,
    }
)


class ActivityItem(BaseModel):
    """Normalized feed entry; ``id`` is ``<source prefix>-<source row id>``."""

    id: str
    type: ActivityType
    title: str
    description: str = ""
    author_name: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    file_id: Optional[str] = None
    file_name: Optional[str] = None
    task_id: Optional[str] = None
    update_id: Optional[str] = None
    company_id: str
    created_at: datetime
    raw: Dict[str, Any] = Field(default_factory=dict)


class ActivityFeedResponse(BaseModel):
    items: List[ActivityItem]
    failed_sources: List[SourceFailure] = Field(default_factory=list)
    complete: bool = True
