from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .common import SourceFailure


class ActionItemType(str, Enum):
    CHANGE_REQUEST = "change_request"
    FILE_FLAG = "file_flag"
    PROJECT_BLOCKED = "project_blocked"
    DELIVERABLE_REVIEW = "deliverable_review"


class ActionRole(str, Enum):
    """Side expected to act on an item."""

    TEAM = "team"
    CLIENT = "client"


class ActionItem(BaseModel):
    id: str
    type: ActionItemType
    title: str
    description: str = ""
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    company_id: str
    company_name: Optional[str] = None
    file_id: Optional[str] = None
    priority: str = "normal"
    for_role: ActionRole
    created_at: datetime


class ActionItemsResponse(BaseModel):
    for_role: ActionRole
    items: List[ActionItem]
    failed_sources: List[SourceFailure] = Field(default_factory=list)
    complete: bool = True
