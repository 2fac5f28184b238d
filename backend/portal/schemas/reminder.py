from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReminderCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = None
    due_date: Optional[date] = None


class ReminderRead(BaseModel):
    id: str
    company_id: str
    user_id: str
    title: str
    notes: Optional[str] = None
    due_date: Optional[date] = None
    is_completed: bool
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    author_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ReminderListResponse(BaseModel):
    items: List[ReminderRead]
