from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class SignalStatus(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


class HealthSignal(BaseModel):
    name: str
    score: int = Field(..., ge=0)
    max_score: int = Field(..., ge=0)
    status: SignalStatus
    detail: str


class HealthScoreResult(BaseModel):
    project_id: str
    score: int = Field(..., ge=0)
    max_score: int = Field(..., ge=0)
    label: str
    signals: List[HealthSignal]
