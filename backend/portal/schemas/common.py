"""Shared schema definitions."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SourceFailure(BaseModel):
    """A data source that contributed no rows because its query failed."""

    source: str
    message: str

    model_config = ConfigDict(from_attributes=True)
