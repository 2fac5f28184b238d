"""Router exposing the company activity feed."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import RequestContext, get_request_context
from ..services import ActivityFeedService

router = APIRouter()


@router.get("/{company_id}/activity", response_model=schemas.ActivityFeedResponse)
def get_activity_feed(
    company_id: str,
    types: Optional[List[schemas.ActivityType]] = Query(
        None, description="Only include these activity types"
    ),
    limit: Optional[int] = Query(None, ge=1, le=500, description="Maximum number of items"),
    days_back: Optional[int] = Query(
        None, ge=1, le=3650, description="Look-back window for time-bounded sources"
    ),
    legacy: bool = Query(False, description="Only return the kinds the first feed version knew"),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> schemas.ActivityFeedResponse:
    """Return the company's activity, newest first."""

    outcome = ActivityFeedService.build_feed(
        db,
        context,
        company_id,
        types=types,
        limit=limit,
        days_back=days_back,
        legacy=legacy,
    )
    return ActivityFeedService.feed_response(outcome)
