"""Router exposing pending action items."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import RequestContext, get_request_context
from ..services import ActionItemService

router = APIRouter()


@router.get("/", response_model=schemas.ActionItemsResponse)
def list_action_items(
    company_id: Optional[str] = Query(None, description="Restrict items to one company"),
    for_role: Optional[schemas.ActionRole] = Query(
        None, description="Side expected to act; defaults to the caller's side"
    ),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> schemas.ActionItemsResponse:
    role, outcome = ActionItemService.derive(
        db, context, company_id=company_id, for_role=for_role
    )
    return ActionItemService.response(role, outcome)
