"""Router exposing project health scores."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import RequestContext, get_request_context
from ..services import HealthScoreService

router = APIRouter()


@router.get("/{project_id}/health", response_model=schemas.HealthScoreResult)
def get_project_health(
    project_id: str,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> schemas.HealthScoreResult:
    project = HealthScoreService.get_project(db, project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return HealthScoreService.for_project(db, context, project)
