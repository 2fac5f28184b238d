"""Router exposing company reminders to the team."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..security import RequestContext, require_staff
from ..services import BillingPeriodService, ReminderService, ReminderServiceError

company_router = APIRouter(dependencies=[Depends(require_staff)])
router = APIRouter(dependencies=[Depends(require_staff)])


def _get_reminder_or_404(db: Session, reminder_id: str) -> models.Reminder:
    reminder = ReminderService.get_reminder(db, reminder_id)
    if reminder is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")
    return reminder


@company_router.get("/{company_id}/reminders", response_model=schemas.ReminderListResponse)
def list_reminders(company_id: str, db: Session = Depends(get_db)) -> schemas.ReminderListResponse:
    return schemas.ReminderListResponse(items=ReminderService.list_open(db, company_id))


@company_router.post(
    "/{company_id}/reminders",
    response_model=schemas.ReminderRead,
    status_code=status.HTTP_201_CREATED,
)
def create_reminder(
    company_id: str,
    reminder_in: schemas.ReminderCreate,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_staff),
) -> schemas.ReminderRead:
    if BillingPeriodService.get_company(db, company_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    try:
        reminder = ReminderService.create_reminder(db, context, company_id, reminder_in)
    except ReminderServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return schemas.ReminderRead.model_validate(reminder)


@router.post("/{reminder_id}/complete", response_model=schemas.ReminderRead)
def complete_reminder(reminder_id: str, db: Session = Depends(get_db)) -> schemas.ReminderRead:
    reminder = _get_reminder_or_404(db, reminder_id)
    try:
        reminder = ReminderService.complete_reminder(db, reminder)
    except ReminderServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return schemas.ReminderRead.model_validate(reminder)


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(reminder_id: str, db: Session = Depends(get_db)) -> None:
    reminder = _get_reminder_or_404(db, reminder_id)
    try:
        ReminderService.delete_reminder(db, reminder)
    except ReminderServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
