"""Router exposing billing history, live usage and invoice statuses."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..security import RequestContext, get_request_context, require_staff
from ..services import BillingPeriodService, BillingServiceError

router = APIRouter()


def _get_company_or_404(db: Session, company_id: str) -> models.Company:
    company = BillingPeriodService.get_company(db, company_id)
    if company is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    return company


@router.get("/{company_id}/billing/periods", response_model=schemas.BillingHistoryResponse)
def list_billing_periods(
    company_id: str,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> schemas.BillingHistoryResponse:
    """Return closed billing periods, newest first, with their invoice status."""

    company = _get_company_or_404(db, company_id)
    try:
        return BillingPeriodService.list_history(db, context, company)
    except BillingServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/{company_id}/billing/current", response_model=schemas.CurrentPeriodUsage)
def get_current_usage(
    company_id: str,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> schemas.CurrentPeriodUsage:
    company = _get_company_or_404(db, company_id)
    try:
        return BillingPeriodService.current_usage(db, context, company)
    except BillingServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.put(
    "/{company_id}/billing/periods/{period_key}",
    response_model=schemas.BillingPeriodStatusRead,
)
def update_billing_status(
    company_id: str,
    period_key: str,
    payload: schemas.BillingStatusUpdate,
    db: Session = Depends(get_db),
    _: RequestContext = Depends(require_staff),
) -> schemas.BillingPeriodStatusRead:
    company = _get_company_or_404(db, company_id)
    try:
        row = BillingPeriodService.upsert_status(db, company, period_key, payload)
    except BillingServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return schemas.BillingPeriodStatusRead.model_validate(row)
