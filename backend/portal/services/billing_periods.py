"""Billing period bucketing, overage breakdown and invoice status tracking.

Time entries are grouped into non-overlapping periods derived from the
company's payment schedule. Each closed period is compared against the
retainer allocation; the in-progress period is reported separately as live
usage and never enters the history.
"""

from __future__ import annotations

import logging
import re
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..security import RequestContext, ensure_company_access
from .timeutils import utcnow

LOGGER = logging.getLogger(__name__)

OVERAGE_RATE_MULTIPLIER = Decimal("1.15")
DEFAULT_BILLING_ANCHOR = date(2024, 1, 1)
_CENT = Decimal("0.01")
_ZERO = Decimal("0")

_SCHEDULE_DAYS = {
    models.PaymentScheduleType.WEEKLY.value: 7,
    models.PaymentScheduleType.BIWEEKLY.value: 14,
}
_SCHEDULE_PREFIX = {
    models.PaymentScheduleType.WEEKLY.value: "wk",
    models.PaymentScheduleType.BIWEEKLY.value: "bw",
}

_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")
_FIFTEENTH_KEY = re.compile(r"^(\d{4})-(\d{2})-15$")
_CYCLE_KEY = re.compile(r"^(wk|bw)-(\d{4}-\d{2}-\d{2})$")


class BillingServiceError(RuntimeError):
    """Raised when a billing status cannot be read or written."""


@dataclass(frozen=True)
class BillingPeriod:
    key: str
    label: str
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class PeriodBreakdown:
    total_hours: Decimal
    regular_hours: Decimal
    overage_hours: Decimal
    overage_entry_ids: FrozenSet[str] = frozenset()


@dataclass
class PeriodGroup:
    period: BillingPeriod
    entries: List[Any] = field(default_factory=list)


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _day_label(value: date) -> str:
    return f"{value:%b} {value.day}"


def _add_month(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(value.day, monthrange(year, month)[1]))


def _monthly_period(start: date) -> BillingPeriod:
    end = date(start.year, start.month, monthrange(start.year, start.month)[1])
    return BillingPeriod(key=f"{start:%Y-%m}", label=f"{start:%b %Y}", start=start, end=end)


def _fifteenth_period(start: date) -> BillingPeriod:
    end = _add_month(start, 1).replace(day=14)
    return BillingPeriod(
        key=f"{start:%Y-%m}-15",
        label=f"{_day_label(start)} – {_day_label(end)}",
        start=start,
        end=end,
    )


def _cycle_period(start: date, schedule: str) -> BillingPeriod:
    end = start + timedelta(days=_SCHEDULE_DAYS[schedule] - 1)
    return BillingPeriod(
        key=f"{_SCHEDULE_PREFIX[schedule]}-{start.isoformat()}",
        label=f"{_day_label(start)} – {_day_label(end)}, {end.year}",
        start=start,
        end=end,
    )


def get_billing_period(
    entry_date: date, payment_schedule: Optional[str], anchor: Optional[date] = None
) -> BillingPeriod:
    """Return the period containing ``entry_date`` for the given schedule.

    ``None``, ``1st`` and ``monthly`` map to calendar months; ``15th`` runs from
    the 15th to the 14th of the following month; ``weekly`` and ``biweekly``
    are 7 and 14 day cycles aligned to ``anchor``.
    """

    if payment_schedule == models.PaymentScheduleType.FIFTEENTH.value:
        if entry_date.day >= 15:
            start = entry_date.replace(day=15)
        else:
            start = _add_month(entry_date.replace(day=15), -1)
        return _fifteenth_period(start)

    if payment_schedule in _SCHEDULE_DAYS:
        length = _SCHEDULE_DAYS[payment_schedule]
        origin = anchor or DEFAULT_BILLING_ANCHOR
        offset = (entry_date - origin).days // length
        return _cycle_period(origin + timedelta(days=offset * length), payment_schedule)

    return _monthly_period(entry_date.replace(day=1))


def current_billing_period(
    payment_schedule: Optional[str], anchor: Optional[date] = None, today: Optional[date] = None
) -> BillingPeriod:
    return get_billing_period(today or utcnow().date(), payment_schedule, anchor)


def period_from_key(period_key: str) -> BillingPeriod:
    """Rebuild a period from its key; raises ``ValueError`` for unknown formats."""

    key = (period_key or "").strip()
    try:
        match = _MONTH_KEY.match(key)
        if match:
            return _monthly_period(date(int(match.group(1)), int(match.group(2)), 1))
        match = _FIFTEENTH_KEY.match(key)
        if match:
            return _fifteenth_period(date(int(match.group(1)), int(match.group(2)), 15))
        match = _CYCLE_KEY.match(key)
        if match:
            schedule = (
                models.PaymentScheduleType.WEEKLY.value
                if match.group(1) == "wk"
                else models.PaymentScheduleType.BIWEEKLY.value
            )
            return _cycle_period(date.fromisoformat(match.group(2)), schedule)
    except ValueError as exc:
        raise ValueError(f"Invalid billing period key: {period_key!r}") from exc
    raise ValueError(f"Invalid billing period key: {period_key!r}")


def group_entries_by_period(
    entries: Iterable[Any], payment_schedule: Optional[str], anchor: Optional[date] = None
) -> Dict[str, PeriodGroup]:
    """Group entries by period key, keeping the input order within each group."""

    groups: Dict[str, PeriodGroup] = {}
    for entry in entries:
        period = get_billing_period(entry.date, payment_schedule, anchor)
        group = groups.get(period.key)
        if group is None:
            group = groups[period.key] = PeriodGroup(period=period)
        group.entries.append(entry)
    return groups


def compute_period_breakdown(entries: Sequence[Any], hours_allocated: Any) -> PeriodBreakdown:
    """Split a period's hours into regular and overage hours.

    Entries are walked in the order given. Once the running total exceeds the
    allocation, the entry that crossed it and every later one are reported in
    ``overage_entry_ids`` as whole entries.
    """

    allocation = _to_decimal(hours_allocated)
    cumulative = _ZERO
    overage_ids: List[str] = []
    for entry in entries:
        cumulative += _to_decimal(entry.hours)
        if cumulative > allocation:
            overage_ids.append(str(entry.id))
    total = cumulative
    return PeriodBreakdown(
        total_hours=total,
        regular_hours=min(total, allocation),
        overage_hours=max(total - allocation, _ZERO),
        overage_entry_ids=frozenset(overage_ids),
    )


def _period_schema(period: BillingPeriod) -> schemas.BillingPeriodRead:
    return schemas.BillingPeriodRead(
        key=period.key, label=period.label, start=period.start, end=period.end
    )



def ensure_hourly_retainer(company: models.Company) -> None:
    """Only hourly retainers are billed per period."""

    if company.retainer_type != models.RetainerType.HOURLY.value:
        raise BillingServiceError(
            f"Company {company.id} is not on an hourly retainer; it has no billing periods"
        )

class BillingPeriodService:
    """Billing history, live usage and invoice status updates for a company."""

    @staticmethod
    def get_company(db: Session, company_id: str) -> Optional[models.Company]:
        return db.query(models.Company).filter(models.Company.id == company_id).first()

    @staticmethod
    def list_entries(db: Session, company_id: str) -> List[models.TimeEntry]:
        return (
            db.query(models.TimeEntry)
            .filter(models.TimeEntry.company_id == company_id)
            .order_by(models.TimeEntry.date.asc(), models.TimeEntry.created_at.asc())
            .all()
        )

    @staticmethod
    def closed_groups(
        company: models.Company, entries: Iterable[Any], today: Optional[date] = None
    ) -> List[PeriodGroup]:
        """Periods that ended before the current one started, newest first."""

        current = current_billing_period(
            company.payment_schedule, company.billing_anchor_date, today
        )
        groups = group_entries_by_period(
            entries, company.payment_schedule, company.billing_anchor_date
        )
        closed = [group for group in groups.values() if group.period.end < current.start]
        return sorted(closed, key=lambda group: group.period.start, reverse=True)

    @staticmethod
    def _status_rows(db: Session, company_id: str) -> Dict[str, models.BillingPeriodStatus]:
        rows = (
            db.query(models.BillingPeriodStatus)
            .filter(models.BillingPeriodStatus.company_id == company_id)
            .all()
        )
        return {row.period_key: row for row in rows}

    @staticmethod
    def reconcile(
        db: Session, company: models.Company, groups: Iterable[PeriodGroup]
    ) -> Dict[str, models.BillingPeriodStatus]:
        """Insert an ``under_review`` row for every period without one.

        Existing rows are returned untouched.
        """

        company_id = str(company.id)
        existing = BillingPeriodService._status_rows(db, company_id)
        created = []
        for group in groups:
            if group.period.key in existing:
                continue
            row = models.BillingPeriodStatus(
                company_id=company_id,
                period_key=group.period.key,
                period_start=group.period.start,
                period_end=group.period.end,
                period_label=group.period.label,
                hours_allocated=company.hours_allocated,
                hourly_rate=company.hourly_rate,
                status=models.BillingStatus.UNDER_REVIEW,
            )
            db.add(row)
            created.append(row)
            existing[group.period.key] = row

        if not created:
            return existing

        try:
            db.commit()
        except IntegrityError:
            # Another request reconciled the same periods first.
            db.rollback()
            LOGGER.info("Billing periods for company %s were reconciled concurrently", company_id)
            return BillingPeriodService._status_rows(db, company_id)
        except SQLAlchemyError as exc:
            db.rollback()
            LOGGER.exception("Unable to reconcile billing periods for company %s", company_id)
            raise BillingServiceError("Unable to record billing periods") from exc

        LOGGER.info(
            "Created %d billing period status rows for company %s", len(created), company_id
        )
        return existing

    @staticmethod
    def _summary(
        group: PeriodGroup,
        row: Optional[models.BillingPeriodStatus],
        company: models.Company,
    ) -> schemas.BillingPeriodSummary:
        allocation = company.hours_allocated
        rate = company.hourly_rate
        if row is not None:
            if row.hours_allocated is not None:
                allocation = row.hours_allocated
            if row.hourly_rate is not None:
                rate = row.hourly_rate
        rate = _to_decimal(rate)
        breakdown = compute_period_breakdown(group.entries, allocation)
        regular_amount = _money(breakdown.regular_hours * rate)
        overage_amount = _money(breakdown.overage_hours * rate * OVERAGE_RATE_MULTIPLIER)
        return schemas.BillingPeriodSummary(
            period=_period_schema(group.period),
            breakdown=schemas.PeriodBreakdownRead(
                total_hours=breakdown.total_hours,
                regular_hours=breakdown.regular_hours,
                overage_hours=breakdown.overage_hours,
                overage_entry_ids=[
                    str(entry.id)
                    for entry in group.entries
                    if str(entry.id) in breakdown.overage_entry_ids
                ],
            ),
            entry_ids=[str(entry.id) for entry in group.entries],
            status=row.status if row is not None else models.BillingStatus.UNDER_REVIEW,
            status_id=str(row.id) if row is not None and row.id is not None else None,
            regular_amount=regular_amount,
            overage_amount=overage_amount,
            total_amount=regular_amount + overage_amount,
        )

    @staticmethod
    def list_history(
        db: Session,
        context: RequestContext,
        company: models.Company,
        *,
        today: Optional[date] = None,
    ) -> schemas.BillingHistoryResponse:
        ensure_company_access(context, str(company.id))
        ensure_hourly_retainer(company)
        entries = BillingPeriodService.list_entries(db, str(company.id))
        groups = BillingPeriodService.closed_groups(company, entries, today)
        rows = BillingPeriodService.reconcile(db, company, groups)
        rate = _to_decimal(company.hourly_rate)
        return schemas.BillingHistoryResponse(
            company_id=str(company.id),
            hours_allocated=_to_decimal(company.hours_allocated),
            hourly_rate=rate,
            overage_rate=_money(rate * OVERAGE_RATE_MULTIPLIER),
            periods=[
                BillingPeriodService._summary(group, rows.get(group.period.key), company)
                for group in groups
            ],
        )

    @staticmethod
    def current_usage(
        db: Session,
        context: RequestContext,
        company: models.Company,
        *,
        today: Optional[date] = None,
    ) -> schemas.CurrentPeriodUsage:
        ensure_company_access(context, str(company.id))
        ensure_hourly_retainer(company)
        period = current_billing_period(
            company.payment_schedule, company.billing_anchor_date, today
        )
        entries = (
            db.query(models.TimeEntry)
            .filter(
                models.TimeEntry.company_id == company.id,
                models.TimeEntry.date >= period.start,
                models.TimeEntry.date <= period.end,
            )
            .order_by(models.TimeEntry.date.asc(), models.TimeEntry.created_at.asc())
            .all()
        )
        allocation = _to_decimal(company.hours_allocated)
        breakdown = compute_period_breakdown(entries, allocation)
        if allocation > 0:
            percent = (breakdown.total_hours / allocation * 100).quantize(
                Decimal("0.1"), rounding=ROUND_HALF_UP
            )
        else:
            percent = _ZERO
        return schemas.CurrentPeriodUsage(
            company_id=str(company.id),
            period=_period_schema(period),
            hours_allocated=allocation,
            hours_used=breakdown.total_hours,
            hours_remaining=max(allocation - breakdown.total_hours, _ZERO),
            overage_hours=breakdown.overage_hours,
            percent_used=percent,
            entry_count=len(entries),
        )

    @staticmethod
    def get_status(
        db: Session, company_id: str, period_key: str
    ) -> Optional[models.BillingPeriodStatus]:
        return (
            db.query(models.BillingPeriodStatus)
            .filter(
                models.BillingPeriodStatus.company_id == company_id,
                models.BillingPeriodStatus.period_key == period_key,
            )
            .first()
        )

    @staticmethod
    def upsert_status(
        db: Session,
        company: models.Company,
        period_key: str,
        data: schemas.BillingStatusUpdate,
    ) -> models.BillingPeriodStatus:
        """Write the status of one period; any status may replace any other."""

        ensure_hourly_retainer(company)
        company_id = str(company.id)
        try:
            period = period_from_key(period_key)
        except ValueError as exc:
            raise BillingServiceError(str(exc)) from exc

        row = BillingPeriodService.get_status(db, company_id, period.key)
        if row is None:
            row = models.BillingPeriodStatus(
                company_id=company_id,
                period_key=period.key,
                period_start=period.start,
                period_end=period.end,
                period_label=period.label,
                hours_allocated=company.hours_allocated,
                hourly_rate=company.hourly_rate,
            )
            db.add(row)
        previous = row.status
        row.status = data.status
        if data.notes is not None:
            row.notes = data.notes

        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            LOGGER.exception(
                "Unable to update billing status for company %s period %s", company_id, period.key
            )
            raise BillingServiceError("Unable to update billing status") from exc
        db.refresh(row)
        LOGGER.info(
            "Billing period %s for company %s moved from %s to %s",
            period.key,
            company_id,
            getattr(previous, "value", previous),
            row.status.value,
        )
        return row

    @staticmethod
    def reconcile_company(
        db: Session, company: models.Company, *, today: Optional[date] = None
    ) -> int:
        """Reconcile every closed period of ``company``; returns the rows created."""

        ensure_hourly_retainer(company)
        entries = BillingPeriodService.list_entries(db, str(company.id))
        groups = BillingPeriodService.closed_groups(company, entries, today)
        before = len(BillingPeriodService._status_rows(db, str(company.id)))
        after = len(BillingPeriodService.reconcile(db, company, groups))
        return after - before
