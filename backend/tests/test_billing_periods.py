from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from backend.portal import models, schemas
from backend.portal.services import BillingPeriodService, BillingServiceError
from backend.portal.services.billing_periods import (
    OVERAGE_RATE_MULTIPLIER,
    compute_period_breakdown,
    current_billing_period,
    get_billing_period,
    group_entries_by_period,
    period_from_key,
)

from conftest import team_context


def _entry(entry_id: str, hours: str, entry_date: date) -> SimpleNamespace:
    return SimpleNamespace(id=entry_id, hours=Decimal(hours), date=entry_date)


@pytest.mark.parametrize("schedule", [None, "1st", "monthly"])
def test_monthly_schedules_use_calendar_months(schedule):
    period = get_billing_period(date(2025, 1, 31), schedule)

    assert period.key == "2025-01"
    assert period.label == "Jan 2025"
    assert (period.start, period.end) == (date(2025, 1, 1), date(2025, 1, 31))


def test_fifteenth_schedule_runs_from_the_15th_to_the_14th():
    after = get_billing_period(date(2025, 1, 15), "15th")
    before = get_billing_period(date(2025, 1, 14), "15th")

    assert after.key == "2025-01-15"
    assert after.label == "Jan 15 – Feb 14"
    assert (after.start, after.end) == (date(2025, 1, 15), date(2025, 2, 14))
    assert before.key == "2024-12-15"
    assert (before.start, before.end) == (date(2024, 12, 15), date(2025, 1, 14))


def test_weekly_and_biweekly_periods_align_to_the_anchor():
    anchor = date(2025, 1, 6)

    weekly = get_billing_period(date(2025, 1, 15), "weekly", anchor)
    biweekly = get_billing_period(date(2025, 1, 15), "biweekly", anchor)
    earlier = get_billing_period(date(2025, 1, 5), "weekly", anchor)

    assert weekly.key == "wk-2025-01-13"
    assert weekly.label == "Jan 13 – Jan 19, 2025"
    assert biweekly.key == "bw-2025-01-06"
    assert biweekly.end == date(2025, 1, 19)
    assert earlier.start == date(2024, 12, 30)


def test_period_from_key_rebuilds_each_schedule():
    assert period_from_key("2025-02") == get_billing_period(date(2025, 2, 10), None)
    assert period_from_key("2025-02-15") == get_billing_period(date(2025, 3, 1), "15th")
    assert period_from_key("wk-2025-01-13") == get_billing_period(
        date(2025, 1, 13), "weekly", date(2025, 1, 6)
    )
    with pytest.raises(ValueError):
        period_from_key("2025-13")
    with pytest.raises(ValueError):
        period_from_key("January")


def test_grouping_keeps_the_stored_order_inside_each_period():
    entries = [
        _entry("b", "1", date(2025, 1, 20)),
        _entry("a", "1", date(2025, 1, 3)),
        _entry("c", "1", date(2025, 2, 1)),
    ]

    groups = group_entries_by_period(entries, None)

    assert list(groups) == ["2025-01", "2025-02"]
    assert [entry.id for entry in groups["2025-01"].entries] == ["b", "a"]


def test_breakdown_at_exact_allocation_has_no_overage():
    entries = [_entry("e1", "4", date(2025, 1, 2)), _entry("e2", "6", date(2025, 1, 3))]

    breakdown = compute_period_breakdown(entries, Decimal("10"))

    assert breakdown.total_hours == Decimal("10")
    assert breakdown.overage_hours == Decimal("0")
    assert breakdown.overage_entry_ids == frozenset()


def test_breakdown_half_hour_over_allocation_flags_the_crossing_entry():
    entries = [
        _entry("e1", "4", date(2025, 1, 2)),
        _entry("e2", "6", date(2025, 1, 3)),
        _entry("e3", "0.5", date(2025, 1, 4)),
    ]

    breakdown = compute_period_breakdown(entries, Decimal("10"))

    assert breakdown.overage_hours == Decimal("0.5")
    assert breakdown.regular_hours == Decimal("10")
    assert breakdown.overage_entry_ids == frozenset({"e3"})


def test_breakdown_counts_the_crossing_entry_wholly_as_overage():
    entries = [
        _entry("e1", "8", date(2025, 1, 2)),
        _entry("e2", "8", date(2025, 1, 9)),
        _entry("e3", "8", date(2025, 1, 16)),
    ]

    breakdown = compute_period_breakdown(entries, Decimal("20"))

    assert breakdown.total_hours == Decimal("24")
    assert breakdown.regular_hours == Decimal("20")
    assert breakdown.overage_hours == Decimal("4")
    assert breakdown.overage_entry_ids == frozenset({"e3"})


def test_breakdown_follows_input_order_rather_than_dates():
    entries = [
        _entry("late", "8", date(2025, 1, 30)),
        _entry("early", "8", date(2025, 1, 1)),
    ]

    breakdown = compute_period_breakdown(entries, Decimal("10"))

    assert breakdown.overage_entry_ids == frozenset({"early"})


def test_breakdown_is_idempotent():
    entries = [_entry(str(index), "3.25", date(2025, 1, index + 1)) for index in range(5)]

    assert compute_period_breakdown(entries, 12) == compute_period_breakdown(entries, 12)


def test_history_excludes_current_period_and_reconciles_statuses(db_session, factory):
    company = factory.company(hours_allocated=Decimal("20"), hourly_rate=Decimal("100"))
    for day in (2, 9, 16):
        factory.time_entry(company, "8", date(2025, 1, day))
    factory.time_entry(company, "5", date(2025, 2, 3))
    factory.time_entry(company, "3", date(2025, 3, 4))

    history = BillingPeriodService.list_history(
        db_session, team_context(), company, today=date(2025, 3, 20)
    )

    assert [row.period.key for row in history.periods] == ["2025-02", "2025-01"]
    january = history.periods[1]
    assert january.breakdown.total_hours == Decimal("24")
    assert january.breakdown.overage_hours == Decimal("4")
    assert january.regular_amount == Decimal("2000.00")
    assert january.overage_amount == Decimal("4") * Decimal("100") * OVERAGE_RATE_MULTIPLIER
    assert january.status == models.BillingStatus.UNDER_REVIEW
    assert history.overage_rate == Decimal("115.00")

    stored = db_session.query(models.BillingPeriodStatus).filter_by(company_id=company.id).all()
    assert sorted(row.period_key for row in stored) == ["2025-01", "2025-02"]


def test_reconciliation_never_overwrites_existing_status(db_session, factory):
    company = factory.company()
    factory.time_entry(company, "2", date(2025, 1, 10))
    BillingPeriodService.upsert_status(
        db_session,
        company,
        "2025-01",
        schemas.BillingStatusUpdate(status=models.BillingStatus.PAID),
    )

    history = BillingPeriodService.list_history(
        db_session, team_context(), company, today=date(2025, 3, 1)
    )

    assert history.periods[0].status == models.BillingStatus.PAID
    assert db_session.query(models.BillingPeriodStatus).filter_by(company_id=company.id).count() == 1


def test_reconcile_inserts_several_new_periods_at_once(db_session, factory):
    company = factory.company()
    for month in (10, 11, 12):
        factory.time_entry(company, "3", date(2024, month, 5))

    created = BillingPeriodService.reconcile_company(db_session, company, today=date(2025, 1, 8))
    again = BillingPeriodService.reconcile_company(db_session, company, today=date(2025, 1, 8))

    assert created == 3
    assert again == 0
    db_session.expire_all()
    rows = db_session.query(models.BillingPeriodStatus).filter_by(company_id=company.id).all()
    assert sorted(row.period_key for row in rows) == ["2024-10", "2024-11", "2024-12"]
    assert all(isinstance(row.id, str) for row in rows)

    history = BillingPeriodService.list_history(
        db_session, team_context(), company, today=date(2025, 1, 8)
    )
    assert {row.status_id for row in history.periods} == {row.id for row in rows}


def test_non_hourly_companies_have_no_billing_periods(db_session, factory):
    company = factory.company(
        "Flat Co", retainer_type=models.RetainerType.UNLIMITED.value, hours_allocated=None
    )
    factory.time_entry(company, "4", date(2025, 1, 10))

    with pytest.raises(BillingServiceError):
        BillingPeriodService.list_history(
            db_session, team_context(), company, today=date(2025, 3, 20)
        )
    with pytest.raises(BillingServiceError):
        BillingPeriodService.current_usage(
            db_session, team_context(), company, today=date(2025, 3, 20)
        )
    with pytest.raises(BillingServiceError):
        BillingPeriodService.upsert_status(
            db_session,
            company,
            "2025-01",
            schemas.BillingStatusUpdate(status=models.BillingStatus.PAID),
        )

    assert db_session.query(models.BillingPeriodStatus).filter_by(company_id=company.id).count() == 0


def test_status_upsert_round_trip_allows_any_transition(db_session, factory):
    company = factory.company()

    for status in (
        models.BillingStatus.PAID,
        models.BillingStatus.UNDER_REVIEW,
        models.BillingStatus.FOLLOW_UP,
    ):
        BillingPeriodService.upsert_status(
            db_session, company, "2025-01-15", schemas.BillingStatusUpdate(status=status)
        )
        db_session.expire_all()
        stored = BillingPeriodService.get_status(db_session, company.id, "2025-01-15")
        assert stored.status == status

    assert stored.period_start == date(2025, 1, 15)
    assert stored.period_label == "Jan 15 – Feb 14"


def test_status_upsert_rejects_unknown_period_keys(db_session, factory):
    company = factory.company()

    with pytest.raises(BillingServiceError):
        BillingPeriodService.upsert_status(
            db_session,
            company,
            "last-month",
            schemas.BillingStatusUpdate(status=models.BillingStatus.PAID),
        )


def test_current_usage_reports_live_hours(db_session, factory):
    company = factory.company(hours_allocated=Decimal("10"))
    factory.time_entry(company, "4", date(2025, 3, 2))
    factory.time_entry(company, "2.5", date(2025, 3, 18))
    factory.time_entry(company, "9", date(2025, 2, 27))

    usage = BillingPeriodService.current_usage(
        db_session, team_context(), company, today=date(2025, 3, 20)
    )

    assert usage.period.key == "2025-03"
    assert usage.hours_used == Decimal("6.5")
    assert usage.hours_remaining == Decimal("3.5")
    assert usage.percent_used == Decimal("65.0")
    assert usage.entry_count == 2


def test_current_period_uses_the_company_schedule():
    period = current_billing_period("15th", today=date(2025, 3, 20))

    assert period.key == "2025-03-15"
