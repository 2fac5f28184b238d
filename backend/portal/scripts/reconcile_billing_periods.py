"""CLI utility to create missing billing period statuses for hourly retainers."""

from __future__ import annotations

import argparse
import logging
from datetime import date
from typing import Optional

from .. import models
from ..database import session_scope
from ..services import BillingPeriodService, BillingServiceError

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Record an 'under_review' status for every closed billing period of the "
            "active hourly-retainer companies. Existing statuses are never changed."
        )
    )
    parser.add_argument(
        "--company-id",
        action="append",
        dest="company_ids",
        help="Only reconcile this company (repeatable).",
    )
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Treat this ISO date as today when deciding which periods are closed.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    failures = 0
    created_total = 0
    with session_scope() as db:
        query = db.query(models.Company).filter(
            models.Company.is_active.is_(True),
            models.Company.retainer_type == models.RetainerType.HOURLY.value,
        )
        if args.company_ids:
            query = query.filter(models.Company.id.in_(args.company_ids))

        for company in query.order_by(models.Company.name).all():
            try:
                created = BillingPeriodService.reconcile_company(db, company, today=args.as_of)
            except BillingServiceError as exc:
                failures += 1
                LOGGER.error("Company %s (%s): %s", company.name, company.id, exc)
                continue
            created_total += created
            LOGGER.debug("Company %s: %s new status rows", company.name, created)

    LOGGER.info("Billing reconciliation finished: %s rows created, %s failures", created_total, failures)
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
