"""Per-source outcomes for multi-source aggregations.

An aggregation queries several tables independently. A failing query must
not abort the whole aggregation, so each source is run through
:func:`run_source`, which turns exceptions into a failed
:class:`SourceResult`. :class:`PartialSuccess` carries the combined items
together with the names of the sources that failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SourceError:
    source: str
    message: str


@dataclass
class SourceResult(Generic[T]):
    source: str
    items: List[T] = field(default_factory=list)
    error: Optional[SourceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PartialSuccess(Generic[T]):
    """Best-effort combined output plus the sources that contributed nothing."""

    items: List[T] = field(default_factory=list)
    failed_sources: List[SourceError] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_sources

    def track(self, result: SourceResult) -> SourceResult:
        """Record the failure of ``result``, if any, and hand it back."""

        if not result.ok:
            self.failed_sources.append(result.error)
        return result


def run_source(db: Session, name: str, fetch: Callable[[], List[T]]) -> SourceResult[T]:
    """Run ``fetch`` inside a SAVEPOINT and capture any failure as a failed result.

    A failure rolls back only that savepoint; rows other sources loaded
    stay in the session unexpired.
    """

    try:
        with db.begin_nested():
            rows = list(fetch())
    except SQLAlchemyError as exc:
        LOGGER.warning("Source %s failed; omitting its rows: %s", name, exc)
        return SourceResult(source=name, error=SourceError(source=name, message=str(exc)))
    except Exception as exc:
        LOGGER.warning("Source %s failed; omitting its rows: %s", name, exc, exc_info=True)
        return SourceResult(source=name, error=SourceError(source=name, message=str(exc)))
    return SourceResult(source=name, items=rows)
