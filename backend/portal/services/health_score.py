"""Composite health score for a campaign.

:func:`compute_health_score` is pure: it only looks at the rows passed in and
the ``now`` timestamp, so the same inputs always produce the same result.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from .. import models, schemas
from ..security import RequestContext, ensure_company_access
from .timeutils import ensure_utc, utcnow

SignalStatus = schemas.SignalStatus

_SECONDS_PER_DAY = 86_400

# Lower bound of each label as a share of the maximum score.
LABEL_THRESHOLDS = (
    (0.80, "Healthy"),
    (0.60, "Needs Attention"),
    (0.40, "At Risk"),
)
CRITICAL_LABEL = "Critical"


@dataclass(frozen=True)
class HealthWeights:
    """Maximum points per signal. Partial scores scale with the weight."""

    recency: int = 25
    deadline: int = 20
    revisions: int = 15
    tasks: int = 20
    blocked: int = 10
    assignee: int = 5
    pending_review: int = 5

    recency_grace_days: float = 3
    recency_zero_days: float = 14
    pending_review_days: float = 5

    @property
    def total(self) -> int:
        return (
            self.recency
            + self.deadline
            + self.revisions
            + self.tasks
            + self.blocked
            + self.assignee
            + self.pending_review
        )


DEFAULT_WEIGHTS = HealthWeights()


def _round(value: float) -> int:
    """Round half up, so 2.5 becomes 3."""

    return int(math.floor(value + 0.5))


def _days_between(a: datetime, b: datetime) -> float:
    return abs((a - b).total_seconds()) / _SECONDS_PER_DAY


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def signal_status(score: int, max_score: int) -> SignalStatus:
    ratio = score / max_score if max_score > 0 else 1
    if ratio >= 0.7:
        return SignalStatus.GOOD
    if ratio >= 0.4:
        return SignalStatus.WARNING
    return SignalStatus.CRITICAL


def health_label(score: int, max_score: int) -> str:
    ratio = score / max_score if max_score > 0 else 1
    for threshold, label in LABEL_THRESHOLDS:
        if ratio >= threshold:
            return label
    return CRITICAL_LABEL


def _signal(name: str, score: int, max_score: int, detail: str) -> schemas.HealthSignal:
    return schemas.HealthSignal(
        name=name,
        score=score,
        max_score=max_score,
        status=signal_status(score, max_score),
        detail=detail,
    )


def _recency(updates: Sequence[Any], now: datetime, weights: HealthWeights) -> schemas.HealthSignal:
    maximum = weights.recency
    if not updates:
        return _signal("Update Recency", maximum, maximum, "No updates posted yet")

    latest = max(ensure_utc(update.created_at) for update in updates)
    days = _days_between(now, latest)
    shown = _round(days)
    if days <= weights.recency_grace_days:
        return _signal("Update Recency", maximum, maximum, f"Updated {_plural(shown, 'day')} ago")
    if days <= weights.recency_zero_days:
        span = weights.recency_zero_days - weights.recency_grace_days
        score = _round(maximum * (1 - (days - weights.recency_grace_days) / span))
        return _signal("Update Recency", score, maximum, f"Last update {shown} days ago")
    return _signal("Update Recency", 0, maximum, f"No update in {shown} days")


def _deadline(project: Any, now: datetime, weights: HealthWeights) -> schemas.HealthSignal:
    maximum = weights.deadline
    target = ensure_utc(project.target_date)
    phase_due = ensure_utc(project.phase_due_date)

    if target is not None and target < now:
        overdue = _round(_days_between(now, target))
        return _signal("Deadline Status", 0, maximum, f"Overdue by {overdue} days")
    if phase_due is not None and phase_due < now:
        overdue = _round(_days_between(now, phase_due))
        return _signal(
            "Deadline Status", _round(maximum / 2), maximum, f"Phase overdue by {overdue} days"
        )
    if target is not None:
        left = _round(_days_between(target, now))
        if _days_between(target, now) <= 3:
            detail = f"Due in {_plural(left, 'day')}"
        else:
            detail = f"On track, {left} days remaining"
        return _signal("Deadline Status", maximum, maximum, detail)
    return _signal("Deadline Status", maximum, maximum, "No deadline set")


def _revisions(updates: Sequence[Any], weights: HealthWeights) -> schemas.HealthSignal:
    maximum = weights.revisions
    count = sum(1 for update in updates if update.is_deliverable and update.is_approved is False)
    if count == 0:
        return _signal("Revision Rate", maximum, maximum, "No revisions")
    if count == 1:
        return _signal("Revision Rate", maximum, maximum, "1 revision request")
    # Every request past the first costs a third of the weight.
    score = max(0, _round(maximum * (4 - count) / 3))
    return _signal("Revision Rate", score, maximum, f"{count} revision requests")


def _tasks(tasks: Sequence[Any], weights: HealthWeights) -> schemas.HealthSignal:
    maximum = weights.tasks
    if not tasks:
        return _signal("Task Completion", maximum, maximum, "No tasks created")
    done = sum(1 for task in tasks if task.status == models.TaskStatus.DONE.value)
    ratio = done / len(tasks)
    return _signal(
        "Task Completion",
        _round(maximum * ratio),
        maximum,
        f"{done}/{len(tasks)} tasks complete ({_round(ratio * 100)}%)",
    )


def _blocked(project: Any, tasks: Sequence[Any], weights: HealthWeights) -> schemas.HealthSignal:
    maximum = weights.blocked
    if project.is_blocked:
        return _signal("Blocked Status", 0, maximum, "Project is blocked")
    blocked = sum(1 for task in tasks if task.status == models.TaskStatus.BLOCKED.value)
    if blocked:
        score = max(0, maximum - _round(blocked * maximum / 2))
        return _signal("Blocked Status", score, maximum, _plural(blocked, "blocked task"))
    return _signal("Blocked Status", maximum, maximum, "No blockers")


def _assignee(project: Any, weights: HealthWeights) -> schemas.HealthSignal:
    maximum = weights.assignee
    if project.assigned_to:
        return _signal("Has Assignee", maximum, maximum, "Assigned")
    return _signal("Has Assignee", 0, maximum, "Unassigned")


def _pending_review(
    updates: Sequence[Any], now: datetime, weights: HealthWeights
) -> schemas.HealthSignal:
    maximum = weights.pending_review
    pending = [
        ensure_utc(update.created_at)
        for update in updates
        if update.is_deliverable and update.is_approved is None
    ]
    if not pending:
        return _signal("Pending Review", maximum, maximum, "No pending deliverables")
    days = _days_between(now, min(pending))
    if days > weights.pending_review_days:
        return _signal(
            "Pending Review", 0, maximum, f"Deliverable pending review for {_round(days)} days"
        )
    return _signal(
        "Pending Review", maximum, maximum, f"Deliverable awaiting review ({_round(days)}d)"
    )


def compute_health_score(
    project: Any,
    updates: Sequence[Any],
    tasks: Sequence[Any],
    *,
    now: Optional[datetime] = None,
    weights: HealthWeights = DEFAULT_WEIGHTS,
) -> schemas.HealthScoreResult:
    """Score ``project`` from its updates and tasks.

    Blocked state, days since the latest update and the completed task ratio
    all move the score, alongside deadlines, revisions, assignment and
    deliverables waiting on the client.
    """

    now = ensure_utc(now) if now is not None else utcnow()
    signals = [
        _recency(updates, now, weights),
        _deadline(project, now, weights),
        _revisions(updates, weights),
        _tasks(tasks, weights),
        _blocked(project, tasks, weights),
        _assignee(project, weights),
        _pending_review(updates, now, weights),
    ]
    score = sum(signal.score for signal in signals)
    max_score = weights.total
    return schemas.HealthScoreResult(
        project_id=str(project.id),
        score=score,
        max_score=max_score,
        label=health_label(score, max_score),
        signals=signals,
    )


class HealthScoreService:
    @staticmethod
    def get_project(db: Session, project_id: str) -> Optional[models.Project]:
        return db.query(models.Project).filter(models.Project.id == project_id).first()

    @staticmethod
    def for_project(
        db: Session,
        context: RequestContext,
        project: models.Project,
        *,
        now: Optional[datetime] = None,
        weights: HealthWeights = DEFAULT_WEIGHTS,
    ) -> schemas.HealthScoreResult:
        ensure_company_access(context, str(project.company_id))
        updates = db.query(models.Update).filter(models.Update.project_id == project.id).all()
        tasks = db.query(models.Task).filter(models.Task.project_id == project.id).all()
        return compute_health_score(project, updates, tasks, now=now, weights=weights)
