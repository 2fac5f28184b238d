"""Reverse-chronological activity feed for a client company.

The feed is assembled from twelve independent sources. Each source is run in
isolation through :func:`run_source`; rows are normalized only after every
source has run so that all referenced profiles are resolved with a single
batched lookup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import read_int_env
from ..security import RequestContext, ensure_company_access
from .loaders import PortalLoaders
from .sources import PartialSuccess, run_source
from .timeutils import ensure_utc, format_hours, utcnow

LOGGER = logging.getLogger(__name__)

ACTIVITY_FEED_DAYS_BACK_ENV = "ACTIVITY_FEED_DAYS_BACK"
DEFAULT_DAYS_BACK = 90
DEFAULT_AUTHOR = "Team member"

ActivityType = schemas.ActivityType
LEGACY_ACTIVITY_TYPES = schemas.LEGACY_ACTIVITY_TYPES


def default_days_back() -> int:
    return read_int_env(ACTIVITY_FEED_DAYS_BACK_ENV, DEFAULT_DAYS_BACK)


@dataclass(frozen=True)
class _FeedSource:
    """Query plus normalizer for one activity kind.

    ``profile_attr`` names the attribute holding the user id whose display
    name the normalizer needs; it is collected before normalization.
    """

    type: ActivityType
    fetch: Callable[[Session, str, datetime], List[Any]]
    normalize: Callable[[Any, str, PortalLoaders], schemas.ActivityItem]
    profile_attr: Optional[str] = None


def _str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


# -- queries -----------------------------------------------------------------


def _company_updates(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.CompanyUpdate)
        .filter(
            models.CompanyUpdate.company_id == company_id,
            models.CompanyUpdate.created_at >= cutoff,
        )
        .order_by(models.CompanyUpdate.created_at.desc())
        .all()
    )


def _change_requests(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.Update, models.Project.name)
        .join(models.Project, models.Update.project_id == models.Project.id)
        .filter(
            models.Project.company_id == company_id,
            models.Update.change_request_text.isnot(None),
            models.Update.change_request_submitted_at.isnot(None),
            models.Update.change_request_draft.is_(False),
        )
        .order_by(models.Update.change_request_submitted_at.desc())
        .all()
    )


def _file_flags(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.FileFlag, models.File)
        .join(models.File, models.FileFlag.file_id == models.File.id)
        .filter(models.File.company_id == company_id, models.FileFlag.resolved.is_(False))
        .order_by(models.FileFlag.created_at.desc())
        .all()
    )


def _blocked_projects(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.Project)
        .filter(models.Project.company_id == company_id, models.Project.is_blocked.is_(True))
        .order_by(models.Project.updated_at.desc())
        .all()
    )


def _pending_deliverables(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.Update, models.Project.name)
        .join(models.Project, models.Update.project_id == models.Project.id)
        .filter(
            models.Project.company_id == company_id,
            models.Update.is_deliverable.is_(True),
            models.Update.is_approved.is_(None),
        )
        .order_by(models.Update.created_at.desc())
        .all()
    )


def _completed_tasks(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.Task, models.Project.name)
        .join(models.Project, models.Task.project_id == models.Project.id)
        .filter(
            models.Project.company_id == company_id,
            models.Task.status == models.TaskStatus.DONE.value,
            models.Task.updated_at >= cutoff,
        )
        .order_by(models.Task.updated_at.desc())
        .all()
    )


def _completed_projects(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.Project)
        .filter(
            models.Project.company_id == company_id,
            models.Project.status == models.ProjectStatus.COMPLETE.value,
            models.Project.updated_at >= cutoff,
        )
        .order_by(models.Project.updated_at.desc())
        .all()
    )


def _approved_deliverables(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.Update, models.Project.name)
        .join(models.Project, models.Update.project_id == models.Project.id)
        .filter(
            models.Project.company_id == company_id,
            models.Update.is_deliverable.is_(True),
            models.Update.is_approved.is_(True),
            models.Update.created_at >= cutoff,
        )
        .order_by(models.Update.created_at.desc())
        .all()
    )


def _time_entries(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.TimeEntry)
        .filter(
            models.TimeEntry.company_id == company_id,
            models.TimeEntry.created_at >= cutoff,
        )
        .order_by(models.TimeEntry.created_at.desc())
        .all()
    )


def _uploaded_files(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.File)
        .filter(models.File.company_id == company_id, models.File.created_at >= cutoff)
        .order_by(models.File.created_at.desc())
        .all()
    )


def _credentials(db: Session, company_id: str, cutoff: datetime) -> list:
    # The secret value is never selected.
    return (
        db.query(
            models.CompanyCredential.id,
            models.CompanyCredential.label,
            models.CompanyCredential.created_by,
            models.CompanyCredential.created_at,
        )
        .filter(
            models.CompanyCredential.company_id == company_id,
            models.CompanyCredential.created_at >= cutoff,
        )
        .order_by(models.CompanyCredential.created_at.desc())
        .all()
    )


def _client_notes(db: Session, company_id: str, cutoff: datetime) -> list:
    return (
        db.query(models.ClientNote)
        .filter(
            models.ClientNote.company_id == company_id,
            models.ClientNote.created_at >= cutoff,
        )
        .order_by(models.ClientNote.created_at.desc())
        .all()
    )


# -- normalizers ---------------------------------------------------------------


def _normalize_company_update(row, company_id, loaders):
    author = loaders.profile_name(_str(row.author_id))
    return schemas.ActivityItem(
        id=f"update-{row.id}",
        type=ActivityType.COMPANY_UPDATE,
        title=f"{author or DEFAULT_AUTHOR} posted an update",
        description=row.content,
        author_name=author,
        update_id=str(row.id),
        company_id=company_id,
        created_at=ensure_utc(row.created_at),
        raw={"content": row.content},
    )


def _normalize_change_request(row, company_id, loaders):
    update, project_name = row
    return schemas.ActivityItem(
        id=f"change-{update.id}",
        type=ActivityType.CHANGE_REQUEST,
        title="Change Request",
        description=update.change_request_text,
        project_id=str(update.project_id),
        project_name=project_name,
        update_id=str(update.id),
        company_id=company_id,
        created_at=ensure_utc(update.change_request_submitted_at),
        raw={"content": update.content},
    )


def _normalize_file_flag(row, company_id, loaders):
    flag, file = row
    return schemas.ActivityItem(
        id=f"flag-{flag.id}",
        type=ActivityType.FILE_FLAG,
        title="File Flagged",
        description=flag.flag_message,
        project_id=_str(file.project_id),
        file_id=str(file.id),
        file_name=file.title or file.name,
        company_id=company_id,
        created_at=ensure_utc(flag.created_at),
        raw={"for_role": flag.flagged_for, "flagged_by_role": flag.flagged_by_role},
    )


def _normalize_blocked_project(project, company_id, loaders):
    return schemas.ActivityItem(
        id=f"blocked-{project.id}",
        type=ActivityType.PROJECT_BLOCKED,
        title="Project Blocked",
        description=project.blocked_reason or "This project is currently blocked",
        project_id=str(project.id),
        project_name=project.name,
        company_id=company_id,
        created_at=ensure_utc(project.updated_at),
        raw={"priority": project.priority},
    )


def _normalize_pending_deliverable(row, company_id, loaders):
    update, project_name = row
    return schemas.ActivityItem(
        id=f"deliverable-{update.id}",
        type=ActivityType.DELIVERABLE_REVIEW,
        title="Deliverable Review",
        description=update.content,
        project_id=str(update.project_id),
        project_name=project_name,
        update_id=str(update.id),
        company_id=company_id,
        created_at=ensure_utc(update.created_at),
    )


def _normalize_completed_task(row, company_id, loaders):
    task, project_name = row
    return schemas.ActivityItem(
        id=f"task-done-{task.id}",
        type=ActivityType.TASK_COMPLETED,
        title="Task Completed",
        description=task.title,
        project_id=str(task.project_id),
        project_name=project_name,
        task_id=str(task.id),
        company_id=company_id,
        created_at=ensure_utc(task.updated_at),
    )


def _normalize_completed_project(project, company_id, loaders):
    return schemas.ActivityItem(
        id=f"project-done-{project.id}",
        type=ActivityType.PROJECT_COMPLETED,
        title="Project Completed",
        description=project.name,
        project_id=str(project.id),
        project_name=project.name,
        company_id=company_id,
        created_at=ensure_utc(project.updated_at),
    )


def _normalize_approved_deliverable(row, company_id, loaders):
    update, project_name = row
    return schemas.ActivityItem(
        id=f"approved-{update.id}",
        type=ActivityType.DELIVERABLE_APPROVED,
        title="Deliverable Approved",
        description=update.content,
        project_id=str(update.project_id),
        project_name=project_name,
        update_id=str(update.id),
        company_id=company_id,
        created_at=ensure_utc(update.created_at),
    )


def _normalize_time_entry(entry, company_id, loaders):
    author = loaders.profile_name(_str(entry.user_id))
    project_id = _str(entry.project_id)
    project_name = loaders.project_name(project_id)
    return schemas.ActivityItem(
        id=f"hours-{entry.id}",
        type=ActivityType.HOURS_LOGGED,
        title=f"{author or DEFAULT_AUTHOR} logged {format_hours(entry.hours)}h",
        description=entry.description or project_name or "",
        author_name=author,
        project_id=project_id,
        project_name=project_name,
        task_id=_str(entry.task_id),
        company_id=company_id,
        created_at=ensure_utc(entry.created_at or entry.date),
        raw={"hours": str(entry.hours), "date": entry.date.isoformat()},
    )


def _normalize_uploaded_file(file, company_id, loaders):
    author = loaders.profile_name(_str(file.uploaded_by))
    return schemas.ActivityItem(
        id=f"file-{file.id}",
        type=ActivityType.FILE_UPLOADED,
        title=f"{author or DEFAULT_AUTHOR} uploaded a file",
        description=file.title or file.name,
        author_name=author,
        project_id=_str(file.project_id),
        file_id=str(file.id),
        file_name=file.title or file.name,
        company_id=company_id,
        created_at=ensure_utc(file.created_at),
        raw={"category": file.category},
    )


def _normalize_credential(row, company_id, loaders):
    author = loaders.profile_name(_str(row.created_by))
    return schemas.ActivityItem(
        id=f"credential-{row.id}",
        type=ActivityType.CREDENTIAL_ADDED,
        title=f"{author or DEFAULT_AUTHOR} added a credential",
        description=row.label,
        author_name=author,
        company_id=company_id,
        created_at=ensure_utc(row.created_at),
    )


def _normalize_note(note, company_id, loaders):
    author = loaders.profile_name(_str(note.created_by))
    return schemas.ActivityItem(
        id=f"note-{note.id}",
        type=ActivityType.NOTE_ADDED,
        title=f"{author or DEFAULT_AUTHOR} added a note",
        description=note.content,
        author_name=author,
        company_id=company_id,
        created_at=ensure_utc(note.created_at),
        raw={"category": note.category},
    )


FEED_SOURCES: tuple[_FeedSource, ...] = (
    _FeedSource(ActivityType.COMPANY_UPDATE, _company_updates, _normalize_company_update, "author_id"),
    _FeedSource(ActivityType.CHANGE_REQUEST, _change_requests, _normalize_change_request),
    _FeedSource(ActivityType.FILE_FLAG, _file_flags, _normalize_file_flag),
    _FeedSource(ActivityType.PROJECT_BLOCKED, _blocked_projects, _normalize_blocked_project),
    _FeedSource(ActivityType.DELIVERABLE_REVIEW, _pending_deliverables, _normalize_pending_deliverable),
    _FeedSource(ActivityType.TASK_COMPLETED, _completed_tasks, _normalize_completed_task),
    _FeedSource(ActivityType.PROJECT_COMPLETED, _completed_projects, _normalize_completed_project),
    _FeedSource(
        ActivityType.DELIVERABLE_APPROVED, _approved_deliverables, _normalize_approved_deliverable
    ),
    _FeedSource(ActivityType.HOURS_LOGGED, _time_entries, _normalize_time_entry, "user_id"),
    _FeedSource(ActivityType.FILE_UPLOADED, _uploaded_files, _normalize_uploaded_file, "uploaded_by"),
    _FeedSource(ActivityType.CREDENTIAL_ADDED, _credentials, _normalize_credential, "created_by"),
    _FeedSource(ActivityType.NOTE_ADDED, _client_notes, _normalize_note, "created_by"),
)


def sort_feed(items: Iterable[schemas.ActivityItem]) -> List[schemas.ActivityItem]:
    """Newest first; equal timestamps keep source-then-row order."""

    return sorted(items, key=lambda item: item.created_at, reverse=True)


class ActivityFeedService:
    """Builds the activity feed shown on a company's dashboard."""

    sources: tuple[_FeedSource, ...] = FEED_SOURCES

    @classmethod
    def build_feed(
        cls,
        db: Session,
        context: RequestContext,
        company_id: str,
        *,
        types: Optional[Iterable[ActivityType]] = None,
        limit: Optional[int] = None,
        days_back: Optional[int] = None,
        legacy: bool = False,
        now: Optional[datetime] = None,
    ) -> PartialSuccess[schemas.ActivityItem]:
        ensure_company_access(context, company_id)
        company_id = str(company_id)
        wanted = {ActivityType(value) for value in types} if types else None
        if legacy:
            wanted = set(LEGACY_ACTIVITY_TYPES) if wanted is None else wanted & LEGACY_ACTIVITY_TYPES
        window = default_days_back() if days_back is None else days_back
        cutoff = (now or utcnow()) - timedelta(days=window)

        fetched: Dict[_FeedSource, list] = {}
        outcome: PartialSuccess[schemas.ActivityItem] = PartialSuccess()
        for source in cls.sources:
            # Kinds outside the filter are never queried.
            if wanted is not None and source.type not in wanted:
                continue
            result = run_source(
                db,
                source.type.value,
                lambda source=source: source.fetch(db, company_id, cutoff),
            )
            if outcome.track(result).ok:
                fetched[source] = result.items

        loaders = PortalLoaders(db)
        for source, rows in fetched.items():
            if source.profile_attr:
                loaders.profiles.request(getattr(row, source.profile_attr) for row in rows)
            if source.type == ActivityType.HOURS_LOGGED:
                loaders.projects.request(row.project_id for row in rows)
        # A failed lookup leaves names unresolved and is reported with the sources.
        outcome.track(run_source(db, "profiles", lambda: loaders.profiles.load().values()))
        outcome.track(run_source(db, "projects", lambda: loaders.projects.load().values()))

        items: List[schemas.ActivityItem] = []
        for source, rows in fetched.items():
            items.extend(source.normalize(row, company_id, loaders) for row in rows)

        items = sort_feed(items)
        if wanted is not None:
            items = [item for item in items if item.type in wanted]
        if limit is not None:
            items = items[: max(limit, 0)]

        outcome.items = items
        if not outcome.complete:
            LOGGER.warning(
                "Activity feed for company %s is partial; failed sources: %s",
                company_id,
                ", ".join(error.source for error in outcome.failed_sources),
            )
        return outcome

    @classmethod
    def feed_response(cls, outcome: PartialSuccess[schemas.ActivityItem]) -> schemas.ActivityFeedResponse:
        return schemas.ActivityFeedResponse(
            items=outcome.items,
            failed_sources=[
                schemas.SourceFailure(source=error.source, message=error.message)
                for error in outcome.failed_sources
            ],
            complete=outcome.complete,
        )
