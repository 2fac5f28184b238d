"""Pending work that the agency team or a client has to act on."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..security import RequestContext, ensure_company_access
from .loaders import PortalLoaders
from .sources import PartialSuccess, SourceResult, run_source
from .timeutils import ensure_utc

LOGGER = logging.getLogger(__name__)

PRIORITY_RANK = {
    models.Priority.URGENT.value: 0,
    models.Priority.IMPORTANT.value: 1,
    models.Priority.NORMAL.value: 2,
    models.Priority.QUEUED.value: 3,
}
DEFAULT_PRIORITY = models.Priority.NORMAL.value
DELIVERABLE_PREVIEW_LENGTH = 100

ActionRole = schemas.ActionRole
ActionItemType = schemas.ActionItemType

_Builder = Callable[[Any, PortalLoaders], Optional[schemas.ActionItem]]


def priority_rank(priority: Optional[str]) -> int:
    return PRIORITY_RANK.get(priority or DEFAULT_PRIORITY, PRIORITY_RANK[DEFAULT_PRIORITY])


def sort_action_items(items: List[schemas.ActionItem]) -> List[schemas.ActionItem]:
    """Order by priority rank, newest first within the same rank."""

    by_date = sorted(items, key=lambda item: item.created_at, reverse=True)
    return sorted(by_date, key=lambda item: priority_rank(item.priority))


def resolve_role(context: RequestContext, requested: Optional[ActionRole]) -> ActionRole:
    if context.is_client:
        if requested == ActionRole.TEAM:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Clients cannot list team action items",
            )
        return ActionRole.CLIENT
    return requested or ActionRole.TEAM


# -- queries -------------------------------------------------------------------


def _change_requests(db: Session) -> list:
    return (
        db.query(models.Update)
        .filter(
            models.Update.is_deliverable.is_(True),
            models.Update.is_approved.is_(False),
            models.Update.change_request_text.isnot(None),
            models.Update.change_request_draft.is_(False),
        )
        .all()
    )


def _open_flags(db: Session, recipient: models.FlagRecipient, company_id: Optional[str]) -> list:
    query = db.query(models.FileFlag).filter(
        models.FileFlag.flagged_for == recipient.value,
        models.FileFlag.resolved.is_(False),
    )
    if company_id is not None:
        query = query.join(models.File, models.FileFlag.file_id == models.File.id).filter(
            models.File.company_id == company_id
        )
    return query.all()


def _blocked_projects(db: Session, company_id: Optional[str]) -> list:
    query = db.query(models.Project).filter(models.Project.is_blocked.is_(True))
    if company_id is not None:
        query = query.filter(models.Project.company_id == company_id)
    return query.all()


def _pending_deliverables(db: Session, company_id: str) -> list:
    return (
        db.query(models.Update)
        .join(models.Project, models.Update.project_id == models.Project.id)
        .filter(
            models.Project.company_id == company_id,
            models.Update.is_deliverable.is_(True),
            models.Update.is_approved.is_(None),
        )
        .all()
    )


class ActionItemService:
    """Derives the action item list for one role."""

    @staticmethod
    def derive(
        db: Session,
        context: RequestContext,
        *,
        company_id: Optional[str] = None,
        for_role: Optional[ActionRole] = None,
    ) -> Tuple[ActionRole, PartialSuccess[schemas.ActionItem]]:
        role = resolve_role(context, for_role)
        if context.is_client:
            if company_id is not None:
                ensure_company_access(context, company_id)
            company_id = context.company_id
        scope = str(company_id) if company_id is not None else None

        if role == ActionRole.TEAM:
            sources = ActionItemService._team_sources(db, scope)
        elif scope is None:
            # Client items only exist inside a company.
            return role, PartialSuccess()
        else:
            sources = ActionItemService._client_sources(db, scope)

        outcome: PartialSuccess[schemas.ActionItem] = PartialSuccess()
        fetched: List[Tuple[SourceResult, _Builder]] = []
        for name, fetch, builder in sources:
            result = outcome.track(run_source(db, name, fetch))
            if result.ok:
                fetched.append((result, builder))

        loaders = PortalLoaders(db)
        for result, _ in fetched:
            for row in result.items:
                loaders.projects.request([getattr(row, "project_id", None)])
                loaders.files.request([getattr(row, "file_id", None)])
        outcome.track(run_source(db, "files", lambda: loaders.files.load().values()))
        loaders.projects.request(
            info.project_id for info in loaders.files.load().values()
        )
        outcome.track(run_source(db, "projects", lambda: loaders.projects.load().values()))

        items: List[schemas.ActionItem] = []
        for result, builder in fetched:
            for row in result.items:
                item = builder(row, loaders)
                if item is None:
                    continue
                if scope is not None and item.company_id != scope:
                    continue
                items.append(item)

        loaders.companies.request(item.company_id for item in items)
        outcome.track(run_source(db, "companies", lambda: loaders.companies.load().values()))
        for item in items:
            company = loaders.companies.get(item.company_id)
            item.company_name = company.name if company else None

        outcome.items = sort_action_items(items)
        LOGGER.debug(
            "Derived %d %s action items (company=%s)", len(outcome.items), role.value, scope
        )
        return role, outcome

    @staticmethod
    def _team_sources(db: Session, scope: Optional[str]):
        return [
            ("change_requests", lambda: _change_requests(db), _build_change_request),
            (
                "team_file_flags",
                lambda: _open_flags(db, models.FlagRecipient.TEAM, scope),
                lambda row, loaders: _build_file_flag(row, loaders, ActionRole.TEAM),
            ),
            ("blocked_projects", lambda: _blocked_projects(db, scope), _build_blocked_project),
        ]

    @staticmethod
    def _client_sources(db: Session, scope: str):
        return [
            (
                "pending_deliverables",
                lambda: _pending_deliverables(db, scope),
                _build_deliverable_review,
            ),
            (
                "client_file_flags",
                lambda: _open_flags(db, models.FlagRecipient.CLIENT, scope),
                lambda row, loaders: _build_file_flag(row, loaders, ActionRole.CLIENT),
            ),
        ]

    @staticmethod
    def response(
        role: ActionRole, outcome: PartialSuccess[schemas.ActionItem]
    ) -> schemas.ActionItemsResponse:
        return schemas.ActionItemsResponse(
            for_role=role,
            items=outcome.items,
            failed_sources=[
                schemas.SourceFailure(source=error.source, message=error.message)
                for error in outcome.failed_sources
            ],
            complete=outcome.complete,
        )


# -- builders ------------------------------------------------------------------


def _created(*candidates: Optional[datetime]) -> datetime:
    for value in candidates:
        if value is not None:
            return ensure_utc(value)
    raise ValueError("Action item source row has no timestamp")


def _build_change_request(update, loaders: PortalLoaders) -> Optional[schemas.ActionItem]:
    project = loaders.projects.get(str(update.project_id))
    if project is None:
        return None
    return schemas.ActionItem(
        id=f"change-{update.id}",
        type=ActionItemType.CHANGE_REQUEST,
        title="Change Request",
        description=update.change_request_text or "Client requested changes",
        project_id=project.id,
        project_name=project.name,
        company_id=project.company_id,
        priority=project.priority,
        for_role=ActionRole.TEAM,
        created_at=_created(update.change_request_submitted_at, update.created_at),
    )


def _build_file_flag(flag, loaders: PortalLoaders, role: ActionRole) -> Optional[schemas.ActionItem]:
    file = loaders.files.get(str(flag.file_id))
    if file is None:
        return None
    project = loaders.projects.get(file.project_id)
    return schemas.ActionItem(
        id=f"flag-{flag.id}",
        type=ActionItemType.FILE_FLAG,
        title="File Flagged" if role == ActionRole.TEAM else "File Needs Review",
        description=flag.flag_message,
        project_id=project.id if project else None,
        project_name=project.name if project else None,
        company_id=file.company_id,
        file_id=file.id,
        priority=project.priority if project else DEFAULT_PRIORITY,
        for_role=role,
        created_at=_created(flag.created_at),
    )


def _build_blocked_project(project, loaders: PortalLoaders) -> schemas.ActionItem:
    return schemas.ActionItem(
        id=f"blocked-{project.id}",
        type=ActionItemType.PROJECT_BLOCKED,
        title="Project Blocked",
        description=project.blocked_reason or "Needs attention",
        project_id=str(project.id),
        project_name=project.name,
        company_id=str(project.company_id),
        priority=project.priority or DEFAULT_PRIORITY,
        for_role=ActionRole.TEAM,
        created_at=_created(project.created_at),
    )


def _build_deliverable_review(update, loaders: PortalLoaders) -> Optional[schemas.ActionItem]:
    project = loaders.projects.get(str(update.project_id))
    if project is None:
        return None
    return schemas.ActionItem(
        id=f"deliverable-{update.id}",
        type=ActionItemType.DELIVERABLE_REVIEW,
        title="Review Deliverable",
        description=update.content[:DELIVERABLE_PREVIEW_LENGTH],
        project_id=project.id,
        project_name=project.name,
        company_id=project.company_id,
        priority=project.priority,
        for_role=ActionRole.CLIENT,
        created_at=_created(update.created_at),
    )
