from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException

from backend.portal import models, schemas
from backend.portal.services import ActionItemService
from backend.portal.services.action_items import priority_rank

from conftest import NOW, client_context, team_context


def _change_request(factory, project, text, **kwargs):
    kwargs.setdefault("change_request_submitted_at", NOW - timedelta(hours=3))
    kwargs.setdefault("change_request_draft", False)
    return factory.update(
        project,
        content="Homepage mockup",
        is_deliverable=True,
        is_approved=False,
        change_request_text=text,
        **kwargs,
    )


def test_team_items_put_urgent_blocked_project_before_normal_change_request(db_session, factory):
    company = factory.company()
    p1 = factory.project(
        company,
        name="P1",
        priority="urgent",
        is_blocked=True,
        blocked_reason="Waiting on logo",
        created_at=NOW - timedelta(days=10),
    )
    p2 = factory.project(company, name="P2", priority="normal")
    _change_request(factory, p2, "Make the CTA bigger")

    role, outcome = ActionItemService.derive(db_session, team_context())

    assert role == schemas.ActionRole.TEAM
    assert [(item.type, item.project_id) for item in outcome.items] == [
        (schemas.ActionItemType.PROJECT_BLOCKED, p1.id),
        (schemas.ActionItemType.CHANGE_REQUEST, p2.id),
    ]
    blocked, change = outcome.items
    assert blocked.description == "Waiting on logo"
    assert change.description == "Make the CTA bigger"
    assert change.company_name == company.name
    assert all(item.for_role == schemas.ActionRole.TEAM for item in outcome.items)
    assert outcome.complete


def test_team_change_request_rules(db_session, factory):
    company = factory.company()
    project = factory.project(company)
    _change_request(factory, project, "Counted")
    _change_request(factory, project, "Still a draft", change_request_draft=True)
    factory.update(project, is_deliverable=True, is_approved=False)
    factory.update(project, is_deliverable=True, is_approved=True, change_request_text="Old")

    _, outcome = ActionItemService.derive(db_session, team_context())

    assert [item.description for item in outcome.items] == ["Counted"]


def test_team_file_flags_inherit_priority_from_the_files_project(db_session, factory):
    company = factory.company()
    project = factory.project(company, priority="important")
    with_project = factory.file(company, name="brief.pdf", project_id=project.id)
    loose = factory.file(company, name="notes.txt")
    factory.flag(with_project, "Outdated brief", created_at=NOW - timedelta(days=3))
    factory.flag(loose, "Typo", created_at=NOW - timedelta(days=1))
    factory.flag(loose, "Resolved already", resolved=True)
    factory.flag(loose, "For the client", flagged_for=models.FlagRecipient.CLIENT.value)

    _, outcome = ActionItemService.derive(db_session, team_context(), company_id=company.id)

    assert [(item.description, item.priority) for item in outcome.items] == [
        ("Outdated brief", "important"),
        ("Typo", "normal"),
    ]
    assert outcome.items[0].project_name == project.name
    assert all(item.company_id == company.id for item in outcome.items)


def test_team_company_scope_excludes_other_companies(db_session, factory):
    mine = factory.company()
    other = factory.company("Other Co")
    factory.project(mine, is_blocked=True)
    other_project = factory.project(other, is_blocked=True)
    _change_request(factory, other_project, "Not mine")

    _, outcome = ActionItemService.derive(db_session, team_context(), company_id=mine.id)

    assert {item.company_id for item in outcome.items} == {mine.id}


def test_client_items_are_limited_to_their_company(db_session, factory):
    mine = factory.company()
    other = factory.company("Other Co")
    my_project = factory.project(mine, priority="urgent")
    other_project = factory.project(other)
    factory.update(my_project, content="x" * 150, is_deliverable=True, is_approved=None)
    factory.update(other_project, content="Theirs", is_deliverable=True, is_approved=None)
    factory.flag(
        factory.file(mine, name="mine.png"),
        "Please confirm",
        flagged_for=models.FlagRecipient.CLIENT.value,
    )
    factory.flag(
        factory.file(other, name="theirs.png"),
        "Not for you",
        flagged_for=models.FlagRecipient.CLIENT.value,
    )

    role, outcome = ActionItemService.derive(db_session, client_context(mine.id))

    assert role == schemas.ActionRole.CLIENT
    assert [item.type for item in outcome.items] == [
        schemas.ActionItemType.DELIVERABLE_REVIEW,
        schemas.ActionItemType.FILE_FLAG,
    ]
    assert all(item.company_id == mine.id for item in outcome.items)
    review, flag = outcome.items
    assert review.title == "Review Deliverable"
    assert len(review.description) == 100
    assert flag.title == "File Needs Review"


def test_client_role_without_company_scope_is_empty(db_session, factory):
    company = factory.company()
    project = factory.project(company)
    factory.update(project, is_deliverable=True, is_approved=None)

    role, outcome = ActionItemService.derive(
        db_session, team_context(), for_role=schemas.ActionRole.CLIENT
    )

    assert role == schemas.ActionRole.CLIENT
    assert outcome.items == []


def test_clients_cannot_request_team_items_or_other_companies(db_session, factory):
    mine = factory.company()
    other = factory.company("Other Co")

    with pytest.raises(HTTPException) as team_error:
        ActionItemService.derive(
            db_session, client_context(mine.id), for_role=schemas.ActionRole.TEAM
        )
    with pytest.raises(HTTPException) as scope_error:
        ActionItemService.derive(db_session, client_context(mine.id), company_id=other.id)

    assert team_error.value.status_code == 403
    assert scope_error.value.status_code == 403


def test_failing_source_is_reported_without_losing_other_items(db_session, factory, monkeypatch):
    company = factory.company()
    factory.project(company, is_blocked=True)

    def broken(_db):
        raise RuntimeError("updates unavailable")

    monkeypatch.setattr("backend.portal.services.action_items._change_requests", broken)

    _, outcome = ActionItemService.derive(db_session, team_context())

    assert [item.type for item in outcome.items] == [schemas.ActionItemType.PROJECT_BLOCKED]
    assert [error.source for error in outcome.failed_sources] == ["change_requests"]


def test_unknown_priorities_rank_as_normal():
    assert priority_rank("urgent") < priority_rank("important") < priority_rank("normal")
    assert priority_rank("someday") == priority_rank("normal") == priority_rank(None)
    assert priority_rank("queued") > priority_rank("normal")


def test_failed_file_lookup_is_reported_with_the_sources(db_session, factory, monkeypatch):
    company = factory.company()
    factory.project(company, is_blocked=True)
    factory.flag(factory.file(company, name="brief.pdf"), "Outdated brief")

    def broken(db, ids):
        raise RuntimeError("files unavailable")

    monkeypatch.setattr("backend.portal.services.loaders._fetch_files", broken)

    _, outcome = ActionItemService.derive(db_session, team_context(), company_id=company.id)

    assert [item.type for item in outcome.items] == [schemas.ActionItemType.PROJECT_BLOCKED]
    assert not outcome.complete
    assert [error.source for error in outcome.failed_sources] == ["files"]
