from __future__ import annotations

import logging

from sqlalchemy import inspect, text

from backend.portal import models
from backend.portal.services import BatchLoader, PartialSuccess, PortalLoaders, run_source
from backend.portal.services.loaders import UNKNOWN_PROJECT


def test_batch_loader_issues_one_query_for_all_requested_ids(db_session):
    calls = []

    def fetch(_db, ids):
        calls.append(list(ids))
        return {key: key.upper() for key in ids}

    loader = BatchLoader(db_session, fetch)
    loader.request(["a", "b", None])
    loader.request(["b", "c"])

    assert loader.get("a") == "A"
    assert loader.get("c") == "C"
    assert loader.get("missing") is None
    assert calls == [["a", "b", "c"]]
    assert loader.batches_issued == 1


def test_batch_loader_does_not_refetch_known_ids(db_session):
    calls = []

    def fetch(_db, ids):
        calls.append(list(ids))
        return {}

    loader = BatchLoader(db_session, fetch)
    loader.request(["a"])
    loader.load()
    loader.request(["a"])
    loader.load()

    assert calls == [["a"]]


def test_portal_loaders_resolve_names(db_session, factory):
    company = factory.company()
    profile = factory.profile("Dana Reyes", company)
    project = factory.project(company, name="Launch")
    loaders = PortalLoaders(db_session)

    loaders.profiles.request([profile.id])
    loaders.projects.request([project.id, "00000000-0000-0000-0000-000000000000"])

    assert loaders.profile_name(profile.id) == "Dana Reyes"
    assert loaders.project_name(project.id) == "Launch"
    assert loaders.project_name("00000000-0000-0000-0000-000000000000") == UNKNOWN_PROJECT
    assert loaders.project_name(None) is None
    assert loaders.profiles.batches_issued == 1
    assert loaders.projects.batches_issued == 1


def test_run_source_turns_exceptions_into_failed_results(db_session, caplog):
    def broken():
        raise RuntimeError("relation does not exist")

    with caplog.at_level(logging.WARNING):
        result = run_source(db_session, "file_flags", broken)

    assert not result.ok
    assert result.items == []
    assert result.error.source == "file_flags"
    assert "relation does not exist" in result.error.message
    assert "file_flags" in caplog.text


def test_partial_success_tracks_failed_sources(db_session):
    outcome = PartialSuccess()

    healthy = outcome.track(run_source(db_session, "ok", lambda: [1, 2]))
    outcome.track(run_source(db_session, "broken", lambda: 1 / 0))

    assert healthy.items == [1, 2]
    assert [error.source for error in outcome.failed_sources] == ["broken"]
    assert not outcome.complete


def test_failed_query_keeps_rows_loaded_by_earlier_sources(db_session, factory):
    company = factory.company(name="Acme Dental")

    def missing_table():
        return db_session.execute(text("SELECT * FROM no_such_table")).all()

    result = run_source(db_session, "missing", missing_table)

    assert not result.ok
    assert not inspect(company).expired_attributes
    assert db_session.query(models.Company).filter_by(id=company.id).one().name == "Acme Dental"
