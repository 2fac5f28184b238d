from datetime import timedelta

import pytest
from fastapi import HTTPException

from backend.portal.security import (
    PortalRole,
    RequestContext,
    SecurityConfigurationError,
    context_from_claims,
    create_access_token,
    ensure_company_access,
    get_request_context,
)

from conftest import client_context, team_context


def test_token_round_trip_preserves_the_context():
    context = client_context("company-1", user_id="user-1")

    decoded = get_request_context(create_access_token(context))

    assert decoded == context
    assert decoded.is_client
    assert not decoded.is_staff


def test_team_tokens_carry_no_company():
    decoded = get_request_context(create_access_token(team_context("user-2")))

    assert decoded.role is PortalRole.TEAM
    assert decoded.company_id is None
    assert decoded.can_access_company("any-company")


@pytest.mark.parametrize("token", ["not-a-token", "a.b.c", ""])
def test_malformed_tokens_are_rejected(token):
    with pytest.raises(HTTPException) as excinfo:
        get_request_context(token)

    assert excinfo.value.status_code == 401


def test_expired_tokens_are_rejected(monkeypatch):
    monkeypatch.setattr(
        "backend.portal.security._resolve_access_token_expiry",
        lambda: timedelta(minutes=-1),
    )
    expired = create_access_token(team_context())

    with pytest.raises(HTTPException) as excinfo:
        get_request_context(expired)

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Token expired"


def test_non_positive_expiry_is_a_configuration_error(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "0")

    with pytest.raises(SecurityConfigurationError):
        create_access_token(team_context())


def test_claims_require_a_subject():
    with pytest.raises(HTTPException) as excinfo:
        context_from_claims({"role": "team"})

    assert excinfo.value.status_code == 401


def test_unknown_roles_are_forbidden():
    with pytest.raises(HTTPException) as excinfo:
        context_from_claims({"sub": "user-1", "role": "superuser"})

    assert excinfo.value.status_code == 403


def test_client_claims_must_name_a_company():
    with pytest.raises(HTTPException) as excinfo:
        context_from_claims({"sub": "user-1", "role": "client"})

    assert excinfo.value.status_code == 403


def test_company_access_is_limited_for_clients():
    context = RequestContext(user_id="user-1", role=PortalRole.CLIENT, company_id="company-1")

    ensure_company_access(context, "company-1")
    with pytest.raises(HTTPException) as excinfo:
        ensure_company_access(context, "company-2")

    assert excinfo.value.status_code == 403
