from fastapi.testclient import TestClient

from backend.portal.main import (
    LOCAL_DEVELOPMENT_ORIGINS,
    _load_allowed_origins_from_env,
    _resolve_allowed_origins,
    _split_raw_origins,
    app,
)


def test_split_raw_origins_accepts_commas_and_whitespace():
    raw = "https://portal.example.com, https://app.example.com http://localhost:5173"
    assert _split_raw_origins(raw) == [
        "https://portal.example.com",
        "https://app.example.com",
        "http://localhost:5173",
    ]


def test_load_allowed_origins_from_env_normalizes_values(monkeypatch):
    monkeypatch.setenv(
        "PORTAL_ALLOWED_ORIGINS",
        "https://portal.example.com/ https://app.example.com,https://portal.example.com",
    )

    origins = _load_allowed_origins_from_env()

    assert origins == [
        "https://app.example.com",
        "https://portal.example.com",
    ]


def test_local_development_origins_are_always_allowed(monkeypatch):
    monkeypatch.setenv("PORTAL_ALLOWED_ORIGINS", "https://portal.example.com")

    origins = _resolve_allowed_origins()

    assert "https://portal.example.com" in origins
    assert LOCAL_DEVELOPMENT_ORIGINS.issubset(origins)


def test_preflight_includes_cors_headers_for_local_dev_origin():
    client = TestClient(app)
    origin = "http://localhost:5173"

    response = client.options(
        "/action-items/",
        headers={
            "Origin": origin,
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert response.headers.get("access-control-allow-origin") == origin
