from __future__ import annotations

from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text

from backend.portal.database import Base
from backend.portal.migrations import run_database_migrations

BACKEND_DIR = Path(__file__).resolve().parents[1]


def _configure_alembic_script() -> ScriptDirectory:
    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    return ScriptDirectory.from_config(config)


def _migrate(url: str, monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", url)
    try:
        run_database_migrations()
    finally:
        monkeypatch.delenv("DATABASE_URL", raising=False)


def _version(url: str) -> str:
    engine = create_engine(url, connect_args={"check_same_thread": False})
    try:
        with engine.connect() as connection:
            return connection.scalar(text("SELECT version_num FROM alembic_version"))
    finally:
        engine.dispose()


def test_run_database_migrations_builds_empty_database(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'empty.db'}"

    _migrate(url, monkeypatch)

    engine = create_engine(url, connect_args={"check_same_thread": False})
    tables = inspect(engine).get_table_names()
    engine.dispose()
    for table in ("companies", "projects", "time_entries", "billing_period_statuses", "reminders"):
        assert table in tables
    assert _version(url) == _configure_alembic_script().get_current_head()


def test_run_database_migrations_adds_portal_tables_to_hosted_schema(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'hosted.db'}"
    engine = create_engine(url, connect_args={"check_same_thread": False})
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE companies (id CHAR(36) PRIMARY KEY, name VARCHAR)"))
    engine.dispose()

    _migrate(url, monkeypatch)

    engine = create_engine(url, connect_args={"check_same_thread": False})
    inspector = inspect(engine)
    assert inspector.has_table("billing_period_statuses")
    assert inspector.has_table("reminders")
    # The hosted tables are stamped, not recreated.
    assert not inspector.has_table("projects")
    engine.dispose()
    assert _version(url) == _configure_alembic_script().get_current_head()


def test_run_database_migrations_stamps_head_for_current_schema(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'current.db'}"
    engine = create_engine(url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    engine.dispose()

    _migrate(url, monkeypatch)

    assert _version(url) == _configure_alembic_script().get_current_head()
