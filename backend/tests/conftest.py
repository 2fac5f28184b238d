from __future__ import annotations

import base64
import os
import sys
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["PORTAL_JWT_SECRET"] = base64.urlsafe_b64encode(b"\x07" * 32).decode()
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "60"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "0"
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.pop("REQUIRE_POSTGRES", None)

from backend.portal import models  # noqa: E402
from backend.portal.database import Base, get_db  # noqa: E402
from backend.portal.main import app  # noqa: E402
from backend.portal.security import PortalRole, RequestContext, create_access_token  # noqa: E402

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

NOW = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


def team_context(user_id: Optional[str] = None) -> RequestContext:
    return RequestContext(user_id=user_id or str(uuid.uuid4()), role=PortalRole.TEAM)


def client_context(company_id: str, user_id: Optional[str] = None) -> RequestContext:
    return RequestContext(
        user_id=user_id or str(uuid.uuid4()), role=PortalRole.CLIENT, company_id=str(company_id)
    )


def auth_headers(context: RequestContext) -> dict:
    return {"Authorization": f"Bearer {create_access_token(context)}"}


class PortalFactory:
    """Creates rows with sensible defaults; every call flushes."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _add(self, row):
        self.db.add(row)
        self.db.flush()
        return row

    def company(self, name: str = "Acme Dental", **kwargs) -> models.Company:
        kwargs.setdefault("retainer_type", models.RetainerType.HOURLY.value)
        kwargs.setdefault("hours_allocated", Decimal("20"))
        kwargs.setdefault("hourly_rate", Decimal("100"))
        return self._add(models.Company(id=str(uuid.uuid4()), name=name, **kwargs))

    def profile(self, full_name: str, company: Optional[models.Company] = None) -> models.Profile:
        return self._add(
            models.Profile(
                id=str(uuid.uuid4()),
                full_name=full_name,
                email=f"{full_name.split()[0].lower()}@example.com",
                company_id=company.id if company else None,
            )
        )

    def project(self, company: models.Company, name: str = "Spring Campaign", **kwargs) -> models.Project:
        kwargs.setdefault("created_at", NOW - timedelta(days=30))
        kwargs.setdefault("updated_at", NOW - timedelta(days=1))
        return self._add(
            models.Project(id=str(uuid.uuid4()), company_id=company.id, name=name, **kwargs)
        )

    def update(self, project: models.Project, content: str = "Draft ready", **kwargs) -> models.Update:
        kwargs.setdefault("created_at", NOW - timedelta(days=1))
        return self._add(
            models.Update(id=str(uuid.uuid4()), project_id=project.id, content=content, **kwargs)
        )

    def task(self, project: models.Project, title: str = "Write brief", **kwargs) -> models.Task:
        kwargs.setdefault("created_at", NOW - timedelta(days=5))
        kwargs.setdefault("updated_at", NOW - timedelta(days=1))
        return self._add(
            models.Task(id=str(uuid.uuid4()), project_id=project.id, title=title, **kwargs)
        )

    def file(self, company: models.Company, name: str = "logo.png", **kwargs) -> models.File:
        kwargs.setdefault("created_at", NOW - timedelta(days=2))
        kwargs.setdefault("file_url", f"https://files.example.com/{name}")
        return self._add(
            models.File(id=str(uuid.uuid4()), company_id=company.id, name=name, **kwargs)
        )

    def flag(self, file: models.File, message: str = "Wrong colors", **kwargs) -> models.FileFlag:
        kwargs.setdefault("flagged_by", str(uuid.uuid4()))
        kwargs.setdefault("flagged_by_role", "client")
        kwargs.setdefault("flagged_for", models.FlagRecipient.TEAM.value)
        kwargs.setdefault("created_at", NOW - timedelta(days=1))
        return self._add(
            models.FileFlag(id=str(uuid.uuid4()), file_id=file.id, flag_message=message, **kwargs)
        )

    def time_entry(
        self,
        company: models.Company,
        hours: str,
        entry_date: date,
        *,
        user: Optional[models.Profile] = None,
        **kwargs,
    ) -> models.TimeEntry:
        kwargs.setdefault(
            "created_at", datetime.combine(entry_date, datetime.min.time(), tzinfo=timezone.utc)
        )
        return self._add(
            models.TimeEntry(
                id=str(uuid.uuid4()),
                company_id=company.id,
                user_id=user.id if user else str(uuid.uuid4()),
                hours=Decimal(hours),
                date=entry_date,
                **kwargs,
            )
        )

    def company_update(
        self, company: models.Company, content: str, author: models.Profile, **kwargs
    ) -> models.CompanyUpdate:
        kwargs.setdefault("created_at", NOW - timedelta(days=1))
        return self._add(
            models.CompanyUpdate(
                id=str(uuid.uuid4()),
                company_id=company.id,
                author_id=author.id,
                content=content,
                **kwargs,
            )
        )

    def credential(self, company: models.Company, label: str, value: str, **kwargs):
        kwargs.setdefault("created_at", NOW - timedelta(days=1))
        return self._add(
            models.CompanyCredential(
                id=str(uuid.uuid4()), company_id=company.id, label=label, value=value, **kwargs
            )
        )

    def note(self, company: models.Company, content: str, **kwargs) -> models.ClientNote:
        kwargs.setdefault("created_at", NOW - timedelta(days=1))
        return self._add(
            models.ClientNote(id=str(uuid.uuid4()), company_id=company.id, content=content, **kwargs)
        )


@pytest.fixture
def factory(db_session: Session) -> PortalFactory:
    return PortalFactory(db_session)
