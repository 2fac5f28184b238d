"""Batched lookups used to join names onto aggregated rows.

Each :class:`BatchLoader` collects the ids referenced during one aggregation
pass and resolves them with a single ``IN`` query, so feeds never issue one
lookup per row. Services create a fresh :class:`PortalLoaders` per call; the
loaders are not meant to outlive a request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterable, Optional, TypeVar

from sqlalchemy.orm import Session

from .. import models

K = TypeVar("K")
V = TypeVar("V")

UNKNOWN_PROJECT = "Unknown Project"


@dataclass(frozen=True)
class ProfileInfo:
    id: str
    full_name: Optional[str]
    email: Optional[str]


@dataclass(frozen=True)
class ProjectInfo:
    id: str
    name: str
    company_id: str
    priority: str


@dataclass(frozen=True)
class CompanyInfo:
    id: str
    name: str


@dataclass(frozen=True)
class FileInfo:
    id: str
    display_name: str
    company_id: str
    project_id: Optional[str]


class BatchLoader(Generic[K, V]):
    """Resolve ids of one entity kind with one query per :meth:`load` call."""

    def __init__(self, db: Session, fetch: Callable[[Session, list], Dict[K, V]]) -> None:
        self._db = db
        self._fetch = fetch
        self._pending: set = set()
        self._resolved: Dict[K, V] = {}
        self._attempted: set = set()
        self.batches_issued = 0

    def request(self, ids: Iterable[Optional[K]]) -> None:
        for value in ids:
            if value is None:
                continue
            key = str(value)
            if key not in self._attempted:
                self._pending.add(key)

    def load(self) -> Dict[K, V]:
        if self._pending:
            keys = sorted(self._pending)
            self._pending.clear()
            self._attempted.update(keys)
            self.batches_issued += 1
            self._resolved.update(self._fetch(self._db, keys))
        return self._resolved

    def get(self, key: Optional[K]) -> Optional[V]:
        if key is None:
            return None
        if self._pending:
            self.load()
        return self._resolved.get(str(key))


def _fetch_profiles(db: Session, ids: list) -> Dict[str, ProfileInfo]:
    rows = (
        db.query(models.Profile.id, models.Profile.full_name, models.Profile.email)
        .filter(models.Profile.id.in_(ids))
        .all()
    )
    return {
        str(row.id): ProfileInfo(id=str(row.id), full_name=row.full_name, email=row.email)
        for row in rows
    }


def _fetch_projects(db: Session, ids: list) -> Dict[str, ProjectInfo]:
    rows = (
        db.query(
            models.Project.id,
            models.Project.name,
            models.Project.company_id,
            models.Project.priority,
        )
        .filter(models.Project.id.in_(ids))
        .all()
    )
    return {
        str(row.id): ProjectInfo(
            id=str(row.id),
            name=row.name,
            company_id=str(row.company_id),
            priority=row.priority or models.Priority.NORMAL.value,
        )
        for row in rows
    }


def _fetch_companies(db: Session, ids: list) -> Dict[str, CompanyInfo]:
    rows = (
        db.query(models.Company.id, models.Company.name)
        .filter(models.Company.id.in_(ids))
        .all()
    )
    return {str(row.id): CompanyInfo(id=str(row.id), name=row.name) for row in rows}


def _fetch_files(db: Session, ids: list) -> Dict[str, FileInfo]:
    rows = (
        db.query(
            models.File.id,
            models.File.name,
            models.File.title,
            models.File.company_id,
            models.File.project_id,
        )
        .filter(models.File.id.in_(ids))
        .all()
    )
    return {
        str(row.id): FileInfo(
            id=str(row.id),
            display_name=row.title or row.name,
            company_id=str(row.company_id),
            project_id=str(row.project_id) if row.project_id else None,
        )
        for row in rows
    }


class PortalLoaders:
    """One loader per entity kind for a single aggregation pass."""

    def __init__(self, db: Session) -> None:
        self.profiles: BatchLoader[str, ProfileInfo] = BatchLoader(db, _fetch_profiles)
        self.projects: BatchLoader[str, ProjectInfo] = BatchLoader(db, _fetch_projects)
        self.companies: BatchLoader[str, CompanyInfo] = BatchLoader(db, _fetch_companies)
        self.files: BatchLoader[str, FileInfo] = BatchLoader(db, _fetch_files)

    def profile_name(self, user_id: Optional[str]) -> Optional[str]:
        profile = self.profiles.get(user_id)
        if profile is None:
            return None
        return profile.full_name or None

    def project_name(self, project_id: Optional[str]) -> Optional[str]:
        if project_id is None:
            return None
        project = self.projects.get(project_id)
        return project.name if project else UNKNOWN_PROJECT
