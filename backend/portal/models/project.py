"""SQLAlchemy models for campaigns (projects), their updates and tasks."""

from __future__ import annotations

import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_id


class ProjectStatus(str, enum.Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REVISION = "revision"
    REVIEW = "review"
    COMPLETE = "complete"


class Priority(str, enum.Enum):
    """Priority shared by projects and tasks, most pressing first."""

    URGENT = "urgent"
    IMPORTANT = "important"
    NORMAL = "normal"
    QUEUED = "queued"


class TaskStatus(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    REVIEW = "review"
    DONE = "done"


class Project(Base):
    """A client campaign moving through the agency workflow phases."""

    __tablename__ = "projects"
    __table_args__ = (
        Index("projects_company_blocked_idx", "company_id", "is_blocked"),
    )

    id = Column(GUID(), primary_key=True, default=new_id)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ProjectStatus.QUEUED.value)
    phase = Column(String(40), nullable=True)
    priority = Column(String(20), nullable=True, default=Priority.NORMAL.value)
    assigned_to = Column(GUID(), nullable=True)
    is_blocked = Column(Boolean, nullable=False, default=False)
    blocked_reason = Column(Text, nullable=True)
    target_date = Column(Date, nullable=True)
    phase_due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    company = relationship("Company", back_populates="projects")
    updates = relationship("Update", back_populates="project")
    tasks = relationship("Task", back_populates="project")


class Update(Base):
    """Project update; deliverables additionally carry the approval state.

    ``is_approved`` is tri-state: ``None`` while awaiting the client's first
    decision, ``True`` once approved and ``False`` when the client requested
    changes.
    """

    __tablename__ = "updates"

    id = Column(GUID(), primary_key=True, default=new_id)
    project_id = Column(GUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(GUID(), nullable=True)
    content = Column(Text, nullable=False)
    is_deliverable = Column(Boolean, nullable=False, default=False)
    is_approved = Column(Boolean, nullable=True)
    hours_logged = Column(Numeric(10, 2), nullable=True)
    change_request_text = Column(Text, nullable=True)
    change_request_draft = Column(Boolean, nullable=True, default=False)
    change_request_submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    project = relationship("Project", back_populates="updates")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(GUID(), primary_key=True, default=new_id)
    project_id = Column(GUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=TaskStatus.TODO.value)
    priority = Column(String(20), nullable=False, default=Priority.NORMAL.value)
    assigned_to = Column(GUID(), nullable=True)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    project = relationship("Project", back_populates="tasks")
