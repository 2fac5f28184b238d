"""SQLAlchemy model for hours logged against a client company."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Numeric, Text, func

from ..database import Base
from ..db_types import GUID, new_id


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        CheckConstraint("hours > 0", name="ck_time_entries_positive_hours"),
        Index("idx_time_entries_company", "company_id"),
        Index("idx_time_entries_date", "date"),
    )

    id = Column(GUID(), primary_key=True, default=new_id)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(GUID(), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    task_id = Column(GUID(), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(GUID(), nullable=False)
    hours = Column(Numeric(6, 2), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=True, server_default=func.now())
