"""SQLAlchemy model for follow-up reminders attached to a company."""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, String, Text, func

from ..database import Base
from ..db_types import GUID, new_id


class Reminder(Base):
    __tablename__ = "reminders"
    __table_args__ = (Index("idx_reminders_company_open", "company_id", "is_completed"),)

    id = Column(GUID(), primary_key=True, default=new_id)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(GUID(), nullable=False)
    title = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
