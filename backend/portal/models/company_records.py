"""Company-level records shown in the client activity feed.

Company updates, stored credentials and internal client notes are written by
the CRUD screens; the portal backend only reads them.
"""

from __future__ import annotations

import enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func

from ..database import Base
from ..db_types import GUID, new_id


class NoteCategory(str, enum.Enum):
    MEETING_NOTES = "Meeting Notes"
    GENERAL_INFO = "General Info"
    PROJECT_CONTEXT = "Project Context"


class CompanyUpdate(Base):
    __tablename__ = "company_updates"

    id = Column(GUID(), primary_key=True, default=new_id)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(GUID(), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CompanyCredential(Base):
    """Login or API credential stored for a client (team and admin only)."""

    __tablename__ = "company_credentials"

    id = Column(GUID(), primary_key=True, default=new_id)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    label = Column(String, nullable=False)
    value = Column(Text, nullable=False)
    created_by = Column(GUID(), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ClientNote(Base):
    __tablename__ = "client_notes"

    id = Column(GUID(), primary_key=True, default=new_id)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(40), nullable=False, default=NoteCategory.GENERAL_INFO.value)
    content = Column(Text, nullable=False)
    created_by = Column(GUID(), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
