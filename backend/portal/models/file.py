"""SQLAlchemy models for shared files and the flags raised on them."""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_id


class FileCategory(str, enum.Enum):
    """Canonical file categories (the ``file_category`` database enum)."""

    DOCUMENTS = "documents"
    IMAGES = "images"
    TESTIMONIALS = "testimonials"
    VIDEO = "video"
    BRAND = "brand"
    CONTENT = "content"
    DESIGNS = "designs"
    COPY = "copy"
    OTHER = "other"


class FlagRecipient(str, enum.Enum):
    """Side of the relationship expected to act on a file flag."""

    TEAM = "team"
    CLIENT = "client"


class File(Base):
    __tablename__ = "files"

    id = Column(GUID(), primary_key=True, default=new_id)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(GUID(), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    name = Column(String, nullable=False)
    title = Column(String, nullable=True)
    category = Column(String(20), nullable=False, default=FileCategory.OTHER.value)
    file_url = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String, nullable=True)
    is_external_link = Column(Boolean, nullable=False, default=False)
    uploaded_by = Column(GUID(), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    flags = relationship("FileFlag", back_populates="file")


class FileFlag(Base):
    __tablename__ = "file_flags"

    id = Column(GUID(), primary_key=True, default=new_id)
    file_id = Column(GUID(), ForeignKey("files.id", ondelete="CASCADE"), nullable=False)
    flagged_by = Column(GUID(), nullable=False)
    flagged_by_role = Column(String(10), nullable=False)
    flagged_for = Column(String(10), nullable=False)
    flag_message = Column(Text, nullable=False)
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_message = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    file = relationship("File", back_populates="flags")
