"""SQLAlchemy models for client companies and user profiles."""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_id


class RetainerType(str, enum.Enum):
    """Billing arrangement agreed with a client company."""

    UNLIMITED = "unlimited"
    HOURLY = "hourly"
    ONE_TIME = "one_time"


class PaymentScheduleType(str, enum.Enum):
    """Supported values of ``companies.payment_schedule``.

    ``1st`` and ``15th`` are the values stored by the hosted schema; the
    first is equivalent to ``monthly``.
    """

    FIRST = "1st"
    FIFTEENTH = "15th"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"


class Company(Base):
    """Client company served by the agency."""

    __tablename__ = "companies"

    id = Column(GUID(), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    retainer_type = Column(String(20), nullable=False, default=RetainerType.UNLIMITED.value)
    hours_allocated = Column(Numeric(10, 2), nullable=True, default=0)
    hourly_rate = Column(Numeric(8, 2), nullable=True)
    payment_schedule = Column(String(20), nullable=True)
    billing_anchor_date = Column(
        Date,
        nullable=True,
        comment="First day of a weekly/biweekly billing cycle; ignored for monthly schedules",
    )
    contact_email = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    projects = relationship("Project", back_populates="company")
    members = relationship("Profile", back_populates="company")


class Profile(Base):
    """Public profile of an authenticated user (team member or client)."""

    __tablename__ = "profiles"

    id = Column(GUID(), primary_key=True, default=new_id)
    email = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    company_id = Column(GUID(), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    company = relationship("Company", back_populates="members")
