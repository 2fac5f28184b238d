"""Expose SQLAlchemy models for convenient imports."""

from .billing_period import BILLING_STATUS_ENUM, BillingPeriodStatus, BillingStatus
from .company import Company, PaymentScheduleType, Profile, RetainerType
from .company_records import ClientNote, CompanyCredential, CompanyUpdate, NoteCategory
from .file import File, FileCategory, FileFlag, FlagRecipient
from .project import Priority, Project, ProjectStatus, Task, TaskStatus, Update
from .reminder import Reminder
from .time_entry import TimeEntry

__all__ = [
    "BILLING_STATUS_ENUM",
    "BillingPeriodStatus",
    "BillingStatus",
    "ClientNote",
    "Company",
    "CompanyCredential",
    "CompanyUpdate",
    "File",
    "FileCategory",
    "FileFlag",
    "FlagRecipient",
    "NoteCategory",
    "PaymentScheduleType",
    "Priority",
    "Profile",
    "Project",
    "ProjectStatus",
    "Reminder",
    "RetainerType",
    "Task",
    "TaskStatus",
    "TimeEntry",
    "Update",
]
