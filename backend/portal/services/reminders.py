"""Follow-up reminders the team keeps per client company."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..security import RequestContext
from .loaders import PortalLoaders
from .timeutils import utcnow

LOGGER = logging.getLogger(__name__)


class ReminderServiceError(RuntimeError):
    """Raised when a reminder write fails."""


class ReminderService:
    @staticmethod
    def list_open(db: Session, company_id: str) -> List[schemas.ReminderRead]:
        """Open reminders, soonest due first and undated ones last."""

        reminders = (
            db.query(models.Reminder)
            .filter(
                models.Reminder.company_id == company_id,
                models.Reminder.is_completed.is_(False),
            )
            .order_by(
                models.Reminder.due_date.is_(None),
                models.Reminder.due_date.asc(),
                models.Reminder.created_at.asc(),
            )
            .all()
        )
        loaders = PortalLoaders(db)
        loaders.profiles.request(reminder.user_id for reminder in reminders)
        items = []
        for reminder in reminders:
            item = schemas.ReminderRead.model_validate(reminder)
            item.author_name = loaders.profile_name(str(reminder.user_id))
            items.append(item)
        return items

    @staticmethod
    def get_reminder(db: Session, reminder_id: str) -> Optional[models.Reminder]:
        return db.query(models.Reminder).filter(models.Reminder.id == reminder_id).first()

    @staticmethod
    def _commit(db: Session, action: str, reminder_id: Optional[str]) -> None:
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            LOGGER.exception("Unable to %s reminder %s", action, reminder_id)
            raise ReminderServiceError(f"Unable to {action} reminder") from exc

    @staticmethod
    def create_reminder(
        db: Session,
        context: RequestContext,
        company_id: str,
        data: schemas.ReminderCreate,
    ) -> models.Reminder:
        reminder = models.Reminder(
            company_id=company_id,
            user_id=context.user_id,
            title=data.title.strip(),
            notes=data.notes,
            due_date=data.due_date,
        )
        db.add(reminder)
        ReminderService._commit(db, "create", None)
        db.refresh(reminder)
        LOGGER.info("Reminder %s created for company %s", reminder.id, company_id)
        return reminder

    @staticmethod
    def complete_reminder(db: Session, reminder: models.Reminder) -> models.Reminder:
        if reminder.is_completed:
            raise ReminderServiceError("Reminder is already completed")
        reminder.is_completed = True
        reminder.completed_at = utcnow()
        ReminderService._commit(db, "complete", str(reminder.id))
        db.refresh(reminder)
        return reminder

    @staticmethod
    def delete_reminder(db: Session, reminder: models.Reminder) -> None:
        reminder_id = str(reminder.id)
        db.delete(reminder)
        ReminderService._commit(db, "delete", reminder_id)
        LOGGER.info("Reminder %s deleted", reminder_id)
