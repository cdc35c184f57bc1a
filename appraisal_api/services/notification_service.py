from typing import Iterable, List, Optional
from fastapi import BackgroundTasks
from sqlalchemy import event
from sqlalchemy.orm import Session
from appraisal_api.models.notification import Notification
from appraisal_api.models.profile import Profile, UserRole
from appraisal_api.services.push_client import deliver_pushes

# Session.info keys: pushes wait in PENDING until the transaction commits
PENDING_PUSHES = "pending_pushes"
COMMITTED_PUSHES = "committed_pushes"


@event.listens_for(Session, "after_commit")
def _release_pushes(session):
    pending = session.info.pop(PENDING_PUSHES, None)
    if pending:
        session.info.setdefault(COMMITTED_PUSHES, []).extend(pending)


@event.listens_for(Session, "after_rollback")
def _discard_pushes(session):
    session.info.pop(PENDING_PUSHES, None)


class NotificationService:
    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        related_appraisal_id: Optional[int] = None,
        related_employee_id: Optional[int] = None,
    ) -> Notification:
        """
        Adds an in-app notification to the current transaction.
        The caller commits.
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_appraisal_id=related_appraisal_id,
            related_employee_id=related_employee_id,
        )
        db.add(notification)
        return notification

    @staticmethod
    def queue_push(db: Session, title: str, message: str, user_ids: Optional[List[str]] = None,
                   segments: Optional[List[str]] = None):
        """Held until the current transaction commits; dropped on rollback."""
        db.info.setdefault(PENDING_PUSHES, []).append(
            {"title": title, "message": message, "user_ids": user_ids, "segments": segments}
        )

    @staticmethod
    def take_committed_pushes(db: Session) -> List[dict]:
        return db.info.pop(COMMITTED_PUSHES, [])

    @staticmethod
    def notify_user(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        push: bool = True,
        **related
    ) -> Notification:
        """
        Standardized notification trigger: in-app row plus an optional push
        queued for delivery after commit.
        """
        notification = NotificationService.create_notification(db, user_id, title, message, type, **related)
        if push:
            NotificationService.queue_push(db, title, message, user_ids=[str(user_id)])
        return notification

    @staticmethod
    def notify_many(db: Session, user_ids: Iterable[int], title: str, message: str, type: str = "info", **related):
        return [
            NotificationService.notify_user(db, uid, title, message, type, **related)
            for uid in user_ids
        ]

    @staticmethod
    def notify_hr(db: Session, title: str, message: str, type: str = "info", **related):
        hr_ids = [
            p.id for p in db.query(Profile.id).filter(
                Profile.role.in_([UserRole.HR, UserRole.ADMIN]),
                Profile.is_active == True,  # noqa: E712
            )
        ]
        return NotificationService.notify_many(db, hr_ids, title, message, type, **related)


def schedule_pushes(background_tasks: BackgroundTasks, db: Session):
    """Hands pushes from committed transactions to the background, after the response."""
    pushes = NotificationService.take_committed_pushes(db)
    if pushes:
        background_tasks.add_task(deliver_pushes, pushes)
