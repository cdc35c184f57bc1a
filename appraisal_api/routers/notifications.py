from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from appraisal_api.core.config import settings
from appraisal_api.core.security import sanitize_input
from appraisal_api.database import get_db
from appraisal_api.models.notification import Notification
from appraisal_api.models.profile import Profile, UserRole
from appraisal_api.routers.auth_deps import get_current_user, require_hr
from appraisal_api.schemas.notification import BroadcastRequest, BroadcastResponse, NotificationResponse
from appraisal_api.services.audit import AuditService
from appraisal_api.services.notification_service import NotificationService, schedule_pushes

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(min(limit, 200)).all()


@router.get("/unread-count")
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    count = db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read == False  # noqa: E712
    ).count()
    return {"unread": count}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == current_user.id
    ).first()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


@router.post("/mark-all-read")
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    updated = db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read == False  # noqa: E712
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return {"message": "All notifications marked as read", "updated": updated}


BROADCAST_ROLES = {"staff": [UserRole.STAFF], "managers": [UserRole.MANAGER]}


@router.post("/broadcast", response_model=BroadcastResponse, status_code=status.HTTP_202_ACCEPTED)
def broadcast_push(
    data: BroadcastRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """
    Push-only announcement. "all" goes to every subscribed device through the
    OneSignal segment; role targets are sent to the matching active profiles.
    """
    title = sanitize_input(data.title)
    message = sanitize_input(data.message)
    recipients = None
    if data.target == "all":
        NotificationService.queue_push(db, title, message, segments=["Subscribed Users"])
    else:
        user_ids = [
            str(p.id) for p in db.query(Profile.id).filter(
                Profile.role.in_(BROADCAST_ROLES[data.target]),
                Profile.is_active == True,  # noqa: E712
            )
        ]
        recipients = len(user_ids)
        if user_ids:
            NotificationService.queue_push(db, title, message, user_ids=user_ids)

    AuditService.log(db, "push_broadcast", "notification", None, current_user.id, current_user.role,
                     {"title": title, "target": data.target, "recipients": recipients})
    db.commit()
    schedule_pushes(background_tasks, db)
    return BroadcastResponse(target=data.target, recipients=recipients, push_enabled=settings.push.enabled)
