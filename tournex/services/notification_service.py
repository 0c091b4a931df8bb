import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tournex.core.exceptions import NotFoundError, UnauthorizedError
from tournex.models import notification as notification_model
from tournex.schemas import notification_schemas

logger = logging.getLogger(__name__)

def create_notification(db: Session, notification_in: notification_schemas.NotificationCreate) -> notification_model.Notification:
    db_notification = notification_model.Notification(**notification_in.model_dump())
    db.add(db_notification)
    db.commit()
    db.refresh(db_notification)
    return db_notification

def notify_users(db: Session, notifications: Iterable[notification_schemas.NotificationCreate]) -> int:
    """
    Best-effort delivery of notification records after the primary change has committed.
    A failure is logged and rolled back; it never propagates to the caller.
    Returns the number of notifications written.
    """
    notifications = list(notifications)
    if not notifications:
        return 0
    try:
        db.add_all(notification_model.Notification(**n.model_dump()) for n in notifications)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Could not store {len(notifications)} notification(s): {e}")
        return 0
    return len(notifications)

def get_user_notifications(db: Session, user_id: int, skip: int = 0, limit: int = 100) -> List[notification_model.Notification]:
    return db.query(notification_model.Notification)\
        .filter(notification_model.Notification.user_id == user_id)\
        .order_by(notification_model.Notification.created_at.desc(), notification_model.Notification.id.desc())\
        .offset(skip)\
        .limit(limit)\
        .all()

def mark_notification_as_read(db: Session, notification_id: int, current_user_id: int) -> Optional[notification_model.Notification]:
    db_notification = db.query(notification_model.Notification).filter(notification_model.Notification.id == notification_id).first()

    if not db_notification:
        raise NotFoundError("Notification not found")

    if db_notification.user_id != current_user_id:
        raise UnauthorizedError("Not authorized to mark this notification as read")

    if not db_notification.read_status: # Avoid unnecessary db write if already read
        db_notification.read_status = True
        db.commit()
        db.refresh(db_notification)

    return db_notification

def mark_all_user_notifications_as_read(db: Session, current_user_id: int) -> List[notification_model.Notification]:
    unread_notifications = db.query(notification_model.Notification)\
        .filter(notification_model.Notification.user_id == current_user_id, notification_model.Notification.read_status == False)\
        .all()

    if not unread_notifications:
        return []

    for notification in unread_notifications:
        notification.read_status = True

    db.commit()
    for notification in unread_notifications:
        db.refresh(notification)

    return unread_notifications
