from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tournex.api.dependencies import get_db
from tournex.models import user as user_model
from tournex.schemas import notification_schemas
from tournex.services import auth_service, notification_service

router = APIRouter()

@router.get("/", response_model=List[notification_schemas.NotificationRead])
async def get_user_notifications_endpoint(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    notifications = notification_service.get_user_notifications(
        db=db, user_id=current_user.id, skip=skip, limit=limit
    )
    return notifications

@router.patch("/{notification_id}/read", response_model=notification_schemas.NotificationRead)
async def mark_notification_as_read_endpoint(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    return notification_service.mark_notification_as_read(
        db=db, notification_id=notification_id, current_user_id=current_user.id
    )

@router.post("/read-all", response_model=List[notification_schemas.NotificationRead])
async def mark_all_user_notifications_as_read_endpoint(
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    # An empty list means there was nothing unread
    return notification_service.mark_all_user_notifications_as_read(
        db=db, current_user_id=current_user.id
    )
