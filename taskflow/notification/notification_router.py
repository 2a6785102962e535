# taskflow/notification/notification_router.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from taskflow.auth.auth_router import current_user_id
from taskflow.notification.notification_service import notifications
from taskflow.schemas.notification_schema import NotificationRead

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=list[NotificationRead])
def list_notifications(limit: int = 30, user_id: int = Depends(current_user_id)):
    return notifications.list_notifications(user_id, limit=limit)


@router.get("/unread_count")
def unread_count(user_id: int = Depends(current_user_id)):
    return {"unread": notifications.unread_count(user_id)}


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: int, user_id: int = Depends(current_user_id)):
    n = notifications.mark_read(user_id, notification_id)
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    return n


@router.post("/read_all")
def mark_all_read(user_id: int = Depends(current_user_id)):
    notifications.mark_all_read(user_id)
    return {"ok": True}


@router.delete("/{notification_id}", status_code=204)
def delete_notification(notification_id: int, user_id: int = Depends(current_user_id)):
    if not notifications.delete(user_id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return
