from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Optional
from app.schemas.notification import NotificationOut, PaginatedNotificationsResponse
from app.services.notification_service import notification_service
from app.utils.auth import get_current_user, user_id_of
from bson import ObjectId

router = APIRouter(
    tags=["notifications"]
)

def _check_id(notification_id: str):
    if not ObjectId.is_valid(notification_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid notification ID format")

@router.get("", response_model=PaginatedNotificationsResponse)
async def get_user_notifications(
    current_user: dict = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: Optional[bool] = Query(None)
):
    return await notification_service.list_for_user(user_id_of(current_user), page, limit, unread_only)

@router.get("/unread-count")
async def get_unread_count(current_user: dict = Depends(get_current_user)):
    count = await notification_service.unread_count(user_id_of(current_user))
    return {"success": True, "data": {"count": count}}

@router.post("/mark-all-read", status_code=status.HTTP_200_OK)
async def mark_all_notifications_as_read(current_user: dict = Depends(get_current_user)):
    modified = await notification_service.mark_all_read(user_id_of(current_user))
    return {"success": True, "message": f"{modified} notifications marked as read."}

@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_notification_as_read(notification_id: str, current_user: dict = Depends(get_current_user)):
    _check_id(notification_id)
    updated = await notification_service.mark_read(notification_id, user_id_of(current_user))
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return updated

@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, current_user: dict = Depends(get_current_user)):
    _check_id(notification_id)
    if not await notification_service.delete_notification(notification_id, user_id_of(current_user)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return {"success": True, "message": "Notification deleted"}
