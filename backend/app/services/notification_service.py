from app.db import get_db, serialize_doc
from app.models.notification import Notification, NotificationType
from app.services.calendar import utcnow
from bson import ObjectId
from datetime import datetime
from pymongo import ReturnDocument
from typing import Optional, Any, List, Dict
import logging

logger = logging.getLogger(__name__)


def _user_key(user_id):
    """Notifications reference users by ObjectId when the id is one."""
    user_id = str(user_id)
    return ObjectId(user_id) if ObjectId.is_valid(user_id) else user_id


class NotificationService:
    """Notification sink for scheduling and shift cancellation events"""

    @property
    def db(self):
        return get_db()

    def _build(self, notif: Dict) -> Dict:
        doc = Notification(
            userId=str(notif["user_id"]),
            title=notif["title"],
            message=notif["message"],
            type=notif.get("type", NotificationType.INFO),
            link=notif.get("link"),
            payload=notif.get("payload") or {},
            priority=notif.get("priority", "normal"),
            expires_at=notif.get("expires_at"),
            createdAt=utcnow(),
        ).dict(exclude={"id"})
        doc["userId"] = _user_key(doc["userId"])
        return doc

    async def create_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str = NotificationType.INFO,
        link: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
        priority: str = "normal",
        expires_at: Optional[datetime] = None
    ) -> bool:
        """
        Creates and stores a new notification for a user.
        """
        try:
            await self.db.notifications.insert_one(self._build({
                "user_id": user_id,
                "title": title,
                "message": message,
                "type": type,
                "link": link,
                "payload": payload,
                "priority": priority,
                "expires_at": expires_at,
            }))
            return True
        except Exception as e:
            logger.error(f"Error creating notification: {e}")
            return False

    async def create_bulk_notifications(self, notifications: List[Dict]) -> int:
        """Create multiple notifications efficiently"""
        if not notifications:
            return 0

        try:
            notification_docs = [self._build(notif) for notif in notifications]
            result = await self.db.notifications.insert_many(notification_docs)
            return len(result.inserted_ids)
        except Exception as e:
            logger.error(f"Error creating bulk notifications: {e}")
            return 0

    async def delete_notifications_by_cancellation_request(self, request_id: str) -> int:
        """Purge the open-shift announcements of one cancellation request"""
        result = await self.db.notifications.delete_many({
            "type": NotificationType.SHIFT_CANCELLATION.value,
            "payload.cancellation_request_id": str(request_id)
        })
        if result.deleted_count:
            logger.info(f"Removed {result.deleted_count} notifications for cancellation request {request_id}")
        return result.deleted_count

    async def cleanup_expired_notifications(self) -> int:
        """Remove expired notifications"""
        try:
            result = await self.db.notifications.delete_many({
                "expires_at": {"$ne": None, "$lt": utcnow()}
            })
            return result.deleted_count
        except Exception as e:
            logger.error(f"Error cleaning up expired notifications: {e}")
            return 0

    async def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        unread_only: Optional[bool] = None
    ) -> Dict:
        query = {"userId": _user_key(user_id)}
        if unread_only is True:
            query["isRead"] = False
        elif unread_only is False:
            query["isRead"] = True
        # If unread_only is None, fetch all

        total = await self.db.notifications.count_documents(query)
        unread = await self.unread_count(user_id)

        skip = (page - 1) * limit
        cursor = self.db.notifications.find(query).sort("createdAt", -1).skip(skip).limit(limit)
        items = [serialize_doc(doc) async for doc in cursor]

        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit,
            "unreadCount": unread,
        }

    async def unread_count(self, user_id: str) -> int:
        return await self.db.notifications.count_documents({"userId": _user_key(user_id), "isRead": False})

    async def mark_read(self, notification_id: str, user_id: str) -> Optional[Dict]:
        updated = await self.db.notifications.find_one_and_update(
            {"_id": ObjectId(notification_id), "userId": _user_key(user_id)},
            {"$set": {"isRead": True, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER
        )
        return serialize_doc(updated)

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.db.notifications.update_many(
            {"userId": _user_key(user_id), "isRead": False},
            {"$set": {"isRead": True, "updatedAt": utcnow()}}
        )
        return result.modified_count

    async def delete_notification(self, notification_id: str, user_id: str) -> bool:
        result = await self.db.notifications.delete_one(
            {"_id": ObjectId(notification_id), "userId": _user_key(user_id)}
        )
        return result.deleted_count > 0

    async def notify_schedule_status(self, user_id: Optional[str], schedule: Dict, status: str, reason: Optional[str] = None) -> None:
        """Tell an employee their shift request was approved or rejected"""
        if not user_id:
            return
        message = f"Your shift on {schedule['date']} ({schedule['start_time']} - {schedule['end_time']}) was {status}."
        if reason:
            message += f" Reason: {reason}"
        await self.create_notification(
            user_id=user_id,
            title=f"Shift Request {status.title()}",
            message=message,
            type=NotificationType.SCHEDULE_UPDATE,
            link="/schedule",
            payload={"schedule_id": str(schedule["_id"]), "status": status}
        )

    async def notify_shift_released(self, request: Dict, schedule: Dict, requester_name: str, recipients: List[Dict]) -> int:
        """Announce an open shift to everyone except the employee releasing it"""
        request_id = str(request["_id"])
        notifications = []
        for user in recipients:
            if str(user["_id"]) == str(request["requested_by"]):
                continue
            notifications.append({
                "user_id": str(user["_id"]),
                "title": "Shift Available",
                "message": f"{requester_name} can't work {schedule['date']} {schedule['start_time']} - {schedule['end_time']}. Reason: {request['reason']}",
                "type": NotificationType.SHIFT_CANCELLATION,
                "link": "/shift-cancellations",
                "priority": "high",
                "expires_at": request["expires_at"],
                "payload": {
                    "cancellation_request_id": request_id,
                    "schedule_id": str(schedule["_id"]),
                    "shift_date": schedule["date"],
                    "start_time": schedule["start_time"],
                    "end_time": schedule["end_time"]
                }
            })
        return await self.create_bulk_notifications(notifications)

    async def notify_shift_reassigned(self, request: Dict, schedule: Dict, new_employee_name: str, recipients: List[Dict]) -> int:
        """Let everyone know a released shift has been taken"""
        notifications = [{
            "user_id": str(user["_id"]),
            "title": "Shift Reassigned",
            "message": f"The shift on {schedule['date']} {schedule['start_time']} - {schedule['end_time']} has been taken by {new_employee_name}.",
            "type": NotificationType.SHIFT_REASSIGNED,
            "link": "/schedule",
            "payload": {
                "cancellation_request_id": str(request["_id"]),
                "schedule_id": str(schedule["_id"])
            }
        } for user in recipients]
        return await self.create_bulk_notifications(notifications)


# Global service instance
notification_service = NotificationService()
