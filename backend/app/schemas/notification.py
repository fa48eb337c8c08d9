from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Any, List


class NotificationOut(BaseModel):
    id: str
    userId: str
    title: str
    message: str
    type: str
    isRead: bool
    link: Optional[str] = None
    payload: Optional[dict[str, Any]] = None
    priority: Optional[str] = None
    expires_at: Optional[datetime] = None
    createdAt: datetime
    updatedAt: Optional[datetime] = None

    class Config:
        populate_by_name = True
        json_encoders = {
            datetime: lambda dt: dt.isoformat()
        }

class PaginatedNotificationsResponse(BaseModel):
    items: List[NotificationOut]
    total: int
    page: int
    limit: int
    totalPages: int
    unreadCount: int
