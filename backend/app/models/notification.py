from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Any
from enum import Enum

class NotificationType(str, Enum):
    INFO = "info"
    SCHEDULE_UPDATE = "schedule_update"
    SHIFT_CANCELLATION = "shift_cancellation"
    SHIFT_REASSIGNED = "shift_reassigned"

class Notification(BaseModel):
    id: Optional[str] = Field(alias="_id", default=None)
    userId: str  # Reference to the User's id
    title: str = Field(..., max_length=100)
    message: str = Field(..., max_length=500)
    type: NotificationType = NotificationType.INFO
    isRead: bool = Field(default=False)
    link: Optional[str] = Field(default=None, max_length=255)
    payload: Optional[dict[str, Any]] = Field(default=None)  # Cancellation fan-outs carry cancellation_request_id
    priority: str = "normal"
    expires_at: Optional[datetime] = None
    createdAt: datetime
    updatedAt: Optional[datetime] = None

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True
        json_encoders = {
            datetime: lambda dt: dt.isoformat()
        }
