from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

class ScheduleStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class Schedule(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    employee_id: str
    date: str  # YYYY-MM-DD format
    start_time: str  # HH:MM format
    end_time: str  # HH:MM format
    time_slot_id: Optional[str] = None
    week_start_date: Optional[str] = None  # Set on weekly bookings
    status: ScheduleStatus = ScheduleStatus.PENDING
    requested_by: Optional[str] = None
    approved_by: Optional[str] = None
    approval_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }
