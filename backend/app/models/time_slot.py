from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class TimeSlot(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    day_of_week: int = Field(..., ge=0, le=6)  # 0 = Sunday ... 6 = Saturday
    start_time: str  # HH:MM format
    end_time: str  # HH:MM format
    name: Optional[str] = None
    description: Optional[str] = None
    max_employees: Optional[int] = None  # Joined from time_slot_limits, None = unlimited
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }

class TimeSlotLimit(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    time_slot_id: str
    max_employees: int = Field(..., gt=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
