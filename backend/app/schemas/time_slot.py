from pydantic import BaseModel, Field
from typing import Optional, List

class TimeSlotCreate(BaseModel):
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    start_time: str
    end_time: str
    name: Optional[str] = None
    description: Optional[str] = None
    max_employees: Optional[int] = None

class TimeSlotUpdate(BaseModel):
    day_of_week: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None

class TimeSlotLimitSet(BaseModel):
    max_employees: int

class BatchAvailabilityRequest(BaseModel):
    date: str
    timeSlotIds: List[str] = Field(default_factory=list)
