from pydantic import BaseModel, Field
from typing import Optional, List

class ScheduleCreate(BaseModel):
    employee_id: str
    date: str  # YYYY-MM-DD format
    time_slot_id: Optional[str] = None
    start_time: Optional[str] = None  # HH:MM format, required without a time slot
    end_time: Optional[str] = None
    status: Optional[str] = None  # Only admins may pass "approved"
    notes: Optional[str] = None

class ScheduleUpdate(BaseModel):
    employee_id: Optional[str] = None
    date: Optional[str] = None
    time_slot_id: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    status: Optional[str] = None
    rejection_reason: Optional[str] = None  # Used when an admin sets status to "rejected"
    notes: Optional[str] = None

class ScheduleReject(BaseModel):
    reason: Optional[str] = None

class WeeklyAssignment(BaseModel):
    day_of_week: int
    time_slot_id: str
    actual_date: Optional[str] = None  # Used verbatim when supplied
    notes: Optional[str] = None

class WeeklyScheduleRequest(BaseModel):
    employee_id: str
    week_start_date: str
    assignments: List[WeeklyAssignment] = Field(default_factory=list)

class BulkBooking(BaseModel):
    employee_id: str
    date: str
    time_slot_id: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = None

class BulkScheduleRequest(BaseModel):
    newBookings: List[BulkBooking] = Field(default_factory=list)
    cancellations: List[str] = Field(default_factory=list)  # Schedule ids to delete
