from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum

class CancellationStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

DEFAULT_CANCELLATION_REASON = "No reason provided"

class ShiftCancellationRequest(BaseModel):
    id: Optional[str] = Field(None, alias="_id")

    schedule_id: str
    requested_by: str  # User id of the employee releasing the shift
    reason: str = DEFAULT_CANCELLATION_REASON

    status: CancellationStatus = CancellationStatus.PENDING
    expires_at: datetime  # One hour before the shift starts, UTC

    # Set when another employee (or an admin on their behalf) takes the shift
    fulfilled_by: Optional[str] = None
    fulfilled_at: Optional[datetime] = None
    fulfilled_employee_id: Optional[str] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }
