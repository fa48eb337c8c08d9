from pydantic import BaseModel
from typing import Optional

class ShiftCancellationCreate(BaseModel):
    schedule_id: str
    reason: Optional[str] = None

class AdminReassign(BaseModel):
    employee_id: str
