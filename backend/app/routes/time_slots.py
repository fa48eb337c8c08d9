from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from app.schemas.time_slot import TimeSlotCreate, TimeSlotUpdate, TimeSlotLimitSet, BatchAvailabilityRequest
from app.services import capacity, time_slot_service
from app.utils.auth import get_current_user, require_admin, user_id_of
from app.utils.exceptions import ValidationError
from app.utils.logger import log_event, EventTypes

router = APIRouter()

@router.get("")
async def list_time_slots(
    day_of_week: Optional[int] = Query(None),
    current_user: dict = Depends(get_current_user)
):
    return {"success": True, "data": await time_slot_service.list_time_slots(day_of_week)}

@router.post("/batch-availability")
async def batch_availability(payload: BatchAvailabilityRequest, current_user: dict = Depends(get_current_user)):
    if not payload.date or not payload.timeSlotIds:
        raise ValidationError("Please provide a valid date and an array of time slot IDs")
    availability = await capacity.batch_availability(payload.date, payload.timeSlotIds)
    return {"success": True, "data": availability}

@router.get("/{time_slot_id}")
async def get_time_slot(time_slot_id: str, current_user: dict = Depends(get_current_user)):
    return {"success": True, "data": await time_slot_service.get_time_slot(time_slot_id)}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_time_slot(payload: TimeSlotCreate, current_user: dict = Depends(require_admin)):
    slot = await time_slot_service.create_time_slot(payload.dict())
    await log_event(EventTypes.TIME_SLOT_CREATED, {"time_slot_id": slot["id"]}, user_id=user_id_of(current_user))
    return {"success": True, "message": "Time slot created successfully", "data": slot}

@router.put("/{time_slot_id}")
async def update_time_slot(time_slot_id: str, payload: TimeSlotUpdate, current_user: dict = Depends(require_admin)):
    slot = await time_slot_service.update_time_slot(time_slot_id, payload.dict(exclude_unset=True))
    await log_event(EventTypes.TIME_SLOT_UPDATED, {"time_slot_id": time_slot_id}, user_id=user_id_of(current_user))
    return {"success": True, "message": "Time slot updated successfully", "data": slot}

@router.delete("/{time_slot_id}")
async def delete_time_slot(time_slot_id: str, current_user: dict = Depends(require_admin)):
    await time_slot_service.delete_time_slot(time_slot_id)
    await log_event(EventTypes.TIME_SLOT_DELETED, {"time_slot_id": time_slot_id}, user_id=user_id_of(current_user))
    return {"success": True, "message": "Time slot deleted successfully"}

@router.post("/{time_slot_id}/limit")
async def set_time_slot_limit(time_slot_id: str, payload: TimeSlotLimitSet, current_user: dict = Depends(require_admin)):
    limit = await time_slot_service.set_time_slot_limit(time_slot_id, payload.max_employees)
    await log_event(
        EventTypes.TIME_SLOT_LIMIT_SET,
        {"time_slot_id": time_slot_id, "max_employees": payload.max_employees},
        user_id=user_id_of(current_user)
    )
    return {"success": True, "message": "Time slot limit set successfully", "data": limit}

@router.delete("/{time_slot_id}/limit")
async def remove_time_slot_limit(time_slot_id: str, current_user: dict = Depends(require_admin)):
    removed = await time_slot_service.remove_time_slot_limit(time_slot_id)
    await log_event(EventTypes.TIME_SLOT_LIMIT_REMOVED, {"time_slot_id": time_slot_id}, user_id=user_id_of(current_user))
    message = "Time slot limit removed successfully" if removed else "Time slot had no limit"
    return {"success": True, "message": message}

@router.get("/{time_slot_id}/availability")
async def check_availability(
    time_slot_id: str,
    week_start_date: str = Query(...),
    current_user: dict = Depends(get_current_user)
):
    return {"success": True, "data": await time_slot_service.availability_for_week(time_slot_id, week_start_date)}

@router.get("/{time_slot_id}/availability-for-date")
async def check_availability_for_date(
    time_slot_id: str,
    date: str = Query(...),
    current_user: dict = Depends(get_current_user)
):
    return {"success": True, "data": await time_slot_service.availability_for_date(time_slot_id, date)}
