from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from app.schemas.schedule import (
    ScheduleCreate, ScheduleUpdate, ScheduleReject, WeeklyScheduleRequest, BulkScheduleRequest
)
from app.services import schedule_service
from app.utils.auth import get_current_user, require_admin, user_id_of

router = APIRouter()

@router.get("")
async def list_schedules(
    employee_id: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    requested_by: Optional[str] = Query(None),
    time_slot_id: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user)
):
    schedules = await schedule_service.list_schedules({
        "employee_id": employee_id,
        "date": date,
        "start_date": start_date,
        "end_date": end_date,
        "status": status,
        "requested_by": requested_by,
        "time_slot_id": time_slot_id,
    })
    return {"success": True, "count": len(schedules), "data": schedules}

@router.get("/pending")
async def list_pending_requests(current_user: dict = Depends(require_admin)):
    schedules = await schedule_service.list_pending_requests()
    return {"success": True, "count": len(schedules), "data": schedules}

@router.get("/roster")
async def get_daily_roster(date: str = Query(...), current_user: dict = Depends(get_current_user)):
    roster = await schedule_service.get_daily_roster(date)
    return {"success": True, "date": date, "data": roster}

@router.get("/employee/{employee_id}")
async def list_employee_schedules(
    employee_id: str,
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user)
):
    schedules = await schedule_service.list_schedules({
        "employee_id": employee_id,
        "start_date": start_date,
        "end_date": end_date,
    })
    return {"success": True, "count": len(schedules), "data": schedules}

@router.get("/{schedule_id}")
async def get_schedule(schedule_id: str, current_user: dict = Depends(get_current_user)):
    return {"success": True, "data": await schedule_service.get_schedule(schedule_id)}

@router.post("", status_code=status.HTTP_201_CREATED)
async def request_schedule(payload: ScheduleCreate, current_user: dict = Depends(get_current_user)):
    schedule = await schedule_service.request_schedule(payload.dict(), current_user)
    return {"success": True, "message": "Schedule request created successfully", "data": schedule}

@router.post("/weekly", status_code=status.HTTP_201_CREATED)
async def request_weekly_schedule(payload: WeeklyScheduleRequest, current_user: dict = Depends(get_current_user)):
    result = await schedule_service.request_weekly_schedule(
        payload.employee_id,
        payload.week_start_date,
        [assignment.dict() for assignment in payload.assignments],
        current_user,
    )
    return {
        "success": True,
        "message": f"{len(result['schedules'])} shifts requested, {len(result['errors'])} failed",
        "data": result,
    }

@router.post("/bulk")
async def bulk_schedule_operations(payload: BulkScheduleRequest, current_user: dict = Depends(require_admin)):
    result = await schedule_service.bulk_schedule_operations(
        [booking.dict() for booking in payload.newBookings],
        payload.cancellations,
        current_user,
    )
    return {"success": True, "data": result}

@router.patch("/{schedule_id}/approve")
async def approve_schedule(schedule_id: str, current_user: dict = Depends(require_admin)):
    schedule = await schedule_service.approve_schedule(schedule_id, user_id_of(current_user))
    return {"success": True, "message": "Schedule approved", "data": schedule}

@router.patch("/{schedule_id}/reject")
async def reject_schedule(
    schedule_id: str,
    payload: Optional[ScheduleReject] = None,
    current_user: dict = Depends(require_admin)
):
    reason = payload.reason if payload else None
    schedule = await schedule_service.reject_schedule(schedule_id, user_id_of(current_user), reason)
    return {"success": True, "message": "Schedule rejected", "data": schedule}

@router.put("/{schedule_id}")
async def update_schedule(schedule_id: str, payload: ScheduleUpdate, current_user: dict = Depends(get_current_user)):
    schedule = await schedule_service.update_schedule(schedule_id, payload.dict(exclude_unset=True), current_user)
    return {"success": True, "message": "Schedule updated successfully", "data": schedule}

@router.delete("/{schedule_id}")
async def delete_schedule(schedule_id: str, current_user: dict = Depends(require_admin)):
    await schedule_service.delete_schedule(schedule_id, deleted_by=user_id_of(current_user))
    return {"success": True, "message": "Schedule deleted successfully"}
