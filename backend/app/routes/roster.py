from fastapi import APIRouter, Depends, Query
from app.services import schedule_service
from app.utils.auth import get_current_user, require_admin

router = APIRouter()

@router.get("/weekly")
async def get_weekly_roster(week_start_date: str = Query(...), current_user: dict = Depends(require_admin)):
    roster = await schedule_service.get_weekly_roster(week_start_date)
    return {"success": True, "count": len(roster["shifts"]), "data": roster}

@router.get("/range")
async def get_roster_by_date_range(
    start_date: str = Query(...),
    end_date: str = Query(...),
    current_user: dict = Depends(get_current_user)
):
    shifts = await schedule_service.get_roster_by_date_range(start_date, end_date)
    return {"success": True, "count": len(shifts), "data": shifts}

@router.get("/working")
async def get_employees_working_at(
    date: str = Query(...),
    time: str = Query(...),
    current_user: dict = Depends(require_admin)
):
    shifts = await schedule_service.get_employees_working_at(date, time)
    return {"success": True, "count": len(shifts), "data": shifts}

@router.get("/timesheet/{employee_id}")
async def get_employee_timesheet(
    employee_id: str,
    start_date: str = Query(...),
    end_date: str = Query(...),
    current_user: dict = Depends(get_current_user)
):
    timesheet = await schedule_service.get_employee_timesheet(employee_id, start_date, end_date, current_user)
    return {"success": True, "data": timesheet}
