"""
Shift booking lifecycle.

A shift starts ``pending`` (or ``approved`` when an admin books it), moves to
``approved`` or ``rejected`` exactly once through an admin decision, and drops
back to ``pending`` when its owner materially edits an approved shift.
Transitions are conditional updates on the expected status, so two admins
deciding the same request cannot both succeed.
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from app.db import get_db, serialize_doc, to_object_id
from app.models.schedule import Schedule, ScheduleStatus
from app.services import capacity, directory, settings_service, shift_cancellation_service, time_slot_service
from app.services.calendar import format_date, parse_time, resolve_date_for_day, utcnow, week_bounds
from app.services.conflicts import has_schedule_conflict
from app.services.notification_service import notification_service
from app.utils.auth import is_admin, user_id_of
from app.utils.exceptions import (
    CapacityExceeded,
    Forbidden,
    InvalidStateTransition,
    NotFound,
    ScheduleConflict,
    SchedulingError,
    ValidationError,
)
from app.utils.logger import log_event, EventTypes

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Request rejected"
STATUSES = {status.value for status in ScheduleStatus}
MATERIAL_FIELDS = ("employee_id", "date", "start_time", "end_time")


async def _find_schedule(schedule_id: str) -> dict:
    oid = to_object_id(schedule_id)
    schedule = await get_db()["schedules"].find_one({"_id": oid}) if oid else None
    if not schedule:
        raise NotFound("Schedule not found")
    return schedule


async def _ensure_own_employee(current_user: dict, employee_id: str, message: str):
    employee = await directory.get_employee_by_user_id(user_id_of(current_user))
    if not employee or str(employee["_id"]) != str(employee_id):
        raise Forbidden(message)


async def _notify_owner(schedule: dict, status: str, reason: Optional[str] = None):
    employee = await directory.get_employee_by_id(schedule["employee_id"])
    if employee:
        await notification_service.notify_schedule_status(employee.get("user_id"), schedule, status, reason)


async def _resolve_times(data: Dict[str, Any]):
    """(start_time, end_time, time_slot_id) from a slot reference or custom times"""
    if data.get("time_slot_id"):
        slot = await time_slot_service.get_time_slot_doc(data["time_slot_id"])
        return slot["start_time"], slot["end_time"], str(slot["_id"])
    return parse_time(data["start_time"]), parse_time(data["end_time"]), None


def _check_order(start_time: str, end_time: str):
    if start_time >= end_time:
        raise ValidationError("Start time must be before end time")


async def create_schedule(data: Dict[str, Any]) -> Dict[str, Any]:
    """Persist a shift without conflict checks, for callers that validated already"""
    now = utcnow()
    schedule = Schedule(created_at=now, updated_at=now, **data).dict(exclude={"id"})
    result = await get_db()["schedules"].insert_one(schedule)
    schedule["_id"] = result.inserted_id
    return serialize_doc(schedule)


async def request_schedule(data: Dict[str, Any], current_user: dict) -> Dict[str, Any]:
    if not data.get("employee_id") or not data.get("date"):
        raise ValidationError("Please provide employee and date")
    if not data.get("time_slot_id") and not (data.get("start_time") and data.get("end_time")):
        raise ValidationError("Please provide either a time slot or both start and end time")

    admin = is_admin(current_user)
    employee_id = str(data["employee_id"])
    date = format_date(data["date"])

    requested_status = data.get("status") or ScheduleStatus.PENDING.value
    if requested_status not in (ScheduleStatus.PENDING.value, ScheduleStatus.APPROVED.value):
        raise ValidationError(f"A new shift cannot be created as {requested_status}")
    if requested_status == ScheduleStatus.APPROVED.value and not admin:
        raise Forbidden("Only admins can create approved shifts")

    if not admin:
        await _ensure_own_employee(current_user, employee_id, "You can only request shifts for yourself")

    start_time, end_time, time_slot_id = await _resolve_times(data)
    _check_order(start_time, end_time)

    if await has_schedule_conflict(employee_id, date, start_time, end_time):
        raise ScheduleConflict("This shift overlaps another shift already booked for the employee on that date")

    if not admin and time_slot_id and not await capacity.is_available(time_slot_id, date):
        raise CapacityExceeded("This time slot is already at full capacity for the selected date")

    record = {
        "employee_id": employee_id,
        "date": date,
        "start_time": start_time,
        "end_time": end_time,
        "time_slot_id": time_slot_id,
        "status": requested_status,
        "requested_by": user_id_of(current_user),
        "notes": data.get("notes"),
    }
    if requested_status == ScheduleStatus.APPROVED.value:
        record["approved_by"] = user_id_of(current_user)
        record["approval_date"] = utcnow()

    schedule = await create_schedule(record)
    await log_event(
        EventTypes.SCHEDULE_CREATED if admin else EventTypes.SCHEDULE_REQUESTED,
        {"schedule_id": schedule["id"], "employee_id": employee_id, "date": date, "status": requested_status},
        user_id=user_id_of(current_user),
    )
    return schedule


async def _decide(schedule_id: str, updates: Dict[str, Any], verb: str) -> dict:
    oid = to_object_id(schedule_id)
    if not oid:
        raise NotFound("Schedule not found")

    updated = await get_db()["schedules"].find_one_and_update(
        {"_id": oid, "status": ScheduleStatus.PENDING.value},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if updated:
        return updated

    existing = await get_db()["schedules"].find_one({"_id": oid})
    if not existing:
        raise NotFound("Schedule not found")
    raise InvalidStateTransition(
        f"Cannot {verb} a schedule that is {existing['status']}",
        details={"current_status": existing["status"]},
    )


async def approve_schedule(schedule_id: str, approver_id: str) -> Dict[str, Any]:
    # Capacity is not re-checked here; admins may knowingly overfill a slot
    now = utcnow()
    updated = await _decide(schedule_id, {
        "status": ScheduleStatus.APPROVED.value,
        "approved_by": approver_id,
        "approval_date": now,
        "updated_at": now,
    }, "approve")

    await _notify_owner(updated, ScheduleStatus.APPROVED.value)
    await log_event(EventTypes.SCHEDULE_APPROVED, {"schedule_id": schedule_id}, user_id=approver_id)
    return serialize_doc(updated)


async def reject_schedule(schedule_id: str, approver_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
    now = utcnow()
    reason = reason or DEFAULT_REJECTION_REASON
    updated = await _decide(schedule_id, {
        "status": ScheduleStatus.REJECTED.value,
        "rejection_reason": reason,
        "approved_by": approver_id,
        "approval_date": now,
        "updated_at": now,
    }, "reject")

    await _notify_owner(updated, ScheduleStatus.REJECTED.value, reason)
    await log_event(EventTypes.SCHEDULE_REJECTED, {"schedule_id": schedule_id, "reason": reason}, user_id=approver_id)
    return serialize_doc(updated)


async def update_schedule(schedule_id: str, patch: Dict[str, Any], current_user: dict) -> Dict[str, Any]:
    schedule = await _find_schedule(schedule_id)
    admin = is_admin(current_user)
    patch = {key: value for key, value in patch.items() if value is not None}

    if not admin:
        await _ensure_own_employee(current_user, schedule["employee_id"], "You can only update your own shifts")
        if "status" in patch and patch["status"] != schedule["status"]:
            raise Forbidden("Only admins can change the status of a shift")
        if "employee_id" in patch and str(patch["employee_id"]) != schedule["employee_id"]:
            raise Forbidden("Only admins can move a shift to another employee")

    updates: Dict[str, Any] = {}
    unset: Dict[str, str] = {}

    if "employee_id" in patch:
        updates["employee_id"] = str(patch["employee_id"])
    if "date" in patch:
        updates["date"] = format_date(patch["date"])
    if "notes" in patch:
        updates["notes"] = patch["notes"]

    if patch.get("time_slot_id"):
        slot = await time_slot_service.get_time_slot_doc(patch["time_slot_id"])
        updates["start_time"] = slot["start_time"]
        updates["end_time"] = slot["end_time"]
        updates["time_slot_id"] = str(slot["_id"])
    elif "start_time" in patch or "end_time" in patch:
        if "start_time" in patch:
            updates["start_time"] = parse_time(patch["start_time"])
        if "end_time" in patch:
            updates["end_time"] = parse_time(patch["end_time"])
        # Custom times no longer follow the template
        if schedule.get("time_slot_id"):
            unset["time_slot_id"] = ""

    merged = {**schedule, **updates}
    _check_order(merged["start_time"], merged["end_time"])

    new_status = schedule["status"]
    if admin and "status" in patch and patch["status"] != schedule["status"]:
        if patch["status"] not in STATUSES:
            raise ValidationError(f"Unknown status: {patch['status']}")
        new_status = patch["status"]

    material = any(key in updates and updates[key] != schedule.get(key) for key in MATERIAL_FIELDS)
    # A rejected shift holds no time; bringing it back must clear the overlap check
    revived = schedule["status"] == ScheduleStatus.REJECTED.value and new_status != ScheduleStatus.REJECTED.value
    if (material or revived) and new_status != ScheduleStatus.REJECTED.value and await has_schedule_conflict(
        merged["employee_id"], merged["date"], merged["start_time"], merged["end_time"], exclude_id=schedule_id
    ):
        raise ScheduleConflict("The updated shift overlaps another shift already booked for the employee on that date")

    if new_status != schedule["status"]:
        updates["status"] = new_status
        if new_status == ScheduleStatus.PENDING.value:
            unset.update({"approved_by": "", "approval_date": ""})
        else:
            updates["approved_by"] = user_id_of(current_user)
            updates["approval_date"] = utcnow()
        if new_status == ScheduleStatus.REJECTED.value:
            updates["rejection_reason"] = patch.get("rejection_reason") or DEFAULT_REJECTION_REASON
        elif schedule.get("rejection_reason"):
            unset["rejection_reason"] = ""

    if not admin and material and schedule["status"] == ScheduleStatus.APPROVED.value:
        updates["status"] = ScheduleStatus.PENDING.value
        unset.update({"approved_by": "", "approval_date": ""})

    updates["updated_at"] = utcnow()
    operation: Dict[str, Any] = {"$set": updates}
    if unset:
        operation["$unset"] = unset

    updated = await get_db()["schedules"].find_one_and_update(
        {"_id": schedule["_id"]}, operation, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise NotFound("Schedule not found")

    await log_event(
        EventTypes.SCHEDULE_UPDATED,
        {"schedule_id": schedule_id, "fields": sorted(patch.keys()), "status": updated["status"]},
        user_id=user_id_of(current_user),
    )
    return serialize_doc(updated)


async def delete_schedule(schedule_id: str, deleted_by: Optional[str] = None) -> None:
    schedule = await _find_schedule(schedule_id)
    await shift_cancellation_service.withdraw_requests_for_schedule(str(schedule["_id"]))
    await get_db()["schedules"].delete_one({"_id": schedule["_id"]})
    await log_event(EventTypes.SCHEDULE_DELETED, {"schedule_id": schedule_id}, user_id=deleted_by)


async def request_weekly_schedule(
    employee_id: str,
    week_start_date: str,
    assignments: List[Dict[str, Any]],
    current_user: dict,
) -> Dict[str, List[Dict[str, Any]]]:
    if not employee_id or not week_start_date:
        raise ValidationError("Please provide employee and week start date")
    if not assignments:
        raise ValidationError("Please provide at least one assignment")

    admin = is_admin(current_user)
    employee_id = str(employee_id)
    week_start_date = format_date(week_start_date)
    if not admin:
        await _ensure_own_employee(current_user, employee_id, "You can only request shifts for yourself")

    first_day = await settings_service.get_first_day_of_week()
    status = ScheduleStatus.APPROVED.value if admin else ScheduleStatus.PENDING.value
    schedules, errors = [], []

    for assignment in assignments:
        try:
            day = assignment.get("day_of_week")
            if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
                raise ValidationError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
            if not assignment.get("time_slot_id"):
                raise ValidationError("Please provide a time slot")

            slot = await time_slot_service.get_time_slot_doc(assignment["time_slot_id"])
            slot_id = str(slot["_id"])
            if assignment.get("actual_date"):
                date = format_date(assignment["actual_date"])
            else:
                date = resolve_date_for_day(week_start_date, day, first_day)

            if await has_schedule_conflict(employee_id, date, slot["start_time"], slot["end_time"]):
                raise ScheduleConflict(f"Shift on {date} overlaps another shift already booked")
            if not admin and not await capacity.is_available(slot_id, date):
                raise CapacityExceeded(f"Time slot is at full capacity on {date}")

            record = {
                "employee_id": employee_id,
                "date": date,
                "start_time": slot["start_time"],
                "end_time": slot["end_time"],
                "time_slot_id": slot_id,
                "week_start_date": week_start_date,
                "status": status,
                "requested_by": user_id_of(current_user),
                "notes": assignment.get("notes"),
            }
            if admin:
                record["approved_by"] = user_id_of(current_user)
                record["approval_date"] = utcnow()
            schedules.append(await create_schedule(record))
        except SchedulingError as e:
            errors.append({
                "day_of_week": assignment.get("day_of_week"),
                "time_slot_id": assignment.get("time_slot_id"),
                "code": e.code,
                "error": e.message,
            })

    await log_event(
        EventTypes.WEEKLY_SCHEDULE_REQUESTED,
        {"employee_id": employee_id, "week_start_date": week_start_date, "created": len(schedules), "failed": len(errors)},
        user_id=user_id_of(current_user),
    )
    return {"schedules": schedules, "errors": errors}


async def bulk_schedule_operations(
    new_bookings: List[Dict[str, Any]],
    cancellations: List[str],
    admin_user: dict,
) -> Dict[str, List[Dict[str, Any]]]:
    """Delete first, then book; every item reports its own outcome"""
    results = {"success": [], "errors": []}
    admin_id = user_id_of(admin_user)

    for schedule_id in cancellations:
        try:
            await delete_schedule(schedule_id, deleted_by=admin_id)
            results["success"].append({"type": "cancellation", "schedule_id": schedule_id})
        except SchedulingError as e:
            results["errors"].append({"type": "cancellation", "schedule_id": schedule_id, "code": e.code, "error": e.message})

    for booking in new_bookings:
        try:
            schedule = await request_schedule({**booking, "status": ScheduleStatus.APPROVED.value}, admin_user)
            results["success"].append({"type": "booking", "schedule": schedule})
        except SchedulingError as e:
            results["errors"].append({"type": "booking", "booking": booking, "code": e.code, "error": e.message})

    await log_event(
        EventTypes.BULK_SCHEDULE_OPERATIONS,
        {"succeeded": len(results["success"]), "failed": len(results["errors"])},
        user_id=admin_id,
    )
    return results


async def list_schedules(filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    filters = filters or {}
    query: Dict[str, Any] = {}

    for key in ("employee_id", "status", "requested_by", "time_slot_id"):
        if filters.get(key):
            query[key] = str(filters[key])

    if filters.get("date"):
        query["date"] = format_date(filters["date"])
    elif filters.get("start_date") or filters.get("end_date"):
        query["date"] = {}
        if filters.get("start_date"):
            query["date"]["$gte"] = format_date(filters["start_date"])
        if filters.get("end_date"):
            query["date"]["$lte"] = format_date(filters["end_date"])

    cursor = get_db()["schedules"].find(query).sort([("date", 1), ("start_time", 1)])
    return [serialize_doc(schedule) async for schedule in cursor]


async def get_schedule(schedule_id: str) -> Dict[str, Any]:
    return serialize_doc(await _find_schedule(schedule_id))


async def list_pending_requests() -> List[Dict[str, Any]]:
    cursor = get_db()["schedules"].find({"status": ScheduleStatus.PENDING.value}).sort("created_at", 1)
    return [serialize_doc(schedule) async for schedule in cursor]


async def get_daily_roster(date: str) -> List[Dict[str, Any]]:
    """Approved shifts on one date, grouped by their time range"""
    date = format_date(date)
    cursor = get_db()["schedules"].find(
        {"date": date, "status": ScheduleStatus.APPROVED.value}
    ).sort([("start_time", 1), ("end_time", 1)])

    groups: Dict[tuple, Dict[str, Any]] = {}
    async for shift in cursor:
        key = (shift["start_time"], shift["end_time"])
        if key not in groups:
            groups[key] = {
                "start_time": shift["start_time"],
                "end_time": shift["end_time"],
                "time_slot_id": shift.get("time_slot_id"),
                "employees": [],
            }
        groups[key]["employees"].append({
            "schedule_id": str(shift["_id"]),
            "employee_id": shift["employee_id"],
            "name": await directory.employee_name(shift["employee_id"]),
        })
    return list(groups.values())


async def _approved_shifts(query: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Approved shifts matching ``query`` with the employee name attached"""
    cursor = get_db()["schedules"].find(
        {**query, "status": ScheduleStatus.APPROVED.value}
    ).sort([("date", 1), ("start_time", 1)])

    names: Dict[str, str] = {}
    shifts = []
    async for shift in cursor:
        employee_id = shift["employee_id"]
        if employee_id not in names:
            names[employee_id] = await directory.employee_name(employee_id)
        shifts.append({**serialize_doc(shift), "employee_name": names[employee_id]})
    return shifts


def _date_range(start_date: str, end_date: str) -> Dict[str, str]:
    start, end = format_date(start_date), format_date(end_date)
    if start > end:
        raise ValidationError("Start date must not be after end date")
    return {"$gte": start, "$lte": end}


async def get_weekly_roster(any_date: str) -> Dict[str, Any]:
    """Approved shifts for the configured week containing ``any_date``"""
    first_day = await settings_service.get_first_day_of_week()
    week_start, week_end = week_bounds(any_date, first_day)
    shifts = await _approved_shifts({"date": {"$gte": week_start, "$lte": week_end}})
    return {"week_start_date": week_start, "week_end_date": week_end, "shifts": shifts}


async def get_roster_by_date_range(start_date: str, end_date: str) -> List[Dict[str, Any]]:
    return await _approved_shifts({"date": _date_range(start_date, end_date)})


def shift_hours(shift: Dict[str, Any]) -> float:
    start_h, start_m = (int(part) for part in shift["start_time"].split(":"))
    end_h, end_m = (int(part) for part in shift["end_time"].split(":"))
    return ((end_h * 60 + end_m) - (start_h * 60 + start_m)) / 60


async def get_employee_timesheet(
    employee_id: str, start_date: str, end_date: str, current_user: Optional[dict] = None
) -> Dict[str, Any]:
    """Approved shifts of one employee in a date range and the hours they add up to"""
    if current_user is not None and not is_admin(current_user):
        await _ensure_own_employee(current_user, employee_id, "You can only view your own timesheet")

    shifts = await _approved_shifts({"employee_id": str(employee_id), "date": _date_range(start_date, end_date)})
    return {
        "employee_id": str(employee_id),
        "start_date": format_date(start_date),
        "end_date": format_date(end_date),
        "timesheet": shifts,
        "total_hours": round(sum(shift_hours(shift) for shift in shifts), 2),
    }


async def get_employees_working_at(date: str, time: str) -> List[Dict[str, Any]]:
    """Approved shifts on ``date`` whose range includes ``time``, ends inclusive"""
    time = parse_time(time)
    return await _approved_shifts({
        "date": format_date(date),
        "start_time": {"$lte": time},
        "end_time": {"$gte": time},
    })
