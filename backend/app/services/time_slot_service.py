"""
Admin-defined weekly time slot templates and their capacity limits.

Templates on the same day of week may touch but never overlap. A template
cannot be removed while any shift still references it.
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from app.db import get_db, serialize_doc, to_object_id
from app.models.time_slot import TimeSlot, TimeSlotLimit
from app.services import capacity
from app.services.calendar import format_date, parse_time, utcnow
from app.services.conflicts import intervals_overlap
from app.utils.exceptions import NotFound, ValidationError

logger = logging.getLogger(__name__)

SLOT_FIELDS = ("day_of_week", "start_time", "end_time", "name", "description")


def _validate_day(day) -> int:
    if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
        raise ValidationError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
    return day


def _validate_max_employees(max_employees) -> int:
    if not isinstance(max_employees, int) or isinstance(max_employees, bool) or max_employees < 1:
        raise ValidationError("Please provide a valid maximum number of employees")
    return max_employees


async def _find_slot(time_slot_id: str) -> dict:
    oid = to_object_id(time_slot_id)
    slot = await get_db()["time_slots"].find_one({"_id": oid}) if oid else None
    if not slot:
        raise NotFound("Time slot not found")
    return slot


async def _check_overlap(day: int, start_time: str, end_time: str, exclude_id=None):
    query = {"day_of_week": day}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    async for other in get_db()["time_slots"].find(query):
        if intervals_overlap(start_time, end_time, other["start_time"], other["end_time"]):
            raise ValidationError(
                f"Time slot overlaps with an existing slot ({other['start_time']} - {other['end_time']})"
            )


async def _with_limits(slots: List[dict]) -> List[Dict[str, Any]]:
    ids = [str(slot["_id"]) for slot in slots]
    limits = {}
    async for limit in get_db()["time_slot_limits"].find({"time_slot_id": {"$in": ids}}):
        limits[limit["time_slot_id"]] = limit["max_employees"]

    out = []
    for slot in slots:
        doc = serialize_doc(slot)
        doc["max_employees"] = limits.get(doc["id"])
        out.append(doc)
    return out


async def list_time_slots(day_of_week: Optional[int] = None) -> List[Dict[str, Any]]:
    query = {}
    if day_of_week is not None:
        query["day_of_week"] = _validate_day(day_of_week)
    cursor = get_db()["time_slots"].find(query).sort([("day_of_week", 1), ("start_time", 1)])
    return await _with_limits([slot async for slot in cursor])


async def get_time_slot(time_slot_id: str) -> Dict[str, Any]:
    slot = await _find_slot(time_slot_id)
    return (await _with_limits([slot]))[0]


async def get_time_slot_doc(time_slot_id: str) -> dict:
    """Raw template document, raising NotFound when it is missing"""
    return await _find_slot(time_slot_id)


async def create_time_slot(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("day_of_week") is None or not data.get("start_time") or not data.get("end_time"):
        raise ValidationError("Please provide day of week, start time, and end time")

    day = _validate_day(data["day_of_week"])
    start_time = parse_time(data["start_time"])
    end_time = parse_time(data["end_time"])
    if start_time >= end_time:
        raise ValidationError("Start time must be before end time")

    max_employees = data.get("max_employees")
    if max_employees is not None:
        _validate_max_employees(max_employees)

    await _check_overlap(day, start_time, end_time)

    now = utcnow()
    slot = TimeSlot(
        day_of_week=day,
        start_time=start_time,
        end_time=end_time,
        name=data.get("name"),
        description=data.get("description"),
        created_at=now,
        updated_at=now,
    ).dict(exclude={"id", "max_employees"})

    result = await get_db()["time_slots"].insert_one(slot)
    slot["_id"] = result.inserted_id
    logger.info(f"Created time slot {result.inserted_id} on day {day} {start_time}-{end_time}")

    if max_employees is not None:
        await set_time_slot_limit(str(result.inserted_id), max_employees)

    return (await _with_limits([slot]))[0]


async def update_time_slot(time_slot_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    slot = await _find_slot(time_slot_id)
    updates = {key: value for key, value in patch.items() if key in SLOT_FIELDS and value is not None}

    if "day_of_week" in updates:
        _validate_day(updates["day_of_week"])
    for key in ("start_time", "end_time"):
        if key in updates:
            updates[key] = parse_time(updates[key])

    merged = {**slot, **updates}
    if merged["start_time"] >= merged["end_time"]:
        raise ValidationError("Start time must be before end time")

    if any(key in updates for key in ("day_of_week", "start_time", "end_time")):
        await _check_overlap(merged["day_of_week"], merged["start_time"], merged["end_time"], exclude_id=slot["_id"])

    updates["updated_at"] = utcnow()
    updated = await get_db()["time_slots"].find_one_and_update(
        {"_id": slot["_id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound("Time slot not found")
    return (await _with_limits([updated]))[0]


async def delete_time_slot(time_slot_id: str) -> None:
    slot = await _find_slot(time_slot_id)
    slot_id = str(slot["_id"])
    db = get_db()

    in_use = await db["schedules"].count_documents({"time_slot_id": slot_id})
    if in_use:
        raise ValidationError(
            "Cannot delete time slot because it is being used in schedules",
            details={"schedule_count": in_use},
        )

    await db["time_slot_limits"].delete_many({"time_slot_id": slot_id})
    await db["time_slots"].delete_one({"_id": slot["_id"]})
    logger.info(f"Deleted time slot {slot_id}")


async def set_time_slot_limit(time_slot_id: str, max_employees) -> Dict[str, Any]:
    _validate_max_employees(max_employees)
    slot = await _find_slot(time_slot_id)
    now = utcnow()

    limit = TimeSlotLimit(time_slot_id=str(slot["_id"]), max_employees=max_employees, updated_at=now)
    updated = await get_db()["time_slot_limits"].find_one_and_update(
        {"time_slot_id": limit.time_slot_id},
        {"$set": {"max_employees": limit.max_employees, "updated_at": now}, "$setOnInsert": {"created_at": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return serialize_doc(updated)


async def remove_time_slot_limit(time_slot_id: str) -> bool:
    slot = await _find_slot(time_slot_id)
    result = await get_db()["time_slot_limits"].delete_many({"time_slot_id": str(slot["_id"])})
    return result.deleted_count > 0


async def availability_for_week(time_slot_id: str, week_start_date: str) -> Dict[str, Any]:
    """Weekly booking count next to the single-date check on the week's first day"""
    slot = await _find_slot(time_slot_id)
    slot_id = str(slot["_id"])
    week_start_date = format_date(week_start_date)

    return {
        "time_slot_id": slot_id,
        "max_employees": await capacity.get_max_employees(slot_id),
        "current_bookings": await capacity.approved_count_for_week(slot_id, week_start_date),
        "is_available": await capacity.is_available(slot_id, week_start_date),
    }


async def availability_for_date(time_slot_id: str, date: str) -> Dict[str, Any]:
    slot = await _find_slot(time_slot_id)
    slot_id = str(slot["_id"])
    date = format_date(date)

    max_employees = await capacity.get_max_employees(slot_id)
    if max_employees is None:
        return {"available": True, "max_employees": None, "current_approved": 0, "unlimited": True}

    return {
        "available": await capacity.is_available(slot_id, date),
        "max_employees": max_employees,
        "current_approved": await capacity.approved_count_for_date(slot_id, date),
        "unlimited": False,
    }
