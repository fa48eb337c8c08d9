"""
Time slot capacity.

Only approved shifts consume capacity. Availability checks fail open: if the
store cannot be read the slot is reported as available and the error logged.
"""
from datetime import timedelta
from typing import Any, Dict, List, Optional

from app.db import get_db
from app.services import settings_service
from app.services.calendar import format_date, parse_date, week_start_for
from app.utils.logger import log_error


async def get_max_employees(time_slot_id: str) -> Optional[int]:
    limit = await get_db()["time_slot_limits"].find_one({"time_slot_id": str(time_slot_id)})
    if not limit:
        return None
    return limit.get("max_employees")


async def approved_count_for_date(time_slot_id: str, date: str) -> int:
    return await get_db()["schedules"].count_documents({
        "time_slot_id": str(time_slot_id),
        "date": format_date(date),
        "status": "approved",
    })


async def approved_count_for_week(time_slot_id: str, week_start_date: str) -> int:
    start = parse_date(week_start_date)
    return await get_db()["schedules"].count_documents({
        "time_slot_id": str(time_slot_id),
        "date": {"$gte": format_date(start), "$lte": format_date(start + timedelta(days=6))},
        "status": "approved",
    })


async def is_available(time_slot_id: str, date: str) -> bool:
    try:
        max_employees = await get_max_employees(time_slot_id)
        if max_employees is None:
            return True
        return await approved_count_for_date(time_slot_id, date) < max_employees
    except Exception as e:
        log_error(f"Capacity check failed for slot {time_slot_id} on {date}, allowing booking", e)
        return True


async def batch_availability(date: str, time_slot_ids: List[str]) -> Dict[str, Dict[str, Any]]:
    """Weekly availability for several slots, keyed by slot id."""
    if not time_slot_ids:
        return {}

    date = format_date(date)
    ids = [str(slot_id) for slot_id in time_slot_ids]
    try:
        first_day = await settings_service.get_first_day_of_week()
        week_start = week_start_for(date, first_day)
        week_end = format_date(parse_date(week_start) + timedelta(days=6))
        db = get_db()

        limits = {}
        async for limit in db["time_slot_limits"].find({"time_slot_id": {"$in": ids}}):
            limits[limit["time_slot_id"]] = limit.get("max_employees")

        counts = {slot_id: 0 for slot_id in ids}
        cursor = db["schedules"].find(
            {
                "time_slot_id": {"$in": ids},
                "date": {"$gte": week_start, "$lte": week_end},
                "status": "approved",
            },
            {"time_slot_id": 1},
        )
        async for shift in cursor:
            counts[shift["time_slot_id"]] += 1

        result = {}
        for slot_id in ids:
            max_employees = limits.get(slot_id)
            result[slot_id] = {
                "available": max_employees is None or counts[slot_id] < max_employees,
                "count": counts[slot_id],
                "maxEmployees": max_employees,
            }
        return result
    except Exception as e:
        log_error(f"Batch availability failed for {date}, reporting all slots open", e)
        return {
            slot_id: {"available": True, "count": 0, "maxEmployees": None, "error": True}
            for slot_id in ids
        }
