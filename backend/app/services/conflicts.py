import logging
from typing import Optional

from bson import ObjectId

from app.db import get_db

logger = logging.getLogger(__name__)


def intervals_overlap(s1: str, e1: str, s2: str, e2: str) -> bool:
    """True when two HH:MM intervals share time; touching endpoints do not count."""
    return s1 < e2 and e1 > s2 and s1 != e2 and e1 != s2


async def _overlapping(query: dict, start_time: str, end_time: str, exclude_id: Optional[str] = None) -> bool:
    db = get_db()
    if exclude_id and ObjectId.is_valid(exclude_id):
        query["_id"] = {"$ne": ObjectId(exclude_id)}

    async for shift in db["schedules"].find(query, {"start_time": 1, "end_time": 1}):
        if intervals_overlap(start_time, end_time, shift["start_time"], shift["end_time"]):
            logger.debug("Shift %s overlaps %s-%s", shift["_id"], start_time, end_time)
            return True
    return False


async def has_schedule_conflict(
    employee_id: str,
    date: str,
    start_time: str,
    end_time: str,
    exclude_id: Optional[str] = None,
) -> bool:
    # Pending requests count, rejected ones never do
    query = {"employee_id": employee_id, "date": date, "status": {"$ne": "rejected"}}
    return await _overlapping(query, start_time, end_time, exclude_id)


async def has_approved_conflict(employee_id: str, date: str, start_time: str, end_time: str) -> bool:
    query = {"employee_id": employee_id, "date": date, "status": "approved"}
    return await _overlapping(query, start_time, end_time)
