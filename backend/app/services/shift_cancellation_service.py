"""
Peer-to-peer release and pickup of shifts.

An employee who cannot work a shift opens a cancellation request; every other
user is told the shift is available until one hour before it starts. The
first eligible employee to accept takes the shift over. A request that
outlives its ``expires_at`` is treated as expired whether or not the
background sweep has marked it yet.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app import config
from app.db import get_db, serialize_doc, to_object_id
from app.models.shift_cancellation import (
    CancellationStatus,
    DEFAULT_CANCELLATION_REASON,
    ShiftCancellationRequest,
)
from app.services import directory
from app.services.calendar import shift_start_utc, utcnow
from app.services.conflicts import has_approved_conflict
from app.services.notification_service import notification_service
from app.utils.auth import is_admin, user_id_of
from app.utils.exceptions import (
    AlreadyProcessed,
    ConflictingSchedule,
    Expired,
    Forbidden,
    InternalError,
    NotFound,
    ValidationError,
)
from app.utils.logger import log_event, EventTypes

logger = logging.getLogger(__name__)

PENDING = CancellationStatus.PENDING.value


def _present(request: dict, schedule: Optional[dict] = None, now=None) -> Dict[str, Any]:
    doc = serialize_doc(request)
    now = now or utcnow()
    if doc["status"] == PENDING and doc["expires_at"] <= now:
        doc["status"] = CancellationStatus.EXPIRED.value
    if schedule is not None:
        doc["schedule"] = serialize_doc(schedule)
    return doc


async def _schedule_for(request: dict) -> Optional[dict]:
    oid = to_object_id(request["schedule_id"])
    return await get_db()["schedules"].find_one({"_id": oid}) if oid else None


async def _find_request(request_id: str) -> dict:
    oid = to_object_id(request_id)
    request = await get_db()["shift_cancellation_requests"].find_one({"_id": oid}) if oid else None
    if not request:
        raise NotFound("Cancellation request not found")
    return request


def _check_claimable(request: dict):
    if request["status"] != PENDING:
        raise AlreadyProcessed(f"Cancellation request is already {request['status']}")
    if request["expires_at"] <= utcnow():
        raise Expired("Cancellation request has expired")


async def request_cancellation(schedule_id: str, current_user: dict, reason: Optional[str] = None) -> Dict[str, Any]:
    oid = to_object_id(schedule_id)
    schedule = await get_db()["schedules"].find_one({"_id": oid}) if oid else None
    if not schedule:
        raise NotFound("Schedule not found")

    requester_id = user_id_of(current_user)
    if not is_admin(current_user):
        employee = await directory.get_employee_by_user_id(requester_id)
        if not employee or str(employee["_id"]) != schedule["employee_id"]:
            raise Forbidden("You can only release your own shifts")

    if schedule["status"] == "rejected":
        raise ValidationError("Rejected shifts cannot be released")

    now = utcnow()
    shift_start = shift_start_utc(schedule["date"], schedule["start_time"])
    if shift_start <= now:
        raise ValidationError("Cannot release a shift that has already started")
    expires_at = shift_start - timedelta(minutes=config.CANCELLATION_EXPIRY_LEAD_MINUTES)
    if expires_at <= now:
        raise Expired("Too close to the start of the shift to release it")

    collection = get_db()["shift_cancellation_requests"]
    schedule_key = str(schedule["_id"])

    # Stale pending requests would otherwise hold the unique index
    await collection.update_many(
        {"schedule_id": schedule_key, "status": PENDING, "expires_at": {"$lte": now}},
        {"$set": {"status": CancellationStatus.EXPIRED.value, "updated_at": now}},
    )
    if await collection.find_one({"schedule_id": schedule_key, "status": PENDING}):
        raise AlreadyProcessed("A cancellation request is already open for this shift")

    request = ShiftCancellationRequest(
        schedule_id=schedule_key,
        requested_by=requester_id,
        reason=reason or DEFAULT_CANCELLATION_REASON,
        expires_at=expires_at,
        created_at=now,
        updated_at=now,
    ).dict(exclude={"id"})

    try:
        result = await collection.insert_one(request)
    except DuplicateKeyError:
        raise AlreadyProcessed("A cancellation request is already open for this shift")
    request["_id"] = result.inserted_id

    requester_name = current_user.get("name") or current_user.get("email") or "An employee"
    recipients = await directory.get_all_users()
    notified = await notification_service.notify_shift_released(request, schedule, requester_name, recipients)

    await log_event(
        EventTypes.CANCELLATION_REQUESTED,
        {"request_id": str(result.inserted_id), "schedule_id": schedule_key, "notified": notified},
        user_id=requester_id,
    )
    return _present(request, schedule, now)


async def _fulfil(request: dict, claimed_by: str, new_employee_id: str) -> tuple:
    """Claim the request, then move the shift; undo the claim if the move fails."""
    db = get_db()
    now = utcnow()

    claimed = await db["shift_cancellation_requests"].find_one_and_update(
        {"_id": request["_id"], "status": PENDING, "expires_at": {"$gt": now}},
        {"$set": {
            "status": CancellationStatus.FULFILLED.value,
            "fulfilled_by": claimed_by,
            "fulfilled_at": now,
            "fulfilled_employee_id": new_employee_id,
            "updated_at": now,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if not claimed:
        # Lost the race, or the request lapsed since it was read
        _check_claimable(await _find_request(str(request["_id"])))
        raise AlreadyProcessed("Cancellation request was already processed")

    try:
        schedule = await db["schedules"].find_one_and_update(
            {"_id": to_object_id(request["schedule_id"])},
            {"$set": {"employee_id": new_employee_id, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
    except Exception as e:
        schedule = None
        logger.error(f"Reassigning schedule {request['schedule_id']} failed: {e}")

    if not schedule:
        await db["shift_cancellation_requests"].update_one(
            {"_id": request["_id"], "status": CancellationStatus.FULFILLED.value},
            {
                "$set": {"status": PENDING, "updated_at": utcnow()},
                "$unset": {"fulfilled_by": "", "fulfilled_at": "", "fulfilled_employee_id": ""},
            },
        )
        raise InternalError("Could not reassign the shift; the cancellation request is still open")

    return claimed, schedule


async def _announce_reassignment(request: dict, schedule: dict, new_employee_id: str):
    recipients = await directory.get_all_users()
    new_name = await directory.employee_name(new_employee_id)
    await notification_service.notify_shift_reassigned(request, schedule, new_name, recipients)
    await notification_service.delete_notifications_by_cancellation_request(str(request["_id"]))


async def accept_cancellation(request_id: str, current_user: dict) -> Dict[str, Any]:
    request = await _find_request(request_id)
    _check_claimable(request)

    claimant_id = user_id_of(current_user)
    employee = await directory.get_employee_by_user_id(claimant_id)
    if not employee:
        raise Forbidden("You need an employee profile to take over shifts")
    if request["requested_by"] == claimant_id:
        raise Forbidden("You cannot take over your own released shift")

    schedule = await _schedule_for(request)
    if not schedule:
        raise NotFound("Schedule not found")

    employee_id = str(employee["_id"])
    if await has_approved_conflict(employee_id, schedule["date"], schedule["start_time"], schedule["end_time"]):
        raise ConflictingSchedule("You already have an approved shift that overlaps this one")

    fulfilled, schedule = await _fulfil(request, claimant_id, employee_id)
    await _announce_reassignment(fulfilled, schedule, employee_id)

    await log_event(
        EventTypes.CANCELLATION_ACCEPTED,
        {"request_id": request_id, "schedule_id": request["schedule_id"], "employee_id": employee_id},
        user_id=claimant_id,
    )
    return _present(fulfilled, schedule)


async def admin_reassign(request_id: str, admin_user: dict, target_employee_id: str) -> Dict[str, Any]:
    if not is_admin(admin_user):
        raise Forbidden("Access denied. Admin privileges required.")

    request = await _find_request(request_id)
    _check_claimable(request)

    target = await directory.get_employee_by_id(target_employee_id)
    if not target:
        raise NotFound("Employee not found")

    schedule = await _schedule_for(request)
    if not schedule:
        raise NotFound("Schedule not found")

    employee_id = str(target["_id"])
    # Handing the shift back to its current owner cannot create an overlap
    if employee_id != schedule["employee_id"] and await has_approved_conflict(
        employee_id, schedule["date"], schedule["start_time"], schedule["end_time"]
    ):
        raise ConflictingSchedule("Employee already has an approved shift that overlaps this one")

    admin_id = user_id_of(admin_user)
    fulfilled, schedule = await _fulfil(request, admin_id, employee_id)
    await _announce_reassignment(fulfilled, schedule, employee_id)

    await log_event(
        EventTypes.CANCELLATION_REASSIGNED,
        {"request_id": request_id, "schedule_id": request["schedule_id"], "employee_id": employee_id},
        user_id=admin_id,
    )
    return _present(fulfilled, schedule)


async def cancel_cancellation_request(request_id: str, current_user: dict) -> Dict[str, Any]:
    user_id = user_id_of(current_user)
    oid = to_object_id(request_id)
    if not oid:
        raise NotFound("Cancellation request not found")

    collection = get_db()["shift_cancellation_requests"]
    cancelled = await collection.find_one_and_update(
        {"_id": oid, "requested_by": user_id, "status": PENDING},
        {"$set": {"status": CancellationStatus.CANCELLED.value, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not cancelled:
        existing = await collection.find_one({"_id": oid})
        if not existing or existing["requested_by"] != user_id:
            raise NotFound("Cancellation request not found")
        raise AlreadyProcessed(f"Cancellation request is already {existing['status']}")

    await notification_service.delete_notifications_by_cancellation_request(request_id)
    await log_event(EventTypes.CANCELLATION_WITHDRAWN, {"request_id": request_id}, user_id=user_id)
    return _present(cancelled)


async def withdraw_requests_for_schedule(schedule_id: str) -> int:
    """Cancel the open requests of a shift that is being deleted"""
    collection = get_db()["shift_cancellation_requests"]
    withdrawn = 0
    async for request in collection.find({"schedule_id": schedule_id, "status": PENDING}):
        result = await collection.update_one(
            {"_id": request["_id"], "status": PENDING},
            {"$set": {"status": CancellationStatus.CANCELLED.value, "updated_at": utcnow()}},
        )
        if result.modified_count:
            withdrawn += 1
            await notification_service.delete_notifications_by_cancellation_request(str(request["_id"]))
    return withdrawn


async def _present_many(cursor) -> List[Dict[str, Any]]:
    now = utcnow()
    requests = []
    async for request in cursor:
        requests.append(_present(request, await _schedule_for(request), now))
    return requests


async def list_active_requests() -> List[Dict[str, Any]]:
    cursor = get_db()["shift_cancellation_requests"].find(
        {"status": PENDING, "expires_at": {"$gt": utcnow()}}
    ).sort("expires_at", 1)
    return await _present_many(cursor)


async def list_requests_for_user(user_id: str) -> List[Dict[str, Any]]:
    cursor = get_db()["shift_cancellation_requests"].find(
        {"$or": [{"requested_by": str(user_id)}, {"fulfilled_by": str(user_id)}]}
    ).sort("created_at", -1)
    return await _present_many(cursor)


async def get_request(request_id: str) -> Dict[str, Any]:
    request = await _find_request(request_id)
    return _present(request, await _schedule_for(request))
