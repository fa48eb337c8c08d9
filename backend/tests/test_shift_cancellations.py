from datetime import datetime, timedelta

import pytest
from bson import ObjectId
from freezegun import freeze_time
from pymongo.errors import DuplicateKeyError
from unittest.mock import AsyncMock

from app.db import ensure_indexes
from app.services import schedule_service, shift_cancellation_service
from app.services.cancellation_cleanup import cancellation_cleanup_service
from app.utils.exceptions import (
    AlreadyProcessed,
    ConflictingSchedule,
    Expired,
    Forbidden,
    InternalError,
    NotFound,
    ValidationError,
)


async def _approved_shift(people, employee_key, day, start="09:00", end="12:00"):
    shift = await schedule_service.request_schedule(
        {"employee_id": people[employee_key], "date": day, "start_time": start, "end_time": end, "status": "approved"},
        people["admin"],
    )
    return shift


@pytest.mark.asyncio
async def test_request_expires_an_hour_before_the_shift(people, mongo, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)

    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"], None)

    expected = datetime.strptime(f"{future_date} 08:00", "%Y-%m-%d %H:%M")
    assert request["expires_at"] == expected
    assert request["status"] == "pending"
    assert request["reason"] == "No reason provided"

    # Everyone but the requester hears about it, tagged with the request
    notes = await mongo["notifications"].find({"type": "shift_cancellation"}).to_list(None)
    recipients = {n["userId"] for n in notes}
    assert recipients == {people["admin"]["_id"], people["bob"]["_id"]}
    assert all(n["payload"]["cancellation_request_id"] == request["id"] for n in notes)


@pytest.mark.asyncio
async def test_request_preconditions(people, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)

    with pytest.raises(NotFound):
        await shift_cancellation_service.request_cancellation("665f1c2e8b3e4a0012345678", people["alice"])
    with pytest.raises(Forbidden):
        await shift_cancellation_service.request_cancellation(shift["id"], people["bob"])

    await shift_cancellation_service.request_cancellation(shift["id"], people["alice"], "Sick")
    with pytest.raises(AlreadyProcessed):
        await shift_cancellation_service.request_cancellation(shift["id"], people["alice"], "Still sick")


@pytest.mark.asyncio
async def test_past_shifts_cannot_be_released(people):
    shift = await _approved_shift(people, "alice_emp_id", "2020-01-06")
    with pytest.raises(ValidationError):
        await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])


@pytest.mark.asyncio
async def test_accept_reassigns_and_fulfils_together(people, mongo, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"], "Family")

    fulfilled = await shift_cancellation_service.accept_cancellation(request["id"], people["bob"])

    assert fulfilled["status"] == "fulfilled"
    assert fulfilled["fulfilled_by"] == str(people["bob"]["_id"])
    assert fulfilled["fulfilled_employee_id"] == people["bob_emp_id"]
    assert fulfilled["schedule"]["employee_id"] == people["bob_emp_id"]

    stored = await schedule_service.get_schedule(shift["id"])
    assert stored["employee_id"] == people["bob_emp_id"]

    # Open-shift announcements are gone, reassignment notices remain
    assert await mongo["notifications"].count_documents({"type": "shift_cancellation"}) == 0
    assert await mongo["notifications"].count_documents({"type": "shift_reassigned"}) == 3

    with pytest.raises(AlreadyProcessed):
        await shift_cancellation_service.accept_cancellation(request["id"], people["bob"])


@pytest.mark.asyncio
async def test_accept_preconditions(people, mongo, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    with pytest.raises(Forbidden):
        await shift_cancellation_service.accept_cancellation(request["id"], people["alice"])
    # Admin has no employee profile
    with pytest.raises(Forbidden):
        await shift_cancellation_service.accept_cancellation(request["id"], people["admin"])

    await _approved_shift(people, "bob_emp_id", future_date, "11:00", "13:00")
    with pytest.raises(ConflictingSchedule):
        await shift_cancellation_service.accept_cancellation(request["id"], people["bob"])

    with pytest.raises(NotFound):
        await shift_cancellation_service.accept_cancellation("665f1c2e8b3e4a0012345678", people["bob"])


@pytest.mark.asyncio
async def test_accept_after_expiry_is_refused(people, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    with freeze_time(f"{future_date} 08:30:00", real_asyncio=True):
        with pytest.raises(Expired):
            await shift_cancellation_service.accept_cancellation(request["id"], people["bob"])

        listed = await shift_cancellation_service.get_request(request["id"])
        assert listed["status"] == "expired"


@pytest.mark.asyncio
async def test_withdrawn_request_cannot_be_claimed(people, mongo, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    with pytest.raises(NotFound):
        await shift_cancellation_service.cancel_cancellation_request(request["id"], people["bob"])

    withdrawn = await shift_cancellation_service.cancel_cancellation_request(request["id"], people["alice"])
    assert withdrawn["status"] == "cancelled"
    assert await mongo["notifications"].count_documents({"type": "shift_cancellation"}) == 0

    with pytest.raises(AlreadyProcessed):
        await shift_cancellation_service.accept_cancellation(request["id"], people["bob"])
    with pytest.raises(AlreadyProcessed):
        await shift_cancellation_service.cancel_cancellation_request(request["id"], people["alice"])

    # The shift can be released again afterwards
    again = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])
    assert again["status"] == "pending"


@pytest.mark.asyncio
async def test_admin_reassign(people, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    with pytest.raises(Forbidden):
        await shift_cancellation_service.admin_reassign(request["id"], people["bob"], people["bob_emp_id"])
    with pytest.raises(NotFound):
        await shift_cancellation_service.admin_reassign(request["id"], people["admin"], "665f1c2e8b3e4a0012345678")

    # Handing it back to the current owner skips the overlap check
    result = await shift_cancellation_service.admin_reassign(request["id"], people["admin"], people["alice_emp_id"])
    assert result["status"] == "fulfilled"
    assert result["fulfilled_by"] == str(people["admin"]["_id"])
    assert result["schedule"]["employee_id"] == people["alice_emp_id"]


@pytest.mark.asyncio
async def test_failed_reassignment_rolls_back_the_claim(people, mongo, future_date, monkeypatch):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    # The shift disappears between the read and the reassignment
    monkeypatch.setattr(
        shift_cancellation_service, "_schedule_for", AsyncMock(return_value=await mongo["schedules"].find_one({}))
    )
    await mongo["schedules"].delete_many({})

    with pytest.raises(InternalError):
        await shift_cancellation_service.accept_cancellation(request["id"], people["bob"])

    stored = await mongo["shift_cancellation_requests"].find_one({})
    assert stored["status"] == "pending"
    assert "fulfilled_by" not in stored


@pytest.mark.asyncio
async def test_deleting_a_shift_withdraws_its_requests(people, mongo, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    await schedule_service.delete_schedule(shift["id"])

    stored = await shift_cancellation_service.get_request(request["id"])
    assert stored["status"] == "cancelled"
    assert await mongo["notifications"].count_documents({"type": "shift_cancellation"}) == 0


@pytest.mark.asyncio
async def test_listings(people, future_date):
    first = await _approved_shift(people, "alice_emp_id", future_date)
    second = await _approved_shift(people, "alice_emp_id", future_date, "13:00", "15:00")
    open_request = await shift_cancellation_service.request_cancellation(first["id"], people["alice"])
    taken = await shift_cancellation_service.request_cancellation(second["id"], people["alice"])
    await shift_cancellation_service.accept_cancellation(taken["id"], people["bob"])

    active = await shift_cancellation_service.list_active_requests()
    assert [r["id"] for r in active] == [open_request["id"]]
    assert active[0]["schedule"]["id"] == first["id"]

    mine = await shift_cancellation_service.list_requests_for_user(str(people["alice"]["_id"]))
    assert {r["id"] for r in mine} == {open_request["id"], taken["id"]}

    bobs = await shift_cancellation_service.list_requests_for_user(str(people["bob"]["_id"]))
    assert [r["id"] for r in bobs] == [taken["id"]]


@pytest.mark.asyncio
async def test_cleanup_sweep_marks_lapsed_requests_expired(people, mongo, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    lapsed = datetime.strptime(future_date, "%Y-%m-%d") - timedelta(days=10)
    await mongo["shift_cancellation_requests"].update_one(
        {"schedule_id": shift["id"]}, {"$set": {"expires_at": lapsed}}
    )
    await mongo["notifications"].update_many({}, {"$set": {"expires_at": lapsed}})

    summary = await cancellation_cleanup_service.run_once()

    assert summary["expired_requests"] == 1
    stored = await mongo["shift_cancellation_requests"].find_one({})
    assert stored["status"] == "expired"
    assert await mongo["notifications"].count_documents({"payload.cancellation_request_id": request["id"]}) == 0


@pytest.mark.asyncio
async def test_release_inside_the_last_hour_is_refused(people, mongo, future_date):
    shift = await _approved_shift(people, "alice_emp_id", future_date)

    with freeze_time(f"{future_date} 08:30:00", real_asyncio=True):
        with pytest.raises(Expired):
            await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    assert await mongo["shift_cancellation_requests"].count_documents({}) == 0
    assert await mongo["notifications"].count_documents({"type": "shift_cancellation"}) == 0


@pytest.mark.asyncio
async def test_unique_index_violation_reports_already_processed(people, mongo, future_date, monkeypatch):
    shift = await _approved_shift(people, "alice_emp_id", future_date)

    # Another request slipped in between the pending check and the insert
    collection_type = type(mongo["shift_cancellation_requests"])
    monkeypatch.setattr(
        collection_type, "insert_one", AsyncMock(side_effect=DuplicateKeyError("one_pending_cancellation_per_schedule"))
    )

    with pytest.raises(AlreadyProcessed):
        await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])


@pytest.mark.asyncio
async def test_losing_the_claim_race_leaves_the_shift_alone(people, mongo, future_date, monkeypatch):
    shift = await _approved_shift(people, "alice_emp_id", future_date)
    request = await shift_cancellation_service.request_cancellation(shift["id"], people["alice"])

    async def taken_meanwhile(*args, **kwargs):
        await mongo["shift_cancellation_requests"].update_one(
            {"_id": ObjectId(request["id"])}, {"$set": {"status": "fulfilled"}}
        )
        return False

    monkeypatch.setattr(shift_cancellation_service, "has_approved_conflict", taken_meanwhile)

    with pytest.raises(AlreadyProcessed):
        await shift_cancellation_service.accept_cancellation(request["id"], people["bob"])

    stored = await mongo["schedules"].find_one({"_id": ObjectId(shift["id"])})
    assert stored["employee_id"] == people["alice_emp_id"]
    assert await mongo["notifications"].count_documents({"type": "shift_reassigned"}) == 0


@pytest.mark.asyncio
async def test_ensure_indexes_creates_the_pending_request_guard(mongo):
    await ensure_indexes(mongo)

    indexes = await mongo["shift_cancellation_requests"].index_information()
    guard = indexes["one_pending_cancellation_per_schedule"]
    assert guard["key"] == [("schedule_id", 1)]
    assert guard["unique"] is True
    assert "status_expires_at" in indexes

    limits = await mongo["time_slot_limits"].index_information()
    assert limits["one_limit_per_time_slot"]["unique"] is True
