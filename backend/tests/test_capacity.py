from unittest.mock import AsyncMock

import pytest

from app.services import capacity


async def _book(mongo, slot_id, day, count, status="approved"):
    for i in range(count):
        await mongo["schedules"].insert_one({
            "employee_id": f"emp-{status}-{i}",
            "time_slot_id": slot_id,
            "date": day,
            "start_time": "09:00",
            "end_time": "12:00",
            "status": status,
        })


@pytest.mark.asyncio
async def test_slot_without_limit_is_always_available(mongo):
    await _book(mongo, "slot-1", "2024-06-03", 10)
    assert await capacity.get_max_employees("slot-1") is None
    assert await capacity.is_available("slot-1", "2024-06-03")


@pytest.mark.asyncio
async def test_full_slot_is_unavailable_and_one_short_is_available(mongo):
    await mongo["time_slot_limits"].insert_one({"time_slot_id": "slot-1", "max_employees": 3})

    await _book(mongo, "slot-1", "2024-06-03", 2)
    assert await capacity.is_available("slot-1", "2024-06-03")

    await _book(mongo, "slot-1", "2024-06-03", 1)
    assert await capacity.approved_count_for_date("slot-1", "2024-06-03") == 3
    assert not await capacity.is_available("slot-1", "2024-06-03")


@pytest.mark.asyncio
async def test_only_approved_shifts_consume_capacity(mongo):
    await mongo["time_slot_limits"].insert_one({"time_slot_id": "slot-1", "max_employees": 1})
    await _book(mongo, "slot-1", "2024-06-03", 4, status="pending")
    await _book(mongo, "slot-1", "2024-06-03", 2, status="rejected")

    assert await capacity.is_available("slot-1", "2024-06-03")


@pytest.mark.asyncio
async def test_availability_fails_open_when_the_store_errors(mongo, monkeypatch):
    monkeypatch.setattr(capacity, "get_max_employees", AsyncMock(side_effect=RuntimeError("connection reset")))
    assert await capacity.is_available("slot-1", "2024-06-03")


@pytest.mark.asyncio
async def test_weekly_count_spans_seven_days(mongo):
    await _book(mongo, "slot-1", "2024-06-03", 1)
    await _book(mongo, "slot-1", "2024-06-09", 1)
    await _book(mongo, "slot-1", "2024-06-10", 1)

    assert await capacity.approved_count_for_week("slot-1", "2024-06-03") == 2


@pytest.mark.asyncio
async def test_batch_availability_counts_the_owning_week(mongo):
    await mongo["system_settings"].insert_one({"first_day_of_week": 1})
    await mongo["time_slot_limits"].insert_one({"time_slot_id": "slot-1", "max_employees": 2})
    # Monday and Sunday of the same Monday-first week
    await _book(mongo, "slot-1", "2024-06-03", 1)
    await _book(mongo, "slot-1", "2024-06-09", 1)
    # Following week does not count
    await _book(mongo, "slot-2", "2024-06-10", 1)

    result = await capacity.batch_availability("2024-06-05", ["slot-1", "slot-2"])

    assert result["slot-1"] == {"available": False, "count": 2, "maxEmployees": 2}
    assert result["slot-2"] == {"available": True, "count": 0, "maxEmployees": None}


@pytest.mark.asyncio
async def test_batch_availability_with_no_ids(mongo):
    assert await capacity.batch_availability("2024-06-05", []) == {}


@pytest.mark.asyncio
async def test_batch_availability_reports_every_slot_open_on_error(mongo, monkeypatch):
    monkeypatch.setattr(
        capacity.settings_service, "get_first_day_of_week", AsyncMock(side_effect=RuntimeError("boom"))
    )
    result = await capacity.batch_availability("2024-06-05", ["a", "b"])
    assert result == {
        "a": {"available": True, "count": 0, "maxEmployees": None, "error": True},
        "b": {"available": True, "count": 0, "maxEmployees": None, "error": True},
    }
