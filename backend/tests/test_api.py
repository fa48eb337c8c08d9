import pytest
from fastapi.testclient import TestClient

from app.services import schedule_service
from main import app


def test_root_and_liveness(mongo):
    client = TestClient(app)
    assert client.get("/").json()["health"] == "/health"
    assert client.get("/health/live").json()["status"] == "alive"


def test_requests_without_token_are_rejected(mongo):
    client = TestClient(app)
    response = client.get("/api/schedules")
    assert response.status_code in (401, 403)
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_schedule_flow_over_http(client, people, login):
    emp = people["alice_emp_id"]

    login(people["alice"])
    created = await client.post("/api/schedules", json={
        "employee_id": emp, "date": "2024-06-03", "start_time": "09:00", "end_time": "12:00",
    })
    assert created.status_code == 201
    body = created.json()
    assert body["success"] is True
    schedule_id = body["data"]["id"]

    clash = await client.post("/api/schedules", json={
        "employee_id": emp, "date": "2024-06-03", "start_time": "11:00", "end_time": "13:00",
    })
    assert clash.status_code == 400
    assert clash.json()["error"]["code"] == "SCHEDULE_CONFLICT"

    other = await client.post("/api/schedules", json={
        "employee_id": people["bob_emp_id"], "date": "2024-06-03", "start_time": "13:00", "end_time": "15:00",
    })
    assert other.status_code == 403
    assert other.json()["error"]["code"] == "FORBIDDEN"

    # Approval is admin only
    denied = await client.patch(f"/api/schedules/{schedule_id}/approve")
    assert denied.status_code == 403

    login(people["admin"])
    approved = await client.patch(f"/api/schedules/{schedule_id}/approve")
    assert approved.json()["data"]["status"] == "approved"

    rejected = await client.patch(f"/api/schedules/{schedule_id}/reject", json={"reason": "late"})
    assert rejected.status_code == 400
    assert rejected.json()["error"]["code"] == "INVALID_STATE_TRANSITION"

    missing = await client.get("/api/schedules/665f1c2e8b3e4a0012345678")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"

    deleted = await client.delete(f"/api/schedules/{schedule_id}")
    assert deleted.json()["success"] is True


@pytest.mark.asyncio
async def test_bad_date_is_reported_as_invalid_format(client, people, login):
    login(people["alice"])
    response = await client.post("/api/schedules", json={
        "employee_id": people["alice_emp_id"], "date": "06/03/2024", "start_time": "09:00", "end_time": "12:00",
    })
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_DATE_FORMAT"


@pytest.mark.asyncio
async def test_request_body_validation_uses_the_envelope(client, people, login):
    login(people["alice"])
    response = await client.post("/api/schedules", json={"date": "2024-06-03"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_time_slot_endpoints(client, people, login):
    login(people["admin"])
    created = await client.post("/api/time-slots", json={
        "day_of_week": 1, "start_time": "09:00", "end_time": "12:00", "max_employees": 1,
    })
    assert created.status_code == 201
    slot_id = created.json()["data"]["id"]

    overlap = await client.post("/api/time-slots", json={"day_of_week": 1, "start_time": "10:00", "end_time": "11:00"})
    assert overlap.status_code == 400

    limit = await client.post(f"/api/time-slots/{slot_id}/limit", json={"max_employees": 2})
    assert limit.json()["data"]["max_employees"] == 2

    login(people["alice"])
    forbidden = await client.post("/api/time-slots", json={"day_of_week": 2, "start_time": "09:00", "end_time": "12:00"})
    assert forbidden.status_code == 403

    batch = await client.post("/api/time-slots/batch-availability", json={"date": "2024-06-05", "timeSlotIds": [slot_id]})
    assert batch.json()["data"][slot_id] == {"available": True, "count": 0, "maxEmployees": 2}

    for_date = await client.get(f"/api/time-slots/{slot_id}/availability-for-date", params={"date": "2024-06-03"})
    assert for_date.json()["data"]["available"] is True

    weekly = await client.get(f"/api/time-slots/{slot_id}/availability", params={"week_start_date": "2024-06-03"})
    assert weekly.json()["data"]["current_bookings"] == 0


@pytest.mark.asyncio
async def test_cancellation_endpoints(client, people, login, future_date):
    login(people["admin"])
    shift = (await client.post("/api/schedules", json={
        "employee_id": people["alice_emp_id"], "date": future_date,
        "start_time": "09:00", "end_time": "12:00", "status": "approved",
    })).json()["data"]

    login(people["alice"])
    created = await client.post("/api/shift-cancellations", json={"schedule_id": shift["id"], "reason": "Exam"})
    assert created.status_code == 201
    request_id = created.json()["data"]["id"]

    duplicate = await client.post("/api/shift-cancellations", json={"schedule_id": shift["id"]})
    assert duplicate.json()["error"]["code"] == "ALREADY_PROCESSED"

    login(people["bob"])
    active = await client.get("/api/shift-cancellations/active")
    assert active.json()["count"] == 1

    unread = await client.get("/api/notifications/unread-count")
    assert unread.json()["data"]["count"] == 1

    accepted = await client.post(f"/api/shift-cancellations/{request_id}/accept")
    assert accepted.status_code == 200
    assert accepted.json()["data"]["status"] == "fulfilled"

    notes = await client.get("/api/notifications")
    assert [n["type"] for n in notes.json()["items"]] == ["shift_reassigned"]


@pytest.mark.asyncio
async def test_settings_endpoints(client, people, login):
    login(people["alice"])
    assert (await client.get("/api/settings")).json()["data"] == {"first_day_of_week": 1}
    assert (await client.post("/api/settings", json={"first_day_of_week": 0})).status_code == 403

    login(people["admin"])
    invalid = await client.post("/api/settings", json={"first_day_of_week": 9})
    assert invalid.status_code == 400
    updated = await client.post("/api/settings", json={"first_day_of_week": 0})
    assert updated.json()["data"] == {"first_day_of_week": 0}


@pytest.mark.asyncio
async def test_roster_endpoints(client, people, login):
    login(people["admin"])
    for employee_id, start, end in ((people["alice_emp_id"], "09:00", "12:00"), (people["bob_emp_id"], "10:00", "14:00")):
        created = await client.post("/api/schedules", json={
            "employee_id": employee_id, "date": "2024-06-04", "start_time": start, "end_time": end, "status": "approved",
        })
        assert created.status_code == 201

    weekly = await client.get("/api/roster/weekly", params={"week_start_date": "2024-06-04"})
    assert weekly.json()["data"]["week_start_date"] == "2024-06-03"
    assert weekly.json()["count"] == 2

    working = await client.get("/api/roster/working", params={"date": "2024-06-04", "time": "13:00"})
    assert [s["employee_name"] for s in working.json()["data"]] == ["Bob"]

    ranged = await client.get("/api/roster/range", params={"start_date": "2024-06-01", "end_date": "2024-06-30"})
    assert ranged.json()["count"] == 2

    login(people["alice"])
    assert (await client.get("/api/roster/weekly", params={"week_start_date": "2024-06-04"})).status_code == 403
    sheet = await client.get(
        f"/api/roster/timesheet/{people['alice_emp_id']}", params={"start_date": "2024-06-03", "end_date": "2024-06-09"}
    )
    assert sheet.json()["data"]["total_hours"] == 3.0
    other = await client.get(
        f"/api/roster/timesheet/{people['bob_emp_id']}", params={"start_date": "2024-06-03", "end_date": "2024-06-09"}
    )
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_unhandled_errors_are_logged_as_system_errors(client, people, login, mongo, monkeypatch):
    login(people["admin"])

    async def broken(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(schedule_service, "list_pending_requests", broken)
    response = await client.get("/api/schedules/pending")

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"
    entry = await mongo["activity_logs"].find_one({"action": "system_error"})
    assert entry["details"]["path"] == "/api/schedules/pending"
