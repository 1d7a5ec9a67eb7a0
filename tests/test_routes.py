"""
Tests for the HTTP layer: auth headers, error rendering and route wiring.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
import pytest_asyncio
from conftest import FRIDAY, MONDAY, make_scheme, make_slot
from fastapi.testclient import TestClient

from gym_scheduler.server.deps import get_sessionmaker
from gym_scheduler.server.main import app


def _as(user, role=None):
    return {"X-User-Id": str(user.id), "X-User-Role": role or user.role.value}


@pytest_asyncio.fixture
async def client(sessions):
    app.dependency_overrides[get_sessionmaker] = lambda: sessions
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sync_client():
    # Only for requests rejected before any store access
    app.dependency_overrides[get_sessionmaker] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthz_and_root(sync_client):
    assert sync_client.get("/healthz").status_code == 200
    data = sync_client.get("/").json()
    assert data["ok"] is True
    assert data["name"] == "Gym Scheduler API"


def test_missing_identity_is_unauthorized(sync_client):
    r = sync_client.post("/api/v1/schedule/1/book", json={})
    assert r.status_code == 401
    assert r.json()["error"] == "unauthorized"

    r = sync_client.post(
        "/api/v1/schedule/1/book", json={}, headers={"X-User-Id": "x", "X-User-Role": "USER"}
    )
    assert r.status_code == 401


def test_wrong_role_is_forbidden(sync_client):
    headers = {"X-User-Id": "1", "X-User-Role": "USER"}
    r = sync_client.delete("/api/v1/schedule/1", headers=headers)
    assert r.status_code == 403
    assert r.json() == {"ok": False, "error": "forbidden", "message": "Insufficient permissions"}

    r = sync_client.post(
        "/api/v1/schedule/admin/add-user", json={"slot_id": 1, "user_id": 2}, headers=headers
    )
    assert r.status_code == 403


def test_invalid_body_is_rejected(sync_client):
    headers = {"X-User-Id": "1", "X-User-Role": "ADMIN"}
    r = sync_client.post(
        "/api/v1/schedule/admin/add-user", json={"slot_id": "abc"}, headers=headers
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_book_and_cancel_flow(client, sessions, users):
    slot = await make_slot(sessions, capacity=1)
    alice, bob = users["alice"], users["bob"]

    r = await client.post(f"/api/v1/schedule/{slot.id}/book", headers=_as(alice))
    assert r.status_code == 200
    assert r.json()["booking"]["user_id"] == alice.id

    r = await client.post(f"/api/v1/schedule/{slot.id}/book", json={}, headers=_as(bob))
    assert r.status_code == 400
    assert r.json() == {
        "ok": False,
        "error": "capacity_exceeded",
        "message": "This class is at full capacity",
    }

    r = await client.get("/api/v1/schedule", params={"date": MONDAY.isoformat()})
    assert r.json()["slots"][0]["booked_count"] == 1
    assert r.json()["slots"][0]["available"] == 0

    r = await client.delete(f"/api/v1/schedule/{slot.id}/book", headers=_as(alice))
    assert r.status_code == 200
    r = await client.delete(f"/api/v1/schedule/{slot.id}/book", headers=_as(alice))
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"

    r = await client.post(f"/api/v1/schedule/{slot.id}/book", headers=_as(bob))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_dual_day_booking_requires_category(client, sessions, users):
    slot = await make_slot(sessions, on_date=FRIDAY)
    headers = _as(users["alice"])

    r = await client.post(f"/api/v1/schedule/{slot.id}/book", json={}, headers=headers)
    assert r.status_code == 400
    assert r.json()["message"] == "category required"

    r = await client.post(
        f"/api/v1/schedule/{slot.id}/book", json={"category": "LOWER"}, headers=headers
    )
    assert r.status_code == 200
    assert r.json()["booking"]["category"] == "LOWER"


@pytest.mark.asyncio
async def test_admin_add_user_and_delete_slot(client, sessions, users):
    slot = await make_slot(sessions)
    admin, coach = users["admin"], users["coach"]

    r = await client.post(
        "/api/v1/schedule/admin/add-user",
        json={"slot_id": slot.id, "user_id": users["bob"].id},
        headers=_as(admin),
    )
    assert r.status_code == 200

    r = await client.delete(f"/api/v1/schedule/{slot.id}", headers=_as(coach))
    assert r.status_code == 200
    r = await client.delete(f"/api/v1/schedule/{slot.id}", headers=_as(coach))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_create_slot_conflict(client, users):
    body = {"date": MONDAY.isoformat(), "time": "7:00", "category": "LOWER", "capacity": 4}
    r = await client.post("/api/v1/schedule", json=body, headers=_as(users["coach"]))
    assert r.status_code == 200
    assert r.json()["slot"]["time"] == "07:00"

    r = await client.post("/api/v1/schedule", json=body, headers=_as(users["coach"]))
    assert r.status_code == 409

    body["time"] = "25:00"
    r = await client.post("/api/v1/schedule", json=body, headers=_as(users["coach"]))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_upcoming_class(client, sessions, users):
    slot = await make_slot(sessions, on_date=MONDAY, time="17:00")
    await make_scheme(sessions, 1, 1, "UPPER", percentages=(75, 80))
    await client.post(f"/api/v1/schedule/{slot.id}/book", headers=_as(users["alice"]))

    r = await client.get(
        "/api/v1/schedule/class", params={"reference_time": "2025-01-06T16:15:00"}
    )
    assert r.status_code == 200
    view = r.json()["class"]
    assert view["time"] == "17:00"
    assert view["participants"][0]["weights"] == {"bench": 150, "ohp": 75}

    r = await client.get(
        "/api/v1/schedule/class", params={"reference_time": "2025-01-06T08:15:00"}
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_workout_scheme_and_calculate(client, users):
    admin, alice = users["admin"], users["alice"]
    scheme = {
        "week": 2,
        "day": 3,
        "category": "UPPER",
        "sets": [1, 1],
        "reps": [10, 10],
        "percentages": [50, 55],
        "rest_time": 120,
    }
    r = await client.put("/api/v1/workout/scheme", json=scheme, headers=_as(alice))
    assert r.status_code == 403
    r = await client.put("/api/v1/workout/scheme", json=scheme, headers=_as(admin))
    assert r.status_code == 200

    r = await client.get(
        "/api/v1/workout/scheme", params={"week": 2, "day": 3, "category": "UPPER"}
    )
    assert r.json()["scheme"]["percentages"] == [50.0, 55.0]
    r = await client.get(
        "/api/v1/workout/scheme", params={"week": 2, "day": 3, "category": "LOWER"}
    )
    assert r.status_code == 404

    bad = dict(scheme, reps=[10])
    r = await client.put("/api/v1/workout/scheme", json=bad, headers=_as(admin))
    assert r.status_code == 400

    r = await client.get(
        "/api/v1/workout/calculate",
        params={"lift": "BENCH", "percentage": 77},
        headers=_as(alice),
    )
    assert r.json() == {
        "lift": "BENCH",
        "max_weight": 200.0,
        "percentage": 77.0,
        "calculated_weight": 155,
    }

    r = await client.get(
        "/api/v1/workout/calculate",
        params={"lift": "SQUAT", "percentage": 75},
        headers=_as(users["bob"]),
    )
    assert r.status_code == 400
    assert r.json()["message"] == "max not set for this lift"

    for bad in ("nan", "inf"):
        r = await client.get(
            "/api/v1/workout/calculate",
            params={"lift": "BENCH", "percentage": bad},
            headers=_as(alice),
        )
        assert r.status_code == 400
        assert r.json() == {
            "ok": False,
            "error": "validation_error",
            "message": "percentage must be a finite number",
        }


@pytest.mark.asyncio
async def test_update_max_lifts(client, users):
    bob = users["bob"]
    r = await client.put("/api/v1/workout/max-lifts", json={"max_squat": 225}, headers=_as(bob))
    assert r.status_code == 200
    assert r.json()["max_lifts"]["max_squat"] == 225
    assert r.json()["max_lifts"]["max_bench"] is None

    r = await client.put("/api/v1/workout/max-lifts", json={"max_squat": -5}, headers=_as(bob))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_workout_log_routes(client, users):
    alice = users["alice"]
    entry = {"lift": "BENCH", "weight": 185, "reps": 5, "sets": 3, "date": "2025-01-06"}
    r = await client.post("/api/v1/workout", json=entry)
    assert r.status_code == 401

    r = await client.post("/api/v1/workout", json=entry, headers=_as(alice))
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "Workout logged successfully"
    assert body["workout"]["lift"] == "BENCH"
    assert body["workout"]["date"] == "2025-01-06"

    squat = {"lift": "SQUAT", "weight": 275, "reps": 5, "date": "2025-01-10", "notes": "belt"}
    r = await client.post("/api/v1/workout", json=squat, headers=_as(alice))
    assert r.json()["workout"]["sets"] == 1

    r = await client.post(
        "/api/v1/workout", json=dict(entry, weight=0), headers=_as(alice)
    )
    assert r.status_code == 422

    r = await client.get("/api/v1/workout", headers=_as(alice))
    assert [w["lift"] for w in r.json()["workouts"]] == ["SQUAT", "BENCH"]
    r = await client.get("/api/v1/workout", params={"lift": "BENCH"}, headers=_as(alice))
    assert [w["weight"] for w in r.json()["workouts"]] == [185.0]
    r = await client.get("/api/v1/workout", headers=_as(users["bob"]))
    assert r.json() == {"success": True, "workouts": []}


@pytest.mark.asyncio
async def test_default_schedule_templates(client, users):
    admin = users["admin"]
    tpl = {"day_of_week": 1, "time": "17:00", "category": "UPPER", "coach_id": admin.id}
    r = await client.post("/api/v1/default-schedules/admin", json=tpl, headers=_as(admin))
    assert r.status_code == 200
    tpl_id = r.json()["default_schedule"]["id"]
    assert r.json()["default_schedule"]["capacity"] == 8

    r = await client.get("/api/v1/default-schedules")
    assert [t["id"] for t in r.json()["default_schedules"]] == [tpl_id]

    body = {"default_schedule_id": tpl_id, "date": FRIDAY.isoformat()}
    r = await client.post(
        "/api/v1/default-schedules/create-schedule", json=body, headers=_as(admin)
    )
    assert r.status_code == 400

    body["date"] = MONDAY.isoformat()
    r = await client.post(
        "/api/v1/default-schedules/create-schedule", json=body, headers=_as(admin)
    )
    assert r.status_code == 200
    assert r.json()["slot"]["coach_id"] == admin.id

    r = await client.delete(f"/api/v1/default-schedules/admin/{tpl_id}", headers=_as(admin))
    assert r.status_code == 200
    r = await client.get("/api/v1/default-schedules")
    assert r.json()["default_schedules"] == []
