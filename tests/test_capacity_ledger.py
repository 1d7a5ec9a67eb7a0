"""
Tests for booking, cancellation, admin assignment and slot deletion.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import asyncio

import pytest
from conftest import FRIDAY, MONDAY, make_slot
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError

from gym_scheduler.db.models import Booking, LiftCategory, Role, ScheduleSlot, User
from gym_scheduler.errors import (
    CapacityExceeded,
    DuplicateBooking,
    Forbidden,
    NotFound,
    TransientStoreFailure,
    ValidationError,
)
from gym_scheduler.services import CapacityLedger


async def _state(sessions, slot_id):
    """(booked_count, number of booking rows) for a slot."""
    async with sessions() as s:
        slot = await s.get(ScheduleSlot, slot_id)
        rows = await s.scalar(
            select(func.count()).select_from(Booking).where(Booking.slot_id == slot_id)
        )
    return (slot.booked_count if slot else None), rows


@pytest.mark.asyncio
async def test_capacity_two_scenario(sessions, users):
    slot = await make_slot(sessions, capacity=2)
    ledger = CapacityLedger(sessions)
    a, b, c = users["alice"].id, users["bob"].id, users["carol"].id

    await ledger.book(slot.id, a)
    await ledger.book(slot.id, b)
    with pytest.raises(CapacityExceeded) as exc:
        await ledger.book(slot.id, c)
    assert exc.value.message == "This class is at full capacity"
    assert await _state(sessions, slot.id) == (2, 2)

    await ledger.cancel(slot.id, a)
    assert await _state(sessions, slot.id) == (1, 1)

    await ledger.book(slot.id, c)
    assert await _state(sessions, slot.id) == (2, 2)


@pytest.mark.asyncio
async def test_book_stores_no_category_on_regular_day(sessions, users):
    slot = await make_slot(sessions)
    booking = await CapacityLedger(sessions).book(slot.id, users["alice"].id, "LOWER")
    assert booking.category is None


@pytest.mark.asyncio
async def test_duplicate_booking_rejected(sessions, users):
    slot = await make_slot(sessions)
    ledger = CapacityLedger(sessions)
    await ledger.book(slot.id, users["alice"].id)

    with pytest.raises(DuplicateBooking):
        await ledger.book(slot.id, users["alice"].id)
    assert await _state(sessions, slot.id) == (1, 1)


@pytest.mark.asyncio
async def test_book_unknown_slot_or_user(sessions, users):
    slot = await make_slot(sessions)
    ledger = CapacityLedger(sessions)

    with pytest.raises(NotFound) as exc:
        await ledger.book(9999, users["alice"].id)
    assert exc.value.message == "slot"

    with pytest.raises(NotFound) as exc:
        await ledger.book(slot.id, 9999)
    assert exc.value.message == "user"
    assert await _state(sessions, slot.id) == (0, 0)


@pytest.mark.asyncio
async def test_cancel_without_booking(sessions, users):
    slot = await make_slot(sessions)
    ledger = CapacityLedger(sessions)

    with pytest.raises(NotFound) as exc:
        await ledger.cancel(slot.id, users["alice"].id)
    assert exc.value.message == "booking"
    assert await _state(sessions, slot.id) == (0, 0)


@pytest.mark.asyncio
async def test_cancel_then_book_again(sessions, users):
    slot = await make_slot(sessions, capacity=1)
    ledger = CapacityLedger(sessions)
    uid = users["alice"].id

    await ledger.book(slot.id, uid)
    await ledger.cancel(slot.id, uid)
    with pytest.raises(NotFound):
        await ledger.cancel(slot.id, uid)
    await ledger.book(slot.id, uid)

    assert await _state(sessions, slot.id) == (1, 1)


@pytest.mark.asyncio
async def test_dual_day_category_rules(sessions, users):
    slot = await make_slot(sessions, on_date=FRIDAY, category="UPPER")
    ledger = CapacityLedger(sessions)

    with pytest.raises(ValidationError) as exc:
        await ledger.book(slot.id, users["alice"].id)
    assert exc.value.message == "category required"

    with pytest.raises(ValidationError) as exc:
        await ledger.book(slot.id, users["alice"].id, "SIDEWAYS")
    assert exc.value.message == "invalid category"
    assert await _state(sessions, slot.id) == (0, 0)

    booking = await ledger.book(slot.id, users["alice"].id, "lower")
    assert booking.category == LiftCategory.LOWER
    assert await _state(sessions, slot.id) == (1, 1)


@pytest.mark.asyncio
async def test_dual_day_accepts_category_enum(sessions, users):
    slot = await make_slot(sessions, on_date=FRIDAY, category="UPPER")
    ledger = CapacityLedger(sessions)

    booking = await ledger.book(slot.id, users["alice"].id, LiftCategory.LOWER)
    assert booking.category == LiftCategory.LOWER

    booking = await ledger.admin_assign(slot.id, users["bob"].id, Role.ADMIN, LiftCategory.LOWER)
    assert booking.category == LiftCategory.LOWER
    assert await _state(sessions, slot.id) == (2, 2)


@pytest.mark.asyncio
async def test_concurrent_bookings_never_exceed_capacity(sessions):
    async with sessions.begin() as s:
        members = [User(email=f"m{i}@example.com", first_name=f"M{i}") for i in range(10)]
        s.add_all(members)
    slot = await make_slot(sessions, capacity=3)
    ledger = CapacityLedger(sessions)

    results = await asyncio.gather(
        *(ledger.book(slot.id, m.id) for m in members), return_exceptions=True
    )

    booked = [r for r in results if isinstance(r, Booking)]
    rejected = [r for r in results if isinstance(r, CapacityExceeded)]
    assert len(booked) == 3
    assert len(rejected) == 7
    assert await _state(sessions, slot.id) == (3, 3)


@pytest.mark.asyncio
async def test_concurrent_cancels_only_one_succeeds(sessions, users):
    slot = await make_slot(sessions)
    ledger = CapacityLedger(sessions)
    uid = users["alice"].id
    await ledger.book(slot.id, uid)

    results = await asyncio.gather(
        ledger.cancel(slot.id, uid), ledger.cancel(slot.id, uid), return_exceptions=True
    )

    assert sum(1 for r in results if r is None) == 1
    assert sum(1 for r in results if isinstance(r, NotFound)) == 1
    assert await _state(sessions, slot.id) == (0, 0)


@pytest.mark.asyncio
async def test_store_failure_rolls_back_booking(sessions, users):
    slot = await make_slot(sessions)
    ledger = CapacityLedger(sessions)
    engine = sessions.kw["bind"]

    def fail_insert(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith("INSERT INTO bookings"):
            raise OperationalError(statement, parameters, Exception("disk I/O error"))

    event.listen(engine.sync_engine, "before_cursor_execute", fail_insert)
    try:
        with pytest.raises(TransientStoreFailure):
            await ledger.book(slot.id, users["alice"].id)
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", fail_insert)

    assert await _state(sessions, slot.id) == (0, 0)
    await ledger.book(slot.id, users["alice"].id)
    assert await _state(sessions, slot.id) == (1, 1)


@pytest.mark.asyncio
async def test_admin_assign(sessions, users):
    slot = await make_slot(sessions, on_date=FRIDAY, category="LOWER")
    ledger = CapacityLedger(sessions)

    with pytest.raises(Forbidden):
        await ledger.admin_assign(slot.id, users["bob"].id, Role.COACH)
    with pytest.raises(NotFound) as exc:
        await ledger.admin_assign(slot.id, 9999, Role.ADMIN)
    assert exc.value.message == "user"

    booking = await ledger.admin_assign(slot.id, users["bob"].id, Role.ADMIN)
    assert booking.category == LiftCategory.LOWER
    with pytest.raises(DuplicateBooking):
        await ledger.admin_assign(slot.id, users["bob"].id, "ADMIN")
    assert await _state(sessions, slot.id) == (1, 1)


@pytest.mark.asyncio
async def test_delete_slot_removes_bookings(sessions, users):
    slot = await make_slot(sessions, on_date=MONDAY)
    ledger = CapacityLedger(sessions)
    await ledger.book(slot.id, users["alice"].id)
    await ledger.book(slot.id, users["bob"].id)

    await ledger.delete_slot(slot.id)

    assert await _state(sessions, slot.id) == (None, 0)
    with pytest.raises(NotFound):
        await ledger.delete_slot(slot.id)


@pytest.mark.asyncio
async def test_roster_lists_bookings_in_order(sessions, users):
    slot = await make_slot(sessions)
    ledger = CapacityLedger(sessions)
    await ledger.book(slot.id, users["bob"].id)
    await ledger.book(slot.id, users["alice"].id)

    roster = await ledger.roster(slot.id)
    assert [b.user.first_name for b in roster] == ["Bob", "Alice"]
