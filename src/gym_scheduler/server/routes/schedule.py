"""
Schedule API endpoints: class slots, bookings and the next-class view.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...db import repo
from ...db.models import Booking, Role, ScheduleSlot
from ...services import CapacityLedger, ClassDetailsAssembler, SchemeSelector
from ..deps import Caller, get_caller, get_sessionmaker, require_roles

logger = logging.getLogger(__name__)

router = APIRouter()


class BookRequest(BaseModel):
    category: str | None = Field(None, description="UPPER or LOWER, required on dual days")


class AdminAssignRequest(BaseModel):
    slot_id: int
    user_id: int
    category: str | None = None


class SlotCreateRequest(BaseModel):
    on_date: date = Field(..., alias="date")
    time: str = Field(..., description="Start time as HH:MM")
    category: str
    capacity: int | None = Field(None, ge=1)
    coach_id: int | None = None


def slot_to_dict(slot: ScheduleSlot) -> dict[str, Any]:
    # Relationships are only rendered when eagerly loaded
    coach = None if "coach" in sa_inspect(slot).unloaded else slot.coach
    return {
        "id": slot.id,
        "date": slot.date.isoformat(),
        "time": slot.time,
        "category": slot.category.value,
        "capacity": slot.capacity,
        "booked_count": slot.booked_count,
        "available": slot.capacity - slot.booked_count,
        "coach_id": slot.coach_id,
        "coach": (
            {"id": coach.id, "first_name": coach.first_name, "last_name": coach.last_name}
            if coach
            else None
        ),
    }


def booking_to_dict(booking: Booking) -> dict[str, Any]:
    return {
        "id": booking.id,
        "slot_id": booking.slot_id,
        "user_id": booking.user_id,
        "category": booking.category.value if booking.category else None,
    }


@router.get("/schedule")
async def list_schedule(
    on_date: date | None = Query(None, alias="date", description="Only slots on this day"),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """List class slots ordered by date and time."""
    slots = await repo.list_slots(sessions, on_date)
    return {"success": True, "slots": [slot_to_dict(s) for s in slots]}


@router.post("/schedule")
async def create_schedule(
    req: SlotCreateRequest,
    caller: Caller = Depends(require_roles(Role.ADMIN, Role.COACH)),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Create a class slot (admins and coaches)."""
    slot = await repo.create_slot(
        sessions,
        req.on_date,
        req.time,
        req.category,
        capacity=req.capacity,
        coach_id=req.coach_id,
    )
    return {"success": True, "slot": slot_to_dict(slot)}


@router.get("/schedule/class")
async def upcoming_class(
    reference_time: datetime | None = Query(
        None, description="Defaults to the current gym-local time"
    ),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Roster, scheme, weights and supplementals for the next class."""
    assembler = ClassDetailsAssembler(
        sessions, SchemeSelector(sessions), CapacityLedger(sessions)
    )
    view = await assembler.get_upcoming_class_details(reference_time)
    return {"success": True, "class": view.to_dict()}


@router.post("/schedule/admin/add-user")
async def admin_add_user(
    req: AdminAssignRequest,
    caller: Caller = Depends(require_roles(Role.ADMIN)),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Book another member into a class."""
    booking = await CapacityLedger(sessions).admin_assign(
        req.slot_id, req.user_id, caller.role, req.category
    )
    return {"success": True, "booking": booking_to_dict(booking)}


@router.post("/schedule/{slot_id}/book")
async def book_class(
    slot_id: int,
    req: BookRequest | None = None,
    caller: Caller = Depends(get_caller),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Book the calling member into a class."""
    category = req.category if req else None
    booking = await CapacityLedger(sessions).book(slot_id, caller.user_id, category)
    return {"success": True, "booking": booking_to_dict(booking)}


@router.delete("/schedule/{slot_id}/book")
async def cancel_booking(
    slot_id: int,
    caller: Caller = Depends(get_caller),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Cancel the calling member's booking."""
    await CapacityLedger(sessions).cancel(slot_id, caller.user_id)
    return {"success": True, "message": "Booking cancelled"}


@router.delete("/schedule/{slot_id}")
async def delete_schedule(
    slot_id: int,
    caller: Caller = Depends(require_roles(Role.ADMIN, Role.COACH)),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Delete a class together with its bookings."""
    await CapacityLedger(sessions).delete_slot(slot_id)
    logger.info("Slot %s deleted by user %s (%s)", slot_id, caller.user_id, caller.role.value)
    return {"success": True, "message": "Schedule deleted"}
