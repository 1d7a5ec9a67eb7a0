"""
Default (recurring weekly) schedule templates and slot generation from them.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...db import repo
from ...db.models import DefaultSchedule, Role
from ..deps import Caller, get_caller, get_sessionmaker, require_roles
from .schedule import slot_to_dict

router = APIRouter()


class TemplateRequest(BaseModel):
    id: int | None = Field(None, description="Existing template to update")
    day_of_week: int = Field(..., ge=1, le=7, description="ISO weekday, Monday=1")
    time: str
    category: str
    capacity: int | None = Field(None, ge=1)
    coach_id: int | None = None
    is_active: bool = True


class CreateFromTemplateRequest(BaseModel):
    default_schedule_id: int
    on_date: date = Field(..., alias="date")


def template_to_dict(tpl: DefaultSchedule) -> dict[str, Any]:
    return {
        "id": tpl.id,
        "day_of_week": tpl.day_of_week,
        "time": tpl.time,
        "category": tpl.category.value,
        "capacity": tpl.capacity,
        "coach_id": tpl.coach_id,
        "is_active": tpl.is_active,
    }


@router.get("/default-schedules")
async def list_templates(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    templates = await repo.list_default_schedules(sessions)
    return {"success": True, "default_schedules": [template_to_dict(t) for t in templates]}


@router.post("/default-schedules/create-schedule")
async def create_from_template(
    req: CreateFromTemplateRequest,
    caller: Caller = Depends(get_caller),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Materialize a template as a concrete class slot on ``date``."""
    slot = await repo.create_slot_from_default(sessions, req.default_schedule_id, req.on_date)
    return {"success": True, "slot": slot_to_dict(slot)}


@router.post("/default-schedules/admin")
async def upsert_template(
    req: TemplateRequest,
    caller: Caller = Depends(require_roles(Role.ADMIN)),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    tpl = await repo.upsert_default_schedule(
        sessions,
        day_of_week=req.day_of_week,
        time=req.time,
        category=req.category,
        coach_id=req.coach_id,
        capacity=req.capacity,
        is_active=req.is_active,
        template_id=req.id,
    )
    return {"success": True, "default_schedule": template_to_dict(tpl)}


@router.delete("/default-schedules/admin/{template_id}")
async def delete_template(
    template_id: int,
    caller: Caller = Depends(require_roles(Role.ADMIN)),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    await repo.delete_default_schedule(sessions, template_id)
    return {"success": True, "message": "Default schedule deleted"}
