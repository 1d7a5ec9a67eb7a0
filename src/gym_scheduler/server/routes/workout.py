"""
Workout program API: schemes, weight calculation, max lifts and workout logs.
"""

from __future__ import annotations

import logging
from datetime import date as date_type
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...db import repo
from ...db.models import Lift, Role, WorkoutLog
from ...errors import NotFound
from ...services import Scheme, SchemeSelector
from ...weights import calculate, max_for
from ..deps import Caller, get_caller, get_sessionmaker, require_roles

logger = logging.getLogger(__name__)

router = APIRouter()


class SchemeRequest(BaseModel):
    week: int = Field(..., ge=1)
    day: int = Field(..., ge=1, le=7, description="ISO weekday, Monday=1")
    category: str
    sets: list[int]
    reps: list[int]
    percentages: list[float]
    rest_time: int = Field(120, ge=0, description="Rest between sets in seconds")
    supplemental_ids: list[int] = Field(default_factory=list)


class MaxLiftsRequest(BaseModel):
    max_bench: float | None = Field(None, gt=0, allow_inf_nan=False)
    max_ohp: float | None = Field(None, gt=0, allow_inf_nan=False)
    max_squat: float | None = Field(None, gt=0, allow_inf_nan=False)
    max_deadlift: float | None = Field(None, gt=0, allow_inf_nan=False)


class WorkoutLogRequest(BaseModel):
    lift: Lift
    weight: float = Field(..., gt=0, allow_inf_nan=False)
    reps: int = Field(..., ge=1)
    sets: int = Field(1, ge=1)
    date: date_type | None = Field(None, description="Defaults to today")
    notes: str | None = Field(None, max_length=1000)


def _log_to_dict(row: WorkoutLog) -> dict[str, Any]:
    return {
        "id": row.id,
        "lift": row.lift.value,
        "weight": row.weight,
        "reps": row.reps,
        "sets": row.sets,
        "date": row.date.isoformat(),
        "notes": row.notes,
    }


@router.get("/workout/scheme")
async def get_scheme(
    week: int = Query(..., ge=1),
    day: int = Query(..., ge=1, le=7, description="ISO weekday, Monday=1"),
    category: str = Query(...),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Sets, reps, percentages and rest for a program week, day and category."""
    scheme = await SchemeSelector(sessions).resolve_scheme(
        week, day, repo.parse_category(category)
    )
    return {"success": True, "scheme": scheme.to_dict()}


@router.put("/workout/scheme")
async def put_scheme(
    req: SchemeRequest,
    caller: Caller = Depends(require_roles(Role.ADMIN)),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Create or replace a scheme during program setup."""
    scheme = Scheme(
        week=req.week,
        day_of_week=req.day,
        category=repo.parse_category(req.category),
        sets=tuple(req.sets),
        reps=tuple(req.reps),
        percentages=tuple(req.percentages),
        rest_time=req.rest_time,
        supplemental_ids=tuple(req.supplemental_ids),
    )
    row = await repo.upsert_scheme(
        sessions,
        week=scheme.week,
        day_of_week=scheme.day_of_week,
        category=scheme.category,
        sets=list(scheme.sets),
        reps=list(scheme.reps),
        percentages=list(scheme.percentages),
        rest_time=scheme.rest_time,
        supplemental_ids=list(scheme.supplemental_ids),
    )
    return {"success": True, "scheme": Scheme.from_row(row).to_dict()}


@router.get("/workout/calculate")
async def calculate_weight(
    lift: Lift = Query(..., description="BENCH, OHP, SQUAT or DEADLIFT"),
    percentage: float = Query(...),
    caller: Caller = Depends(get_caller),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Prescribed weight for ``percentage`` of the caller's max on ``lift``."""
    user = await repo.get_user(sessions, caller.user_id)
    if user is None:
        raise NotFound("user")
    one_rep_max = max_for(user, lift)
    weight = calculate(one_rep_max, percentage)
    return {
        "lift": lift.value,
        "max_weight": one_rep_max,
        "percentage": percentage,
        "calculated_weight": weight,
    }


@router.put("/workout/max-lifts")
async def put_max_lifts(
    req: MaxLiftsRequest,
    caller: Caller = Depends(get_caller),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """Update the caller's one-rep maxes. Omitted lifts keep their value."""
    user = await repo.update_max_lifts(sessions, caller.user_id, **req.model_dump())
    return {
        "success": True,
        "max_lifts": {
            "max_bench": user.max_bench,
            "max_ohp": user.max_ohp,
            "max_squat": user.max_squat,
            "max_deadlift": user.max_deadlift,
        },
    }


@router.get("/workout")
async def list_workout_logs(
    lift: Lift | None = Query(None, description="Only logs for this lift"),
    caller: Caller = Depends(get_caller),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    """The caller's workout history, newest first."""
    rows = await repo.list_workouts(sessions, caller.user_id, lift)
    return {"success": True, "workouts": [_log_to_dict(r) for r in rows]}


@router.post("/workout", status_code=201)
async def create_workout_log(
    req: WorkoutLogRequest,
    caller: Caller = Depends(get_caller),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict[str, Any]:
    row = await repo.log_workout(
        sessions,
        caller.user_id,
        lift=req.lift,
        weight=req.weight,
        reps=req.reps,
        sets=req.sets,
        on_date=req.date,
        notes=req.notes,
    )
    return {"success": True, "message": "Workout logged successfully", "workout": _log_to_dict(row)}
