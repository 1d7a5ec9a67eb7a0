"""
Program scheme lookup and weekly supplemental rotation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..config import SETTINGS
from ..db.models import LiftCategory, SupplementalExercise, WorkoutScheme
from ..errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

ROTATION_EPOCH = date(1970, 1, 1)
MAX_SUPPLEMENTALS = 3


@dataclass(frozen=True)
class Scheme:
    """Validated prescription: one entry per working set in each sequence."""

    week: int
    day_of_week: int
    category: LiftCategory
    sets: tuple[int, ...]
    reps: tuple[int, ...]
    percentages: tuple[float, ...]
    rest_time: int
    supplemental_ids: tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.week < 1:
            raise ValidationError("week must be 1 or greater")
        if self.day_of_week < 1 or self.day_of_week > 7:
            raise ValidationError("day must be an ISO weekday between 1 and 7")
        if not self.percentages:
            raise ValidationError("scheme needs at least one working set")
        if not (len(self.sets) == len(self.reps) == len(self.percentages)):
            raise ValidationError("sets, reps and percentages must have the same length")
        if any(n < 1 for n in self.sets) or any(n < 1 for n in self.reps):
            raise ValidationError("sets and reps must be positive")
        if self.rest_time < 0:
            raise ValidationError("rest time cannot be negative")

    @property
    def first_percentage(self) -> float:
        return self.percentages[0]

    @classmethod
    def from_row(cls, row: WorkoutScheme) -> Scheme:
        return cls(
            week=row.week,
            day_of_week=row.day_of_week,
            category=row.category,
            sets=tuple(int(n) for n in row.sets),
            reps=tuple(int(n) for n in row.reps),
            percentages=tuple(float(p) for p in row.percentages),
            rest_time=int(row.rest_time),
            supplemental_ids=tuple(int(i) for i in (row.supplemental_ids or [])),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "week": self.week,
            "day_of_week": self.day_of_week,
            "category": self.category.value,
            "sets": list(self.sets),
            "reps": list(self.reps),
            "percentages": list(self.percentages),
            "rest_time": self.rest_time,
            "supplemental_ids": list(self.supplemental_ids),
        }


def week_start(as_of: date | datetime) -> date:
    """Monday of the ISO week containing ``as_of``."""
    day = as_of.date() if isinstance(as_of, datetime) else as_of
    return day - timedelta(days=day.weekday())


def week_identifier(as_of: date | datetime) -> int:
    """Whole weeks between the rotation epoch and the Monday of ``as_of``'s week."""
    return (week_start(as_of) - ROTATION_EPOCH).days // 7


def program_week(
    as_of: date | datetime, start: date | None = None, weeks: int | None = None
) -> int:
    """1-based program week, advancing every 7 days from ``start`` and cycling."""
    day = as_of.date() if isinstance(as_of, datetime) else as_of
    start = start or SETTINGS.PROGRAM_START_DATE
    weeks = weeks or SETTINGS.PROGRAM_WEEKS
    return ((day - start).days // 7) % weeks + 1


class SchemeSelector:
    """Resolves program schemes and the weekly supplemental rotation."""

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        primary_lower_circuit: str | None = None,
    ):
        self.sessions = sessions
        if primary_lower_circuit is None:
            primary_lower_circuit = SETTINGS.PRIMARY_LOWER_CIRCUIT
        self.primary_lower_circuit = primary_lower_circuit

    async def resolve_scheme(self, week: int, day_of_week: int, category: LiftCategory) -> Scheme:
        async with self.sessions() as s:
            res = await s.execute(
                select(WorkoutScheme).where(
                    WorkoutScheme.week == week,
                    WorkoutScheme.day_of_week == day_of_week,
                    WorkoutScheme.category == category,
                )
            )
            row = res.scalar_one_or_none()
        if row is None:
            logger.warning(
                "No scheme configured for week=%s day=%s category=%s",
                week,
                day_of_week,
                category.value,
            )
            raise NotFound("scheme")
        return Scheme.from_row(row)

    async def select_supplemental_workouts(
        self, category: LiftCategory, as_of: date | datetime
    ) -> list[SupplementalExercise]:
        """
        Up to three supplementals for ``category``, fixed for the whole
        Monday-Sunday week of ``as_of`` and rotating at week boundaries.
        """
        async with self.sessions() as s:
            res = await s.execute(
                select(SupplementalExercise)
                .options(selectinload(SupplementalExercise.steps))
                .where(SupplementalExercise.category == category)
                .order_by(SupplementalExercise.id.asc())
            )
            catalog = list(res.scalars().all())
        if not catalog:
            return []

        picked: list[SupplementalExercise] = []
        remaining = catalog
        if category == LiftCategory.LOWER and self.primary_lower_circuit:
            primary = next((x for x in catalog if x.name == self.primary_lower_circuit), None)
            if primary is not None:
                picked.append(primary)
                remaining = [x for x in catalog if x.id != primary.id]

        week_id = week_identifier(as_of)
        for offset in range(min(MAX_SUPPLEMENTALS - len(picked), len(remaining))):
            picked.append(remaining[(week_id + offset) % len(remaining)])
        return picked
