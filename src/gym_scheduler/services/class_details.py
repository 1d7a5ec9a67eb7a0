"""
Read view of the next class: roster, scheme, per-member weights and supplementals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import SETTINGS
from ..db.models import LiftCategory, ScheduleSlot, SupplementalExercise
from ..errors import NotFound
from ..weights import weights_for
from .capacity_ledger import CapacityLedger
from .scheme_selector import Scheme, SchemeSelector, program_week

logger = logging.getLogger(__name__)


@dataclass
class Participant:
    first_name: str
    last_initial: str
    category: LiftCategory
    weights: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_initial": self.last_initial,
            "category": self.category.value,
            "weights": dict(self.weights),
        }


@dataclass
class ClassView:
    slot_id: int
    date: date
    time: str
    category: LiftCategory
    capacity: int
    booked_count: int
    program_week: int
    scheme: Scheme
    participants: list[Participant]
    supplementals: list[SupplementalExercise]

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot_id": self.slot_id,
            "date": self.date.isoformat(),
            "time": self.time,
            "category": self.category.value,
            "capacity": self.capacity,
            "booked_count": self.booked_count,
            "program_week": self.program_week,
            "scheme": self.scheme.to_dict(),
            "participants": [p.to_dict() for p in self.participants],
            "supplementals": [
                {
                    "id": x.id,
                    "name": x.name,
                    "body_part": x.body_part.value,
                    "description": x.description,
                    "steps": [
                        {"position": st.position, "name": st.name, "description": st.description}
                        for st in x.steps
                    ],
                }
                for x in self.supplementals
            ],
        }


def local_now() -> datetime:
    """Current time in the gym's configured timezone."""
    return datetime.now(ZoneInfo(SETTINGS.TIMEZONE))


def next_class_label(reference_time: datetime) -> str | None:
    """Time label of the class starting at the top of the next hour."""
    if reference_time.hour >= 23:
        return None
    return f"{reference_time.hour + 1:02d}:00"


class ClassDetailsAssembler:
    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        selector: SchemeSelector,
        ledger: CapacityLedger | None = None,
    ):
        self.sessions = sessions
        self.selector = selector
        self.ledger = ledger or CapacityLedger(sessions)

    async def get_upcoming_class_details(self, reference_time: datetime | None = None) -> ClassView:
        """
        Details of the class starting in the hour after ``reference_time``.

        Weights are computed per participant at the first working-set percentage
        of the scheme for their effective category; members without maxes get
        an empty weight map.
        """
        reference_time = reference_time or local_now()
        label = next_class_label(reference_time)
        if label is None:
            raise NotFound("no class scheduled")
        on_date = reference_time.date()

        async with self.sessions() as s:
            res = await s.execute(
                select(ScheduleSlot).where(ScheduleSlot.date == on_date, ScheduleSlot.time == label)
            )
            slot = res.scalar_one_or_none()
        if slot is None:
            logger.info("No class scheduled on %s at %s", on_date, label)
            raise NotFound("no class scheduled")

        week = program_week(on_date)
        day = on_date.isoweekday()
        scheme = await self.selector.resolve_scheme(week, day, slot.category)
        schemes: dict[LiftCategory, Scheme | None] = {slot.category: scheme}

        participants: list[Participant] = []
        for booking in await self.ledger.roster(slot.id):
            effective = booking.category or slot.category
            if effective not in schemes:
                try:
                    schemes[effective] = await self.selector.resolve_scheme(week, day, effective)
                except NotFound:
                    schemes[effective] = None
            chosen = schemes[effective]
            user = booking.user
            weights = weights_for(user, effective, chosen.first_percentage) if chosen else {}
            participants.append(
                Participant(
                    first_name=user.first_name,
                    last_initial=(user.last_name or "")[:1],
                    category=effective,
                    weights=weights,
                )
            )

        supplementals = await self.selector.select_supplemental_workouts(
            slot.category, on_date
        )
        return ClassView(
            slot_id=slot.id,
            date=slot.date,
            time=slot.time,
            category=slot.category,
            capacity=slot.capacity,
            booked_count=slot.booked_count,
            program_week=week,
            scheme=scheme,
            participants=participants,
            supplementals=supplementals,
        )
