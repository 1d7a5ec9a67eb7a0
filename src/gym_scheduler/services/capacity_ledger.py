"""
Booking ledger for schedule slots.

Owns the invariants ``0 <= booked_count <= capacity`` and "booked_count equals
the number of live bookings". Every mutation here runs as one transaction:
the slot is re-read under a row lock, the count change and the booking row
change are committed together, and any failure rolls both back.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..config import SETTINGS
from ..db.models import Booking, LiftCategory, Role, ScheduleSlot, User
from ..db.repo import parse_category, transaction
from ..errors import CapacityExceeded, DuplicateBooking, Forbidden, NotFound, ValidationError

logger = logging.getLogger(__name__)


class CapacityLedger:
    """Atomic book / cancel / assign / delete operations on schedule slots."""

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        dual_category_days: list[int] | None = None,
    ):
        self.sessions = sessions
        self.dual_category_days = set(
            SETTINGS.DUAL_CATEGORY_DAYS if dual_category_days is None else dual_category_days
        )

    def is_dual_category_day(self, slot: ScheduleSlot) -> bool:
        return slot.date.isoweekday() in self.dual_category_days

    def _resolve_category(
        self, slot: ScheduleSlot, category: str | LiftCategory | None, *, default_to_slot: bool
    ) -> LiftCategory | None:
        if not self.is_dual_category_day(slot):
            return None
        if category is None or not category.strip():
            if default_to_slot:
                return slot.category
            raise ValidationError("category required")
        return parse_category(category)

    async def book(
        self, slot_id: int, user_id: int, category: str | LiftCategory | None = None
    ) -> Booking:
        """Book ``user_id`` into ``slot_id``."""
        return await self._book(slot_id, user_id, category, default_to_slot=False)

    async def admin_assign(
        self,
        slot_id: int,
        user_id: int,
        acting_role: Role | str,
        category: str | LiftCategory | None = None,
    ) -> Booking:
        """Book another user into a slot on an admin's behalf."""
        if Role(acting_role) is not Role.ADMIN:
            raise Forbidden("Admin privileges required")
        booking = await self._book(slot_id, user_id, category, default_to_slot=True)
        logger.info("Admin assigned user %s to slot %s", user_id, slot_id)
        return booking

    async def _book(
        self,
        slot_id: int,
        user_id: int,
        category: str | LiftCategory | None,
        *,
        default_to_slot: bool,
    ) -> Booking:
        async with transaction(self.sessions, "book") as s:
            slot = await s.get(ScheduleSlot, slot_id, with_for_update=True)
            if slot is None:
                raise NotFound("slot")
            if await s.get(User, user_id) is None:
                raise NotFound("user")
            chosen = self._resolve_category(slot, category, default_to_slot=default_to_slot)

            if slot.booked_count >= slot.capacity:
                logger.info(
                    "Slot %s full (%d/%d), rejecting user %s",
                    slot_id,
                    slot.booked_count,
                    slot.capacity,
                    user_id,
                )
                raise CapacityExceeded()

            existing = await s.execute(
                select(Booking.id).where(Booking.slot_id == slot_id, Booking.user_id == user_id)
            )
            if existing.first() is not None:
                raise DuplicateBooking()

            # Guarded increment, the WHERE clause alone keeps booked_count <= capacity
            res = await s.execute(
                update(ScheduleSlot)
                .where(
                    ScheduleSlot.id == slot_id,
                    ScheduleSlot.booked_count < ScheduleSlot.capacity,
                )
                .values(booked_count=ScheduleSlot.booked_count + 1)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                raise CapacityExceeded()

            booking = Booking(slot_id=slot_id, user_id=user_id, category=chosen)
            s.add(booking)
            try:
                await s.flush()
            except IntegrityError as e:
                raise DuplicateBooking() from e

        logger.info(
            "Booked user %s into slot %s (%d/%d)",
            user_id,
            slot_id,
            slot.booked_count + 1,
            slot.capacity,
        )
        return booking

    async def cancel(self, slot_id: int, user_id: int) -> None:
        """Remove ``user_id``'s booking on ``slot_id`` and free the seat."""
        async with transaction(self.sessions, "cancel") as s:
            slot = await s.get(ScheduleSlot, slot_id, with_for_update=True)
            if slot is None:
                raise NotFound("slot")
            res = await s.execute(
                delete(Booking)
                .where(Booking.slot_id == slot_id, Booking.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                raise NotFound("booking")
            # Floor at zero to absorb any historical drift
            await s.execute(
                update(ScheduleSlot)
                .where(ScheduleSlot.id == slot_id)
                .values(
                    booked_count=case(
                        (ScheduleSlot.booked_count > 0, ScheduleSlot.booked_count - 1),
                        else_=0,
                    )
                )
                .execution_options(synchronize_session=False)
            )
        logger.info("Cancelled booking of user %s on slot %s", user_id, slot_id)

    async def delete_slot(self, slot_id: int) -> None:
        """Delete a slot together with all of its bookings."""
        async with transaction(self.sessions, "delete_slot") as s:
            slot = await s.get(ScheduleSlot, slot_id, with_for_update=True)
            if slot is None:
                raise NotFound("slot")
            res = await s.execute(
                delete(Booking)
                .where(Booking.slot_id == slot_id)
                .execution_options(synchronize_session=False)
            )
            removed = res.rowcount
            await s.execute(
                delete(ScheduleSlot)
                .where(ScheduleSlot.id == slot_id)
                .execution_options(synchronize_session=False)
            )
        logger.info("Deleted slot %s and %d booking(s)", slot_id, removed)

    async def roster(self, slot_id: int) -> list[Booking]:
        """Live bookings for a slot, with their users loaded."""
        async with self.sessions() as s:
            if await s.get(ScheduleSlot, slot_id) is None:
                raise NotFound("slot")
            res = await s.execute(
                select(Booking)
                .options(selectinload(Booking.user))
                .where(Booking.slot_id == slot_id)
                .order_by(Booking.id)
            )
            return list(res.scalars().all())
