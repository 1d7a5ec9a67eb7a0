"""
SQLAlchemy ORM models for the gym scheduler database tables.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from datetime import date as date_type
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy import (
    Enum as SAEnum,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _str_enum(enum_cls: type[enum.Enum], name: str) -> SAEnum:
    # native_enum=False keeps SQLite and PostgreSQL schemas identical
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        validate_strings=True,
    )


class Role(str, enum.Enum):
    """Caller roles as asserted by the auth layer."""

    USER = "USER"
    COACH = "COACH"
    ADMIN = "ADMIN"


class LiftCategory(str, enum.Enum):
    """Workout category of a class slot."""

    UPPER = "UPPER"
    LOWER = "LOWER"


class Lift(str, enum.Enum):
    """Main lifts that carry a one-rep max."""

    BENCH = "BENCH"
    OHP = "OHP"
    SQUAT = "SQUAT"
    DEADLIFT = "DEADLIFT"


class BodyPart(str, enum.Enum):
    BACK = "BACK"
    BICEPS = "BICEPS"
    CALVES = "CALVES"
    CHEST = "CHEST"
    GLUTES = "GLUTES"
    HAMSTRINGS = "HAMSTRINGS"
    QUADS = "QUADS"
    SHOULDERS = "SHOULDERS"
    TRICEPS = "TRICEPS"


class User(Base):
    """Gym member, coach or admin with an optional max-lift profile."""

    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(64))
    last_name: Mapped[str] = mapped_column(String(64), default="")
    role: Mapped[Role] = mapped_column(
        _str_enum(Role, "user_role"),
        default=Role.USER,
        server_default=text("'USER'"),
        nullable=False,
    )
    max_bench: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_ohp: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_squat: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_deadlift: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    bookings: Mapped[list[Booking]] = relationship("Booking", back_populates="user")

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role.value}>"


class ScheduleSlot(Base):
    """A single bookable class at a date and time."""

    __tablename__ = "schedule_slots"
    __table_args__ = (
        UniqueConstraint("date", "time", name="uq_schedule_slot_date_time"),
        CheckConstraint("capacity > 0", name="ck_schedule_slot_capacity"),
        CheckConstraint(
            "booked_count >= 0 AND booked_count <= capacity", name="ck_schedule_slot_booked"
        ),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[date_type] = mapped_column(Date, index=True)
    time: Mapped[str] = mapped_column(String(5))
    category: Mapped[LiftCategory] = mapped_column(
        _str_enum(LiftCategory, "lift_category"), nullable=False
    )
    capacity: Mapped[int] = mapped_column(Integer, default=8)
    booked_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    coach_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    coach: Mapped[User | None] = relationship("User")
    bookings: Mapped[list[Booking]] = relationship(
        "Booking", back_populates="slot", cascade="all, delete-orphan", order_by="Booking.id"
    )

    def __repr__(self) -> str:
        return (
            f"<ScheduleSlot id={self.id} date={self.date} time={self.time} "
            f"booked={self.booked_count}/{self.capacity}>"
        )


class Booking(Base):
    """A user's seat in a schedule slot."""

    __tablename__ = "bookings"
    __table_args__ = (UniqueConstraint("slot_id", "user_id", name="uq_booking_slot_user"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slot_id: Mapped[int] = mapped_column(
        ForeignKey("schedule_slots.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    # Only set on dual-category days
    category: Mapped[LiftCategory | None] = mapped_column(
        _str_enum(LiftCategory, "booking_category"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    slot: Mapped[ScheduleSlot] = relationship("ScheduleSlot", back_populates="bookings")
    user: Mapped[User] = relationship("User", back_populates="bookings")

    def __repr__(self) -> str:
        return f"<Booking id={self.id} slot_id={self.slot_id} user_id={self.user_id}>"


class DefaultSchedule(Base):
    """Recurring weekly template that slots can be generated from."""

    __tablename__ = "default_schedules"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # ISO weekday, Monday=1
    time: Mapped[str] = mapped_column(String(5))
    capacity: Mapped[int] = mapped_column(Integer, default=8)
    category: Mapped[LiftCategory] = mapped_column(
        _str_enum(LiftCategory, "default_category"), nullable=False
    )
    coach_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    coach: Mapped[User | None] = relationship("User")

    def __repr__(self) -> str:
        return (
            f"<DefaultSchedule id={self.id} day={self.day_of_week} time={self.time} "
            f"category={self.category.value}>"
        )


class WorkoutScheme(Base):
    """Prescribed sets/reps/percentages for a program week, day and category."""

    __tablename__ = "workout_schemes"
    __table_args__ = (
        UniqueConstraint("week", "day_of_week", "category", name="uq_workout_scheme_key"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    week: Mapped[int] = mapped_column(Integer)
    day_of_week: Mapped[int] = mapped_column(Integer)
    category: Mapped[LiftCategory] = mapped_column(
        _str_enum(LiftCategory, "scheme_category"), nullable=False
    )
    sets: Mapped[list[Any]] = mapped_column(JSON)
    reps: Mapped[list[Any]] = mapped_column(JSON)
    percentages: Mapped[list[Any]] = mapped_column(JSON)
    rest_time: Mapped[int] = mapped_column(Integer, default=120)
    supplemental_ids: Mapped[list[Any]] = mapped_column(JSON, default=list)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<WorkoutScheme week={self.week} day={self.day_of_week} "
            f"category={self.category.value}>"
        )


class SupplementalExercise(Base):
    """Auxiliary exercise rotated weekly alongside the main lifts."""

    __tablename__ = "supplemental_exercises"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), index=True)
    category: Mapped[LiftCategory] = mapped_column(
        _str_enum(LiftCategory, "supplemental_category"), nullable=False, index=True
    )
    body_part: Mapped[BodyPart] = mapped_column(_str_enum(BodyPart, "body_part"))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    steps: Mapped[list[ExerciseStep]] = relationship(
        "ExerciseStep",
        back_populates="exercise",
        cascade="all, delete-orphan",
        order_by="ExerciseStep.position",
    )

    def __repr__(self) -> str:
        return f"<SupplementalExercise id={self.id} name={self.name}>"


class ExerciseStep(Base):
    """One ordered step of a supplemental exercise circuit."""

    __tablename__ = "exercise_steps"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exercise_id: Mapped[int] = mapped_column(
        ForeignKey("supplemental_exercises.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    exercise: Mapped[SupplementalExercise] = relationship(
        "SupplementalExercise", back_populates="steps"
    )


class WorkoutLog(Base):
    """A member's record of sets performed on one of the main lifts."""

    __tablename__ = "workout_logs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    lift: Mapped[Lift] = mapped_column(_str_enum(Lift, "workout_lift"), nullable=False)
    weight: Mapped[float] = mapped_column(Float)
    reps: Mapped[int] = mapped_column(Integer)
    sets: Mapped[int] = mapped_column(Integer, default=1)
    date: Mapped[date_type] = mapped_column(Date, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    user: Mapped[User] = relationship("User")

    def __repr__(self) -> str:
        return (
            f"<WorkoutLog id={self.id} user_id={self.user_id} lift={self.lift.value} "
            f"{self.sets}x{self.reps}@{self.weight}>"
        )
