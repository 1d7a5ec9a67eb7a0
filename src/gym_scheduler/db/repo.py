"""
Async SQLAlchemy repository for gym scheduler database operations.

Components never reach for a global session: they are handed an
``async_sessionmaker`` and open one transaction per unit of work.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import date
from functools import wraps
from typing import Any, TypeVar

from sqlalchemy import event, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import selectinload

from ..config import SETTINGS
from ..errors import Conflict, NotFound, SchedulerError, TransientStoreFailure, ValidationError
from .models import (
    Base,
    DefaultSchedule,
    Lift,
    LiftCategory,
    ScheduleSlot,
    User,
    WorkoutLog,
    WorkoutScheme,
)

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session: async_sessionmaker[AsyncSession] | None = None

# Type variable for the retry decorator
F = TypeVar("F", bound=Callable[..., Any])

_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def retry_on_connection_error(max_retries: int = 3, delay: float = 0.1):
    """
    Decorator to retry read-only database operations on connection errors.
    Never wrap a mutation with it: retry policy for writes belongs to the caller.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception: Exception | None = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except SchedulerError:
                    raise
                except Exception as e:
                    # Check if it's a connection-related error
                    if any(
                        keyword in str(e).lower()
                        for keyword in [
                            "connection",
                            "server closed",
                            "connection closed",
                            "operationalerror",
                            "timeout",
                        ]
                    ):
                        last_exception = e
                        if attempt < max_retries - 1:
                            # Exponential backoff
                            wait_time = delay * (2**attempt)
                            logger.warning(
                                "Database connection error on attempt %d/%d, retrying in %.2fs: %s",
                                attempt + 1,
                                max_retries,
                                wait_time,
                                e,
                            )
                            await asyncio.sleep(wait_time)
                            continue
                    raise
            if last_exception:
                raise last_exception
            raise RuntimeError("Retry mechanism failed unexpectedly")

        return wrapper  # type: ignore

    return decorator


def _prepare_url(url: str) -> tuple[str, dict]:
    """Return sanitized DB URL and connect args.

    Extracts common SSL query parameters and passes them as ``connect_args``
    for the driver. ``ssl=false`` becomes ``sslmode=disable``.
    """

    url_obj = make_url(url)
    query = dict(url_obj.query)
    connect_args: dict[str, object] = {}

    # SSL normalization
    sslmode = query.pop("sslmode", None)
    ssl_val = query.pop("ssl", None)
    if ssl_val is not None:
        sslmode = "disable" if str(ssl_val).lower() in {"0", "false", "off", "no"} else "require"
    driver = url_obj.drivername or ""
    if sslmode:
        # asyncpg takes the libpq mode names through its ``ssl`` argument
        connect_args["ssl" if driver.startswith("postgresql+asyncpg") else "sslmode"] = sslmode

    # PgBouncer-friendly settings by driver
    if driver.startswith("postgresql+psycopg"):
        connect_args.setdefault("prepare_threshold", 0)  # psycopg3
    elif driver.startswith("postgresql+asyncpg"):
        connect_args.setdefault("statement_cache_size", 0)  # asyncpg

    url_obj = url_obj.set(query=query)
    return url_obj.render_as_string(hide_password=False), connect_args


def _configure_sqlite(engine: AsyncEngine) -> None:
    """Enforce foreign keys and make every transaction take the write lock up front.

    SQLite has no row locks, so ``BEGIN IMMEDIATE`` is what serializes two
    concurrent bookers on the same slot.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):  # pragma: no cover - driver hook
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: str) -> AsyncEngine:
    """Create an async engine for ``url`` with driver-appropriate settings."""
    db_url, connect_args = _prepare_url(url)
    if make_url(db_url).drivername.startswith("sqlite"):
        engine = create_async_engine(db_url, echo=False, connect_args=connect_args)
        _configure_sqlite(engine)
        return engine
    return create_async_engine(
        db_url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=3600,  # Recycle connections every hour
        pool_timeout=30,  # Wait up to 30 seconds for available connection
        max_overflow=10,  # Allow up to 10 additional connections beyond pool_size
        pool_size=20,  # Maintain up to 20 connections in the pool
        connect_args=connect_args,
    )


async def init_db() -> None:
    """
    Initialize the async database engine and sessionmaker, and create tables if needed.
    """
    global _engine, _session
    if _engine:
        return
    if not SETTINGS.DATABASE_URL:
        logger.error("DATABASE_URL is required for DB initialization.")
        raise RuntimeError("DATABASE_URL is required")
    _engine = make_engine(SETTINGS.DATABASE_URL)
    _session = async_sessionmaker(_engine, expire_on_commit=False)
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session() -> async_sessionmaker[AsyncSession]:
    """
    Get the async sessionmaker. Raises if DB is not initialized.
    """
    if not _session:
        raise RuntimeError("DB not initialized; call init_db() first")
    return _session


async def close_db() -> None:
    """Dispose of the database engine and reset session state."""

    global _engine, _session
    if _engine:
        await _engine.dispose()
    _engine = None
    _session = None


@asynccontextmanager
async def transaction(
    sessions: async_sessionmaker[AsyncSession], operation: str
) -> AsyncIterator[AsyncSession]:
    """
    Run the body as one transaction. Commits on success, rolls back on any error.

    Store failures are logged and surfaced as ``TransientStoreFailure`` so no
    driver details reach the caller.
    """
    try:
        async with sessions.begin() as s:
            yield s
    except SchedulerError:
        raise
    except SQLAlchemyError as e:
        logger.exception("Store failure during %s: %s", operation, e)
        raise TransientStoreFailure() from e


def normalize_time_label(value: str) -> str:
    """Validate an ``H:MM``/``HH:MM`` label and return it zero-padded."""
    m = _TIME_RE.match((value or "").strip())
    if not m:
        raise ValidationError("Time must be in HH:MM format")
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def parse_category(value: str | LiftCategory | None) -> LiftCategory:
    if isinstance(value, LiftCategory):
        return value
    try:
        return LiftCategory((value or "").strip().upper())
    except ValueError as e:
        raise ValidationError("invalid category") from e


# ---- Users ------------------------------------------------------------------


async def get_user(sessions: async_sessionmaker[AsyncSession], user_id: int) -> User | None:
    async with sessions() as s:
        return await s.get(User, user_id)


async def update_max_lifts(
    sessions: async_sessionmaker[AsyncSession], user_id: int, **maxes: float | None
) -> User:
    """
    Update the given max-lift fields. ``None`` values are left untouched.
    """
    allowed = {"max_bench", "max_ohp", "max_squat", "max_deadlift"}
    unknown = set(maxes) - allowed
    if unknown:
        raise ValidationError(f"Unknown lift fields: {', '.join(sorted(unknown))}")
    for name, value in maxes.items():
        if value is not None and (not math.isfinite(value) or value <= 0):
            raise ValidationError(f"{name} must be a positive number")

    async with transaction(sessions, "update_max_lifts") as s:
        user = await s.get(User, user_id)
        if user is None:
            raise NotFound("user")
        for name, value in maxes.items():
            if value is not None:
                setattr(user, name, value)
    logger.info("Updated max lifts for user %s", user_id)
    return user


# ---- Schedule slots ---------------------------------------------------------


@retry_on_connection_error(max_retries=3, delay=0.1)
async def list_slots(
    sessions: async_sessionmaker[AsyncSession], on_date: date | None = None
) -> list[ScheduleSlot]:
    """List slots ordered by date and time, optionally for a single day."""
    async with sessions() as s:
        stmt = (
            select(ScheduleSlot)
            .options(selectinload(ScheduleSlot.coach), selectinload(ScheduleSlot.bookings))
            .order_by(ScheduleSlot.date, ScheduleSlot.time)
        )
        if on_date is not None:
            stmt = stmt.where(ScheduleSlot.date == on_date)
        res = await s.execute(stmt)
        return list(res.scalars().all())


async def create_slot(
    sessions: async_sessionmaker[AsyncSession],
    on_date: date,
    time: str,
    category: str | LiftCategory,
    capacity: int | None = None,
    coach_id: int | None = None,
) -> ScheduleSlot:
    """
    Create a new slot. Raises ``Conflict`` when the date/time is already taken.
    """
    label = normalize_time_label(time)
    cat = parse_category(category)
    cap = SETTINGS.DEFAULT_CAPACITY if capacity is None else capacity
    if cap < 1:
        raise ValidationError("capacity must be a positive integer")

    async with transaction(sessions, "create_slot") as s:
        res = await s.execute(
            select(ScheduleSlot.id).where(ScheduleSlot.date == on_date, ScheduleSlot.time == label)
        )
        if res.first() is not None:
            raise Conflict("A schedule already exists for this date and time")
        slot = ScheduleSlot(
            date=on_date,
            time=label,
            category=cat,
            capacity=cap,
            booked_count=0,
            coach_id=coach_id,
        )
        s.add(slot)
        try:
            await s.flush()
        except IntegrityError as e:
            raise Conflict("A schedule already exists for this date and time") from e
    logger.info(
        "Created slot %s on %s at %s (%s, capacity %d)", slot.id, on_date, label, cat.value, cap
    )
    return slot


# ---- Default schedules ------------------------------------------------------


async def list_default_schedules(
    sessions: async_sessionmaker[AsyncSession],
) -> list[DefaultSchedule]:
    async with sessions() as s:
        res = await s.execute(
            select(DefaultSchedule)
            .options(selectinload(DefaultSchedule.coach))
            .where(DefaultSchedule.is_active.is_(True))
            .order_by(DefaultSchedule.day_of_week, DefaultSchedule.time)
        )
        return list(res.scalars().all())


async def upsert_default_schedule(
    sessions: async_sessionmaker[AsyncSession],
    *,
    day_of_week: int,
    time: str,
    category: str | LiftCategory,
    coach_id: int | None,
    capacity: int | None = None,
    is_active: bool = True,
    template_id: int | None = None,
) -> DefaultSchedule:
    """Create a template, or update it in place when ``template_id`` is given."""
    if day_of_week < 1 or day_of_week > 7:
        raise ValidationError("Day of week must be between 1 (Monday) and 7 (Sunday)")
    label = normalize_time_label(time)
    cat = parse_category(category)
    cap = SETTINGS.DEFAULT_CAPACITY if capacity is None else capacity
    if cap < 1:
        raise ValidationError("capacity must be a positive integer")

    async with transaction(sessions, "upsert_default_schedule") as s:
        tpl = await s.get(DefaultSchedule, template_id) if template_id is not None else None
        if template_id is not None and tpl is None:
            raise NotFound("default schedule")
        if tpl is None:
            tpl = DefaultSchedule()
            s.add(tpl)
        tpl.day_of_week = day_of_week
        tpl.time = label
        tpl.category = cat
        tpl.capacity = cap
        tpl.coach_id = coach_id
        tpl.is_active = is_active
        await s.flush()
    return tpl


async def delete_default_schedule(sessions: async_sessionmaker[AsyncSession], template_id: int):
    async with transaction(sessions, "delete_default_schedule") as s:
        tpl = await s.get(DefaultSchedule, template_id)
        if tpl is None:
            raise NotFound("default schedule")
        await s.delete(tpl)


async def create_slot_from_default(
    sessions: async_sessionmaker[AsyncSession], template_id: int, on_date: date
) -> ScheduleSlot:
    """
    Materialize a template on a concrete date whose weekday must match it.
    """
    async with sessions() as s:
        tpl = await s.get(DefaultSchedule, template_id)
    if tpl is None:
        raise NotFound("default schedule")
    if on_date.isoweekday() != tpl.day_of_week:
        raise ValidationError(
            "Selected date does not match the day of week for this default schedule"
        )
    return await create_slot(
        sessions,
        on_date,
        tpl.time,
        tpl.category,
        capacity=tpl.capacity,
        coach_id=tpl.coach_id,
    )


# ---- Workout schemes --------------------------------------------------------


async def upsert_scheme(
    sessions: async_sessionmaker[AsyncSession],
    *,
    week: int,
    day_of_week: int,
    category: LiftCategory,
    sets: list[int],
    reps: list[int],
    percentages: list[float],
    rest_time: int,
    supplemental_ids: list[int],
) -> WorkoutScheme:
    """Insert or replace the scheme for (week, day_of_week, category)."""
    async with transaction(sessions, "upsert_scheme") as s:
        res = await s.execute(
            select(WorkoutScheme).where(
                WorkoutScheme.week == week,
                WorkoutScheme.day_of_week == day_of_week,
                WorkoutScheme.category == category,
            )
        )
        row = res.scalar_one_or_none()
        if row is None:
            row = WorkoutScheme(week=week, day_of_week=day_of_week, category=category)
            s.add(row)
        row.sets = list(sets)
        row.reps = list(reps)
        row.percentages = list(percentages)
        row.rest_time = rest_time
        row.supplemental_ids = list(supplemental_ids)
        await s.flush()
    logger.info("Stored scheme week=%s day=%s category=%s", week, day_of_week, category.value)
    return row


# ---- Workout logs -----------------------------------------------------------


async def log_workout(
    sessions: async_sessionmaker[AsyncSession],
    user_id: int,
    *,
    lift: Lift | str,
    weight: float,
    reps: int,
    sets: int = 1,
    on_date: date | None = None,
    notes: str | None = None,
) -> WorkoutLog:
    """Record a member's sets on one of the main lifts."""
    try:
        lift = Lift((lift or "").strip().upper())
    except ValueError as e:
        raise ValidationError("invalid lift") from e
    if not math.isfinite(weight) or weight <= 0:
        raise ValidationError("weight must be a positive number")
    if reps < 1 or sets < 1:
        raise ValidationError("reps and sets must be at least 1")

    async with transaction(sessions, "log_workout") as s:
        if await s.get(User, user_id) is None:
            raise NotFound("user")
        row = WorkoutLog(
            user_id=user_id,
            lift=lift,
            weight=weight,
            reps=reps,
            sets=sets,
            date=on_date or date.today(),
            notes=(notes or "").strip() or None,
        )
        s.add(row)
        await s.flush()
    logger.info("Logged %s %dx%d@%s for user %s", lift.value, sets, reps, weight, user_id)
    return row


@retry_on_connection_error(max_retries=3, delay=0.1)
async def list_workouts(
    sessions: async_sessionmaker[AsyncSession], user_id: int, lift: Lift | None = None
) -> list[WorkoutLog]:
    """A member's workout logs, newest first, optionally for a single lift."""
    async with sessions() as s:
        stmt = (
            select(WorkoutLog)
            .where(WorkoutLog.user_id == user_id)
            .order_by(WorkoutLog.date.desc(), WorkoutLog.id.desc())
        )
        if lift is not None:
            stmt = stmt.where(WorkoutLog.lift == lift)
        res = await s.execute(stmt)
        return list(res.scalars().all())
