import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import date

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker

from gym_scheduler.db import repo
from gym_scheduler.db.models import Base, LiftCategory, Role, User

MONDAY = date(2025, 1, 6)  # program week 1
FRIDAY = date(2025, 1, 10)  # dual-category day


@pytest_asyncio.fixture
async def sessions(tmp_path):
    """Sessionmaker over a fresh file-backed SQLite database."""
    engine = repo.make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def users(sessions):
    """Three members, a coach and an admin keyed by short name."""
    people = {
        "alice": User(
            email="alice@example.com",
            first_name="Alice",
            last_name="Anders",
            max_bench=200,
            max_ohp=100,
            max_squat=300,
            max_deadlift=400,
        ),
        "bob": User(email="bob@example.com", first_name="Bob", last_name="Brown"),
        "carol": User(
            email="carol@example.com", first_name="Carol", last_name="Cole", max_bench=150
        ),
        "coach": User(
            email="coach@example.com", first_name="Cody", last_name="Coach", role=Role.COACH
        ),
        "admin": User(
            email="admin@example.com", first_name="Ada", last_name="Admin", role=Role.ADMIN
        ),
    }
    async with sessions.begin() as s:
        s.add_all(people.values())
    return people


async def make_slot(sessions, on_date=MONDAY, time="17:00", category="UPPER", capacity=8):
    return await repo.create_slot(sessions, on_date, time, category, capacity=capacity)


async def make_scheme(sessions, week, day, category, percentages=(95, 100, 105)):
    return await repo.upsert_scheme(
        sessions,
        week=week,
        day_of_week=day,
        category=LiftCategory(category),
        sets=[1] * len(percentages),
        reps=[1] * len(percentages),
        percentages=list(percentages),
        rest_time=60,
        supplemental_ids=[],
    )
