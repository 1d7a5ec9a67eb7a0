#!/usr/bin/env python3
"""
Seed a local database with the 8-week program, the supplemental catalog,
default weekly templates and an admin account.
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the src directory to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Set default environment variables for local development
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./local_dev.db")

from sqlalchemy import select

from gym_scheduler.db import repo
from gym_scheduler.db.models import (
    BodyPart,
    ExerciseStep,
    LiftCategory,
    Role,
    SupplementalExercise,
    User,
)

WEEK_SCHEMES = [
    # (week, reps, percentages, rest seconds)
    (1, [1, 1, 1, 1, 1], [95, 100, 105, 105, 105], 60),
    (2, [10, 10, 10, 10, 10], [50, 55, 60, 60, 60], 120),
    (3, [10, 8, 6, 4, 2], [55, 65, 75, 85, 95], 60),
    (4, [10] * 10, [55] * 10, 120),
    (5, [5, 5, 5, 5, 5], [65, 75, 85, 85, 85], 60),
    (6, [20, 20, 20, 20, 20], [45, 45, 45, 45, 45], 120),
    (7, [5, 3, 1, 1, 1], [75, 85, 95, 95, 95], 60),
    (8, [15, 15, 15, 15, 15], [45, 50, 55, 55, 55], 120),
]

# ISO weekday -> categories with a scheme; Friday and Saturday offer both
PROGRAM_DAYS = {
    1: [LiftCategory.UPPER],
    2: [LiftCategory.LOWER],
    3: [LiftCategory.UPPER],
    4: [LiftCategory.LOWER],
    5: [LiftCategory.UPPER, LiftCategory.LOWER],
    6: [LiftCategory.UPPER, LiftCategory.LOWER],
}

SUPPLEMENTALS = [
    ("Curls", LiftCategory.UPPER, BodyPart.BICEPS, []),
    ("Hammer Curls", LiftCategory.UPPER, BodyPart.BICEPS, []),
    ("Skull Crushers", LiftCategory.UPPER, BodyPart.TRICEPS, []),
    ("Tricep Pushdown", LiftCategory.UPPER, BodyPart.TRICEPS, []),
    ("Lat Pulldown", LiftCategory.UPPER, BodyPart.BACK, []),
    ("Dumbbell Row", LiftCategory.UPPER, BodyPart.BACK, []),
    ("Lateral Raises", LiftCategory.UPPER, BodyPart.SHOULDERS, []),
    (
        "Leg Circuit Complex",
        LiftCategory.LOWER,
        BodyPart.QUADS,
        ["Squat Jumps", "Walking Lunges", "Wall Sit", "Glute Bridges"],
    ),
    ("Romanian Deadlift", LiftCategory.LOWER, BodyPart.HAMSTRINGS, []),
    ("Hip Thrust", LiftCategory.LOWER, BodyPart.GLUTES, []),
    ("Calf Raises", LiftCategory.LOWER, BodyPart.CALVES, []),
    ("Bulgarian Split Squat", LiftCategory.LOWER, BodyPart.QUADS, []),
    ("Leg Curl", LiftCategory.LOWER, BodyPart.HAMSTRINGS, []),
]

DEFAULT_TEMPLATES = [
    (1, "17:00", LiftCategory.UPPER, 8),
    (2, "17:00", LiftCategory.LOWER, 8),
    (3, "17:00", LiftCategory.UPPER, 8),
    (4, "17:00", LiftCategory.LOWER, 8),
    (5, "17:00", LiftCategory.UPPER, 8),
    (6, "09:00", LiftCategory.UPPER, 10),
    (6, "10:00", LiftCategory.LOWER, 10),
]


async def seed() -> None:
    print("🌱 Seeding program data...")
    await repo.init_db()
    sessions = repo.get_session()

    async with sessions.begin() as s:
        admin = (
            await s.execute(select(User).where(User.email == "admin@example.com"))
        ).scalar_one_or_none()
        if admin is None:
            admin = User(
                email="admin@example.com", first_name="Admin", last_name="User", role=Role.ADMIN
            )
            s.add(admin)

        existing = set((await s.execute(select(SupplementalExercise.name))).scalars().all())
        for name, category, body_part, steps in SUPPLEMENTALS:
            if name in existing:
                continue
            s.add(
                SupplementalExercise(
                    name=name,
                    category=category,
                    body_part=body_part,
                    steps=[ExerciseStep(position=i, name=step) for i, step in enumerate(steps)],
                )
            )
        await s.flush()
        admin_id = admin.id
    print("✅ Admin user and supplemental catalog ready")

    for week, reps, percentages, rest in WEEK_SCHEMES:
        for day, categories in PROGRAM_DAYS.items():
            for category in categories:
                await repo.upsert_scheme(
                    sessions,
                    week=week,
                    day_of_week=day,
                    category=category,
                    sets=[1] * len(reps),
                    reps=reps,
                    percentages=percentages,
                    rest_time=rest,
                    supplemental_ids=[],
                )
    print(f"✅ Stored schemes for {len(WEEK_SCHEMES)} weeks")

    current = {(t.day_of_week, t.time) for t in await repo.list_default_schedules(sessions)}
    for day, time, category, capacity in DEFAULT_TEMPLATES:
        if (day, time) in current:
            continue
        await repo.upsert_default_schedule(
            sessions,
            day_of_week=day,
            time=time,
            category=category,
            coach_id=admin_id,
            capacity=capacity,
        )
    print("✅ Default weekly schedule ready")

    await repo.close_db()


if __name__ == "__main__":
    asyncio.run(seed())
