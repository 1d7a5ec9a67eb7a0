#!/usr/bin/env python3
"""
Reset database script for local development.
This script will drop all tables and recreate them with the current schema.
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the src directory to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Set default environment variables for local development
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./local_dev.db")

from sqlalchemy import inspect

from gym_scheduler.db import repo
from gym_scheduler.db.models import Base


async def reset_database():
    """Reset the database by dropping all tables and recreating them."""
    print("🔄 Resetting database...")

    engine = repo.make_engine(os.environ["DATABASE_URL"])

    async with engine.begin() as conn:
        print("🗑️  Dropping all tables...")
        await conn.run_sync(Base.metadata.drop_all)

        print("🏗️  Creating tables from models...")
        await conn.run_sync(Base.metadata.create_all)

        print("✅ Database reset complete!")
        print("📊 Tables created:")

        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        for table in tables:
            print(f"   - {table}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(reset_database())
