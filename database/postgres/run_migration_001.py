"""
Execute Migration 001 - Create collaboration_sessions Table
"""
import asyncio

import asyncpg

from src.database.session_store import SCHEMA_DDL
from src.infrastructure.config.config_loader import get_settings_from_working_directory


async def run_migration():
    """Create the collaboration_sessions table and its indexes"""
    settings = get_settings_from_working_directory().database

    conn = await asyncpg.connect(settings.dsn)

    try:
        print(f"Connected to PostgreSQL at {settings.host}:{settings.port}/{settings.database}")

        print("Creating collaboration_sessions table and indexes...")
        await conn.execute(SCHEMA_DDL)
        print("[OK] Schema applied")

        row = await conn.fetchrow("""
            SELECT COUNT(*) AS total, COUNT(*) FILTER (WHERE is_active) AS active
            FROM collaboration_sessions
        """)
        print(f"[OK] collaboration_sessions rows: {row['total']} total, {row['active']} active")

    finally:
        await conn.close()
        print("\nConnection closed")


if __name__ == "__main__":
    asyncio.run(run_migration())
