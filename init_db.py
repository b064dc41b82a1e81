"""Initialize database schema for the job-offer store.

Creates all tables needed by the ingestion pipeline.
Run this before starting the API server.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from be.config import DatabaseSettings
from be.db import create_engine_from_settings
from be.models import Base


async def init_database(config: DatabaseSettings) -> None:
    """Create all database tables that do not exist yet."""
    print(f"Initializing database: {config.url.split('@')[-1]}")
    print("Creating tables...")

    engine = create_engine_from_settings(config)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print("✓ Created all tables")
    finally:
        await engine.dispose()

    print("\n✅ Database initialization complete!")
    print(f"Tables: {', '.join(Base.metadata.tables.keys())}")


async def main():
    """Main entry point."""
    try:
        await init_database(DatabaseSettings())
    except Exception as e:
        print(f"\n❌ Error initializing database: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
