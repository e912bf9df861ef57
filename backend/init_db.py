"""Initialize database schema."""

import asyncio
import sys

from audit_service.config import settings
from audit_service.database import create_engine, init_db


async def main() -> None:
    """Create the audit_logs table and indexes."""
    print("Initializing database schema...")
    engine = create_engine(settings)
    try:
        await init_db(engine)
        print("Database schema initialized successfully!")
    except Exception as e:
        print(f"Failed to initialize database: {e}")
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
