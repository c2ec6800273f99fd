"""
Database seeding script.

Creates the tables and the default admin account without starting the API.
Useful before the first deploy against a fresh PostgreSQL database.
The server does the same on startup, so running this twice is harmless.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from school_backend.app.core.config import settings
from school_backend.app.db.bootstrap import create_tables, seed_default_admin
from school_backend.app.db.session import AsyncSessionLocal, engine


async def seed_users():
    print("🌱 Creating tables...")
    await create_tables(engine)

    async with AsyncSessionLocal() as db:
        created = await seed_default_admin(db)

    if created:
        print(f"✅ Created ADMIN user (username: {settings.default_admin_username})")
        print("⚠️  Change the default password after first login")
    else:
        print("ℹ️  ADMIN user already exists, skipping seeding")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_users())
