"""
Database bootstrap.

Creates tables and the default admin account. Safe to run on every startup:
the admin is only inserted when the username is free.
"""

import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from school_backend.app.core.config import settings
from school_backend.app.core.security import get_password_hash
from school_backend.app.db.session import Base
from school_backend.app.models.enums import UserRole
from school_backend.app.models.user import User

# Import models to ensure they are registered with Base
from school_backend.app.models import audit_log, failed_login, student  # noqa: F401

logger = logging.getLogger("school_registry")


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_default_admin(db: AsyncSession) -> bool:
    """
    Insert the default admin if missing.

    Returns:
        True if the admin was created, False if it already existed
    """
    result = await db.execute(
        select(User.id).where(User.username == settings.default_admin_username)
    )
    if result.scalar_one_or_none() is not None:
        return False

    db.add(User(
        username=settings.default_admin_username,
        password_hash=get_password_hash(settings.default_admin_password),
        role=UserRole.ADMIN,
    ))
    await db.commit()
    logger.info("Default admin user created (username: %s)", settings.default_admin_username)
    return True
