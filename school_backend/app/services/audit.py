"""
Audit logging service for tracking security events and admin actions.

Writes are fire-and-forget: entries are scheduled on the event loop after the
response has gone out, and a failing write is logged and dropped. Reads take
the caller's session like every other query in the app.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Set
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, desc, func
from school_backend.app.core.context import RequestContext
from school_backend.app.db.session import utcnow
from school_backend.app.models.audit_log import AuditLog
from school_backend.app.models.failed_login import FailedLogin

logger = logging.getLogger("school_registry.audit")


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"

    # Admin dashboard
    VIEW_STATS = "VIEW_STATS"
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"
    VIEW_SECURITY_ALERTS = "VIEW_SECURITY_ALERTS"
    VIEW_RECENT_ACTIVITY = "VIEW_RECENT_ACTIVITY"
    EXPORT_EXCEL = "EXPORT_EXCEL"
    EXPORT_PDF = "EXPORT_PDF"

    # User management
    VIEW_USERS = "VIEW_USERS"
    CREATE_USER = "CREATE_USER"
    CHANGE_PASSWORD = "CHANGE_PASSWORD"
    CHANGE_OWN_PASSWORD = "CHANGE_OWN_PASSWORD"
    DELETE_USER = "DELETE_USER"

    # Student records
    REGISTER_STUDENT = "REGISTER_STUDENT"
    UPDATE_STUDENT = "UPDATE_STUDENT"
    DELETE_STUDENT = "DELETE_STUDENT"


def build_entry(
    context: RequestContext,
    action: str,
    status_code: Optional[int],
    details: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Turn a finished request's context into an audit row."""
    return AuditLog(
        action=action,
        user_id=context.user_id,
        username=context.username,
        ip_address=context.ip,
        user_agent=context.user_agent[:255],
        method=context.method,
        path=context.path[:255],
        status_code=status_code,
        details=details or {},
        timestamp=utcnow(),
    )


class AuditTrail:
    """
    Append-only writer for audit entries.

    Each write opens its own session, so it never shares a transaction with
    the request that produced it.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._pending: Set[asyncio.Task] = set()

    async def record(self, entry: AuditLog) -> Optional[AuditLog]:
        """Persist one entry. Returns None (and logs) on failure; never raises."""
        try:
            async with self.session_factory() as db:
                db.add(entry)
                await db.commit()
            return entry
        except Exception:
            logger.exception(
                "Audit log write failed", extra={"action": entry.action, "path": entry.path}
            )
            return None

    def submit(self, entry: AuditLog) -> asyncio.Task:
        """Schedule a write without waiting for it."""
        task = asyncio.get_running_loop().create_task(self.record(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled write (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


async def get_audit_trail(
    db: AsyncSession,
    limit: int = 100,
    offset: int = 0,
    action: Optional[str] = None,
    user_id: Optional[int] = None
) -> List[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        limit: Maximum number of records to return
        offset: Number of records to skip
        action: Filter by action type
        user_id: Filter by acting user

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if action:
        query = query.where(AuditLog.action == action)

    if user_id is not None:
        query = query.where(AuditLog.user_id == user_id)

    query = query.limit(limit).offset(offset)

    result = await db.execute(query)
    return result.scalars().all()


async def get_recent_activity(db: AsyncSession, limit: int = 50) -> List[AuditLog]:
    return await get_audit_trail(db, limit=limit)


async def get_security_alerts(
    db: AsyncSession,
    hours: int = 24,
    min_attempts: int = 3
) -> List[Dict[str, Any]]:
    """
    Failed logins in the trailing window, grouped by (username, ip).

    Only pairs with at least ``min_attempts`` attempts are returned, busiest first.
    """
    cutoff = utcnow() - timedelta(hours=hours)
    attempts = func.count(FailedLogin.id).label("attempts")
    query = (
        select(
            FailedLogin.username,
            FailedLogin.ip_address,
            attempts,
            func.max(FailedLogin.attempt_time).label("last_attempt"),
        )
        .where(FailedLogin.attempt_time > cutoff)
        .group_by(FailedLogin.username, FailedLogin.ip_address)
        .having(func.count(FailedLogin.id) >= min_attempts)
        .order_by(desc(attempts))
    )
    result = await db.execute(query)
    return [dict(row._mapping) for row in result.all()]
