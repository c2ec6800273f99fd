"""
Authentication service.

Credential checks, token issuance and the failed-login detection heuristic.
The heuristic only raises a security alert in the log; it never blocks a login.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from school_backend.app.core.config import settings
from school_backend.app.core.context import RequestContext
from school_backend.app.core.exceptions import InvalidCredentialsError
from school_backend.app.core.jwt import create_access_token, decode_access_token
from school_backend.app.core.security import DUMMY_PASSWORD_HASH, verify_password
from school_backend.app.db.session import utcnow
from school_backend.app.models.failed_login import FailedLogin
from school_backend.app.models.user import User
from school_backend.app.services.audit import AuditAction, AuditTrail, build_entry

security_logger = logging.getLogger("school_registry.security")


async def track_failed_login(db: AsyncSession, username: str, ip: str) -> bool:
    """
    Record a failed attempt and check for a brute-force pattern.

    Counts attempts for the username OR the IP inside the trailing window.
    The alert fires when the count reaches the threshold, so a run of
    failures produces one alert rather than one per attempt.

    Returns:
        True if this attempt crossed the threshold and an alert was emitted
    """
    db.add(FailedLogin(username=username, ip_address=ip))
    await db.commit()

    cutoff = utcnow() - timedelta(minutes=settings.failed_login_window_minutes)
    result = await db.execute(
        select(func.count(FailedLogin.id)).where(
            or_(FailedLogin.username == username, FailedLogin.ip_address == ip),
            FailedLogin.attempt_time > cutoff,
        )
    )
    count = result.scalar_one()

    if count == settings.failed_login_threshold:
        security_logger.warning(
            "Security alert: %s failed login attempts from %s for user %s",
            count, ip, username,
            extra={"username": username, "ip": ip, "attempts": count},
        )
        return True
    return False


def issue_token(user: User) -> str:
    return create_access_token(
        data={
            "sub": user.username,
            "id": user.id,
            "username": user.username,
            "role": user.role.value,
        },
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )


async def authenticate(
    db: AsyncSession,
    audit_trail: AuditTrail,
    username: str,
    password: str,
    context: RequestContext
) -> Tuple[str, User]:
    """
    Verify a username/password pair and issue a bearer token.

    An unknown username and a wrong password fail identically, and both cost
    one bcrypt comparison.

    Raises:
        InvalidCredentialsError: 401 for either failure
    """
    result = await db.execute(select(User).where(User.username == username))
    user: Optional[User] = result.scalar_one_or_none()

    password_ok = verify_password(password, user.password_hash if user else DUMMY_PASSWORD_HASH)

    if user is None or not password_ok:
        await track_failed_login(db, username, context.ip)
        raise InvalidCredentialsError()

    token = issue_token(user)

    context.user = {"id": user.id, "username": user.username, "role": user.role.value}
    audit_trail.submit(build_entry(context, AuditAction.LOGIN_SUCCESS, 200))

    return token, user


def verify_token(token: str) -> Dict[str, Any]:
    """Claims of a valid token; raises TokenExpiredError or TokenInvalidError."""
    return decode_access_token(token)
