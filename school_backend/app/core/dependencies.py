"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication
and for reaching the per-request context and app-level services.
"""

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from school_backend.app.core.context import RequestContext
from school_backend.app.core.exceptions import TokenInvalidError
from school_backend.app.core.jwt import decode_access_token
from school_backend.app.db.session import get_db
from school_backend.app.models.user import User

# HTTP Bearer security scheme. Missing headers are reported as 401 below.
security = HTTPBearer(auto_error=False)


def get_request_context(request: Request) -> RequestContext:
    """Context created by the audit middleware; built on the spot if the middleware is absent."""
    context = getattr(request.state, "context", None)
    if context is None:
        context = RequestContext.from_scope(request.scope)
        request.state.context = context
    return context


def get_audit_writer(request: Request):
    return request.app.state.audit_trail


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Verifies the user still exists (deleted accounts lose access at once)
    3. Attaches the claims to the request context

    Returns:
        Decoded token payload containing id, username and role

    Raises:
        TokenInvalidError / TokenExpiredError: 401 if authentication fails
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise TokenInvalidError("Not authenticated")

    payload = decode_access_token(credentials.credentials)

    result = await db.execute(select(User.id).where(User.id == payload["id"]))
    if result.scalar_one_or_none() is None:
        raise TokenInvalidError("User not found")

    context.user = payload
    return payload
