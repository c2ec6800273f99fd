"""
Authentication API endpoints.

Provides login and current-user endpoints for staff and admins.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from school_backend.app.core.audit_middleware import audit_action
from school_backend.app.core.context import RequestContext
from school_backend.app.core.dependencies import get_audit_writer, get_current_user, get_request_context
from school_backend.app.core.exceptions import ValidationError
from school_backend.app.db.session import get_db
from school_backend.app.schemas.auth import MeResponse, TokenResponse, UserInfo, UserLogin
from school_backend.app.services.audit import AuditAction, AuditTrail
from school_backend.app.services.auth import authenticate, track_failed_login

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/login",
    response_model=TokenResponse,
    dependencies=[Depends(audit_action(AuditAction.LOGIN_ATTEMPT))]
)
async def login(
    credentials: UserLogin,
    context: RequestContext = Depends(get_request_context),
    audit_trail: AuditTrail = Depends(get_audit_writer),
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Unknown usernames and wrong passwords both answer 401 "Invalid credentials"
    and both count as failed attempts for the security-alert heuristic.
    """
    context.audit_details["attempted_username"] = credentials.username

    if not credentials.username or not credentials.password:
        await track_failed_login(db, credentials.username or "unknown", context.ip)
        raise ValidationError("Username and password required")

    token, user = await authenticate(
        db, audit_trail, credentials.username, credentials.password, context
    )

    return TokenResponse(token=token, user=UserInfo.model_validate(user))


@router.get("/me", response_model=MeResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """
    Get current authenticated user information.

    Requires valid JWT token in Authorization header.
    """
    return MeResponse(user=UserInfo(
        id=current_user["id"],
        username=current_user["username"],
        role=current_user["role"],
    ))
