"""
User management endpoints.

Admins create staff/admin accounts, reset passwords and remove accounts.
Any admin may change their own password through /change-password.
"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from school_backend.app.core.audit_middleware import audit_action
from school_backend.app.core.context import RequestContext
from school_backend.app.core.dependencies import get_request_context
from school_backend.app.core.exceptions import (
    ConflictError, InvalidCredentialsError, ResourceNotFoundError, ValidationError
)
from school_backend.app.core.guards import require_admin
from school_backend.app.core.security import get_password_hash, verify_password
from school_backend.app.db.session import get_db
from school_backend.app.models.user import User
from school_backend.app.schemas.users import (
    MessageResponse, PasswordChange, PasswordReset, UserCreate, UserCreatedResponse, UserListItem
)
from school_backend.app.services.audit import AuditAction

router = APIRouter(prefix="/users", tags=["Users"])


async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user


@router.get(
    "",
    response_model=List[UserListItem],
    dependencies=[Depends(audit_action(AuditAction.VIEW_USERS))]
)
async def list_users(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List all accounts, newest first. Password hashes are never returned."""
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return [UserListItem.model_validate(user) for user in result.scalars().all()]


@router.post(
    "",
    response_model=UserCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audit_action(AuditAction.CREATE_USER))]
)
async def create_user(
    payload: UserCreate,
    context: RequestContext = Depends(get_request_context),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a staff or admin account.

    Raises:
        ConflictError 409 if the username is taken
    """
    context.audit_details.update({"new_username": payload.username, "role": payload.role.value})

    existing = await db.execute(select(User.id).where(User.username == payload.username))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Username already exists")

    user = User(
        username=payload.username,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create of the same username
        await db.rollback()
        raise ConflictError("Username already exists")
    await db.refresh(user)

    return UserCreatedResponse(message="User created successfully", user=UserListItem.model_validate(user))


@router.put(
    "/change-password",
    response_model=MessageResponse,
    dependencies=[Depends(audit_action(AuditAction.CHANGE_OWN_PASSWORD))]
)
async def change_own_password(
    payload: PasswordChange,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Change the caller's own password.

    Raises:
        InvalidCredentialsError 401 if the current password is wrong
    """
    user = await _get_user(db, admin["id"])

    if not verify_password(payload.current_password, user.password_hash):
        raise InvalidCredentialsError("Current password is incorrect")

    user.password_hash = get_password_hash(payload.new_password)
    await db.commit()

    return MessageResponse(message="Password changed successfully")


@router.put(
    "/{user_id}/password",
    response_model=MessageResponse,
    dependencies=[Depends(audit_action(AuditAction.CHANGE_PASSWORD))]
)
async def reset_password(
    user_id: int,
    payload: PasswordReset,
    context: RequestContext = Depends(get_request_context),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Set another user's password."""
    context.audit_details["target_user_id"] = user_id

    if user_id == admin["id"]:
        raise ValidationError("Use /change-password to change your own password")

    user = await _get_user(db, user_id)
    user.password_hash = get_password_hash(payload.password)
    await db.commit()

    return MessageResponse(message="Password updated successfully", id=user_id)


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    dependencies=[Depends(audit_action(AuditAction.DELETE_USER))]
)
async def delete_user(
    user_id: int,
    context: RequestContext = Depends(get_request_context),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    context.audit_details["target_user_id"] = user_id

    if user_id == admin["id"]:
        raise ValidationError("Cannot delete your own account")

    user = await _get_user(db, user_id)
    await db.delete(user)
    await db.commit()

    return MessageResponse(message="User deleted successfully", id=user_id)
