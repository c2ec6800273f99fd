"""
Security guards for role-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List
from fastapi import Depends
from school_backend.app.core.dependencies import get_current_user
from school_backend.app.core.exceptions import ForbiddenError
from school_backend.app.models.enums import UserRole


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/students")
        async def list_students(current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.STAFF]))):
            ...

    Raises:
        ForbiddenError 403 if the token role is not in allowed_roles
    """
    allowed = {role.value for role in allowed_roles}

    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("role") not in allowed:
            raise ForbiddenError(
                f"Access denied. Required role: {', '.join(sorted(allowed))}"
            )
        return current_user

    return role_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency for admin-only endpoints.

    Usage:
        @router.delete("/users/{user_id}")
        async def delete_user(user_id: int, admin: dict = Depends(require_admin)):
            ...
    """
    if current_user.get("role") != UserRole.ADMIN.value:
        raise ForbiddenError("Admin access required")

    return current_user


require_staff = require_role([UserRole.ADMIN, UserRole.STAFF])
