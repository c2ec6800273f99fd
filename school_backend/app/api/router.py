"""
API Router.

Aggregates all API endpoints under the configured prefix (``/api``).
"""

from fastapi import APIRouter
from school_backend.app.api.endpoints import admin, auth, students, users

router = APIRouter()

router.include_router(auth.router)
router.include_router(students.router)
router.include_router(admin.router)
router.include_router(users.router)
