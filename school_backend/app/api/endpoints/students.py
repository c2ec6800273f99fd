"""
Student registration endpoints.

Registration is public (the parent-facing form). Reading records needs a
staff or admin token; editing and soft-deleting need an admin.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile
from school_backend.app.core.audit_middleware import audit_action
from school_backend.app.core.context import RequestContext
from school_backend.app.core.dependencies import get_request_context
from school_backend.app.core.exceptions import ValidationError
from school_backend.app.core.guards import require_admin, require_staff
from school_backend.app.db.session import get_db
from school_backend.app.schemas.student import (
    StudentRegistered, StudentRegistration, StudentResponse, StudentUpdate, field_errors
)
from school_backend.app.schemas.users import MessageResponse
from school_backend.app.services import students as student_service
from school_backend.app.services.audit import AuditAction

router = APIRouter(prefix="/students", tags=["Students"])


def _upload(value) -> Optional[UploadFile]:
    return value if isinstance(value, UploadFile) else None


@router.post(
    "/register",
    response_model=StudentRegistered,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audit_action(AuditAction.REGISTER_STUDENT))]
)
async def register_student(
    request: Request,
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit a registration form (multipart).

    Text fields use the form's camelCase names; ``photo`` and
    ``birthCertificate`` are optional file parts.
    """
    form = await request.form()
    fields = {key: value for key, value in form.items() if isinstance(value, str)}

    try:
        registration = StudentRegistration.model_validate(fields)
    except PydanticValidationError as exc:
        raise ValidationError("Validation failed", details={"errors": field_errors(exc.errors())})

    student = await student_service.register_student(
        db,
        registration,
        photo=_upload(form.get("photo")),
        birth_certificate=_upload(form.get("birthCertificate")),
        created_by=context.user_id,
    )
    context.audit_details["student_id"] = student.id

    return StudentRegistered(message="Student registered successfully", student_id=student.id)


@router.get("", response_model=List[StudentResponse])
@router.get("/", response_model=List[StudentResponse], include_in_schema=False)
async def list_students(
    class_filter: Optional[str] = Query(None, alias="class"),
    gender: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """List non-deleted records, newest first, with derived file URLs."""
    return await student_service.list_students(db, class_filter, gender, search)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: int,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Single record; 404 when unknown or soft-deleted."""
    return await student_service.get_student(db, student_id)


@router.put(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(audit_action(AuditAction.UPDATE_STUDENT))]
)
async def update_student(
    student_id: int,
    changes: StudentUpdate,
    context: RequestContext = Depends(get_request_context),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    context.audit_details["student_id"] = student_id
    return await student_service.update_student(db, student_id, changes)


@router.delete(
    "/{student_id}",
    response_model=MessageResponse,
    dependencies=[Depends(audit_action(AuditAction.DELETE_STUDENT))]
)
async def delete_student(
    student_id: int,
    context: RequestContext = Depends(get_request_context),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete: the row is kept and hidden from every default query."""
    context.audit_details["student_id"] = student_id
    await student_service.soft_delete_student(db, student_id)
    return MessageResponse(message="Student deleted successfully", id=student_id)
