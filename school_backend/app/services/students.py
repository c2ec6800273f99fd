"""
Student record service.

All default reads exclude soft-deleted rows.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional
from sqlalchemy import select, func, or_, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile
from school_backend.app.core.exceptions import ResourceNotFoundError, ValidationError
from school_backend.app.db.session import utcnow
from school_backend.app.models.student import Student
from school_backend.app.schemas.student import StudentRegistration, StudentUpdate
from school_backend.app.services.uploads import (
    BIRTH_CERTIFICATE_RULE, PHOTO_RULE, discard_upload, read_upload, store_upload
)

logger = logging.getLogger("school_registry")

REQUIRED_COLUMNS = frozenset({
    "first_name", "last_name", "sex", "date_of_birth", "religion", "class_enrolled",
    "parent_name", "parent_phone", "home_address", "state", "lga",
    "has_medical_condition", "has_disability",
})


def default_academic_session(today: Optional[date] = None) -> str:
    year = (today or date.today()).year
    return f"{year}/{year + 1}"


def active_students():
    return select(Student).where(Student.is_deleted.is_(False))


async def register_student(
    db: AsyncSession,
    form: StudentRegistration,
    photo: Optional[UploadFile] = None,
    birth_certificate: Optional[UploadFile] = None,
    created_by: Optional[int] = None
) -> Student:
    """
    Store the uploaded files, then insert the record.

    Both files are validated before either is written. If the insert fails,
    the files written for it are removed again.
    """
    photo_bytes = await read_upload(photo, PHOTO_RULE)
    certificate_bytes = await read_upload(birth_certificate, BIRTH_CERTIFICATE_RULE)

    photo_path = await store_upload(photo, PHOTO_RULE, photo_bytes) if photo_bytes is not None else None
    certificate_path = (
        await store_upload(birth_certificate, BIRTH_CERTIFICATE_RULE, certificate_bytes)
        if certificate_bytes is not None else None
    )

    data = form.model_dump(exclude={"consent_given", "sex", "religion", "academic_session"})
    student = Student(
        **data,
        sex=form.sex.value,
        religion=form.religion.value,
        consent_given=True,
        academic_session=form.academic_session or default_academic_session(),
        photo_path=photo_path,
        birth_certificate_path=certificate_path,
        created_by=created_by,
    )

    try:
        db.add(student)
        await db.commit()
        await db.refresh(student)
    except SQLAlchemyError:
        await db.rollback()
        discard_upload(photo_path)
        discard_upload(certificate_path)
        raise

    logger.info("Student registered", extra={"student_id": student.id})
    return student


async def list_students(
    db: AsyncSession,
    class_filter: Optional[str] = None,
    gender: Optional[str] = None,
    search: Optional[str] = None
) -> List[Student]:
    """Non-deleted records, newest submission first."""
    query = active_students()

    if class_filter:
        query = query.where(Student.class_enrolled == class_filter)

    if gender:
        query = query.where(Student.sex == gender)

    if search:
        term = f"%{search}%"
        query = query.where(or_(
            Student.first_name.ilike(term),
            Student.last_name.ilike(term),
            Student.parent_name.ilike(term),
        ))

    query = query.order_by(desc(Student.submitted_at), desc(Student.id))
    result = await db.execute(query)
    return result.scalars().all()


async def get_student(db: AsyncSession, student_id: int) -> Student:
    """Raises ResourceNotFoundError for unknown or soft-deleted ids."""
    result = await db.execute(active_students().where(Student.id == student_id))
    student = result.scalar_one_or_none()
    if student is None:
        raise ResourceNotFoundError("Student", student_id)
    return student


async def update_student(db: AsyncSession, student_id: int, changes: StudentUpdate) -> Student:
    student = await get_student(db, student_id)

    updates: Dict[str, Any] = changes.model_dump(exclude_unset=True)
    cleared = sorted(name for name, value in updates.items() if value is None and name in REQUIRED_COLUMNS)
    if cleared:
        raise ValidationError("Required fields cannot be cleared", details={"fields": cleared})
    if not updates:
        raise ValidationError("No fields to update")

    for name, value in updates.items():
        if hasattr(value, "value"):
            value = value.value
        setattr(student, name, value)
    student.updated_at = utcnow()

    await db.commit()
    await db.refresh(student)
    return student


async def soft_delete_student(db: AsyncSession, student_id: int) -> Student:
    student = await get_student(db, student_id)
    student.is_deleted = True
    student.updated_at = utcnow()
    await db.commit()
    return student


async def get_stats(db: AsyncSession) -> Dict[str, Any]:
    """Totals by class and by sex over non-deleted records."""
    active = Student.is_deleted.is_(False)

    total = (await db.execute(select(func.count(Student.id)).where(active))).scalar_one()

    by_class = await db.execute(
        select(Student.class_enrolled, func.count(Student.id).label("count"))
        .where(active)
        .group_by(Student.class_enrolled)
        .order_by(Student.class_enrolled)
    )
    by_gender = await db.execute(
        select(Student.sex, func.count(Student.id).label("count"))
        .where(active)
        .group_by(Student.sex)
        .order_by(Student.sex)
    )

    return {
        "total": total,
        "by_class": [dict(row._mapping) for row in by_class.all()],
        "by_gender": [dict(row._mapping) for row in by_gender.all()],
    }
