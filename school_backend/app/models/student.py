"""
Student registration record model.
"""

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Text, Index
from sqlalchemy.sql import func
from school_backend.app.db.session import Base, utcnow


class Student(Base):
    """
    One submitted registration form.

    Records are soft-deleted only: ``is_deleted`` is set and the row stays for
    audit and export history. ``updated_at`` stays NULL until the first edit.
    """
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Student
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    sex = Column(String(10), nullable=False, index=True)
    date_of_birth = Column(Date, nullable=False)
    religion = Column(String(50), nullable=False)
    religion_other = Column(String(100), nullable=True)
    class_enrolled = Column(String(50), nullable=False, index=True)

    # Uploaded files (paths on disk)
    photo_path = Column(String(500), nullable=True)
    birth_certificate_path = Column(String(500), nullable=True)

    # Parent / guardian
    parent_name = Column(String(200), nullable=False)
    parent_phone = Column(String(20), nullable=False)
    alternative_phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    home_address = Column(Text, nullable=False)
    state = Column(String(100), nullable=False)
    lga = Column(String(100), nullable=False)

    # Health
    has_medical_condition = Column(Boolean, default=False, nullable=False)
    medical_condition_details = Column(Text, nullable=True)
    has_disability = Column(Boolean, default=False, nullable=False)
    disability_type = Column(String(100), nullable=True)
    disability_details = Column(Text, nullable=True)
    emergency_instructions = Column(Text, nullable=True)

    # Consent
    consent_given = Column(Boolean, default=False, nullable=False)
    parent_signature = Column(String(200), nullable=False)

    submitted_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    academic_session = Column(String(20), nullable=True)
    created_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    __table_args__ = (
        Index("ix_students_active_submitted", "is_deleted", "submitted_at"),
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.middle_name, self.last_name) if part)

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.full_name}', class='{self.class_enrolled}')>"
