"""
Student registration schemas.

The registration form arrives as multipart form data with camelCase field
names; records go back out with their column names plus derived file URLs.
"""

import os
from datetime import date, datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from school_backend.app.models.enums import Religion, Sex

PHONE_PATTERN = r"^(\+234|0)[0-9]{10}$"

OPTIONAL_TEXT_FIELDS = (
    "middle_name", "religion_other", "alternative_phone", "email",
    "medical_condition_details", "disability_type", "disability_details",
    "emergency_instructions", "academic_session",
)

FREE_TEXT_FIELDS = (
    "first_name", "middle_name", "last_name", "religion_other", "class_enrolled",
    "parent_name", "email", "home_address", "state", "lga",
    "medical_condition_details", "disability_type", "disability_details",
    "emergency_instructions", "parent_signature", "academic_session",
)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _escape_tags(value: Any) -> Any:
    """Neutralise markup in free text so stored values can't inject tags into a page."""
    if isinstance(value, str):
        return value.replace("<", "&lt;").replace(">", "&gt;")
    return value


def _form_flag(value: Any) -> bool:
    """Form checkboxes are sent as the string 'true'; anything else is False."""
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


class StudentRegistration(BaseModel):
    """Fields of the public registration form."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: str = Field(..., alias="firstName", min_length=1)
    middle_name: Optional[str] = Field(None, alias="middleName")
    last_name: str = Field(..., alias="lastName", min_length=1)
    sex: Sex
    date_of_birth: date = Field(..., alias="dateOfBirth")
    religion: Religion
    religion_other: Optional[str] = Field(None, alias="religionOther")
    class_enrolled: str = Field(..., alias="classEnrolled", min_length=1)

    parent_name: str = Field(..., alias="parentName", min_length=1)
    parent_phone: str = Field(..., alias="parentPhone", pattern=PHONE_PATTERN)
    alternative_phone: Optional[str] = Field(None, alias="alternativePhone")
    email: Optional[str] = None
    home_address: str = Field(..., alias="homeAddress", min_length=1)
    state: str = Field(..., min_length=1)
    lga: str = Field(..., min_length=1)

    has_medical_condition: bool = Field(False, alias="hasMedicalCondition")
    medical_condition_details: Optional[str] = Field(None, alias="medicalConditionDetails")
    has_disability: bool = Field(False, alias="hasDisability")
    disability_type: Optional[str] = Field(None, alias="disabilityType")
    disability_details: Optional[str] = Field(None, alias="disabilityDetails")
    emergency_instructions: Optional[str] = Field(None, alias="emergencyInstructions")

    consent_given: str = Field(..., alias="consentGiven")
    parent_signature: str = Field(..., alias="parentSignature", min_length=1)
    academic_session: Optional[str] = Field(None, alias="academicSession")

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def blank_optional(cls, value):
        return _blank_to_none(value)

    @field_validator(*FREE_TEXT_FIELDS)
    @classmethod
    def escape_tags(cls, value):
        return _escape_tags(value)

    @field_validator("has_medical_condition", "has_disability", mode="before")
    @classmethod
    def form_flag(cls, value):
        return _form_flag(value)

    @field_validator("consent_given")
    @classmethod
    def consent_required(cls, value: str) -> str:
        if value != "true":
            raise ValueError("Consent must be given")
        return value


class StudentUpdate(BaseModel):
    """Partial edit of an existing record. Unset fields are left alone."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: Optional[str] = Field(None, alias="firstName", min_length=1)
    middle_name: Optional[str] = Field(None, alias="middleName")
    last_name: Optional[str] = Field(None, alias="lastName", min_length=1)
    sex: Optional[Sex] = None
    date_of_birth: Optional[date] = Field(None, alias="dateOfBirth")
    religion: Optional[Religion] = None
    religion_other: Optional[str] = Field(None, alias="religionOther")
    class_enrolled: Optional[str] = Field(None, alias="classEnrolled", min_length=1)
    parent_name: Optional[str] = Field(None, alias="parentName", min_length=1)
    parent_phone: Optional[str] = Field(None, alias="parentPhone", pattern=PHONE_PATTERN)
    alternative_phone: Optional[str] = Field(None, alias="alternativePhone")
    email: Optional[str] = None
    home_address: Optional[str] = Field(None, alias="homeAddress", min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    lga: Optional[str] = Field(None, min_length=1)
    has_medical_condition: Optional[bool] = Field(None, alias="hasMedicalCondition")
    medical_condition_details: Optional[str] = Field(None, alias="medicalConditionDetails")
    has_disability: Optional[bool] = Field(None, alias="hasDisability")
    disability_type: Optional[str] = Field(None, alias="disabilityType")
    disability_details: Optional[str] = Field(None, alias="disabilityDetails")
    emergency_instructions: Optional[str] = Field(None, alias="emergencyInstructions")
    academic_session: Optional[str] = Field(None, alias="academicSession")

    @field_validator(*FREE_TEXT_FIELDS, check_fields=False)
    @classmethod
    def escape_tags(cls, value):
        return _escape_tags(value)


class StudentResponse(BaseModel):
    """A stored record with URLs for its uploaded files."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    sex: str
    date_of_birth: date
    religion: str
    religion_other: Optional[str] = None
    class_enrolled: str
    photo_path: Optional[str] = None
    birth_certificate_path: Optional[str] = None
    parent_name: str
    parent_phone: str
    alternative_phone: Optional[str] = None
    email: Optional[str] = None
    home_address: str
    state: str
    lga: str
    has_medical_condition: bool
    medical_condition_details: Optional[str] = None
    has_disability: bool
    disability_type: Optional[str] = None
    disability_details: Optional[str] = None
    emergency_instructions: Optional[str] = None
    consent_given: bool
    parent_signature: str
    submitted_at: datetime
    academic_session: Optional[str] = None
    created_by: Optional[int] = None
    updated_at: Optional[datetime] = None

    @computed_field(alias="photoUrl")
    @property
    def photo_url(self) -> Optional[str]:
        return f"/uploads/{os.path.basename(self.photo_path)}" if self.photo_path else None

    @computed_field(alias="birthCertificateUrl")
    @property
    def birth_certificate_url(self) -> Optional[str]:
        if not self.birth_certificate_path:
            return None
        return f"/uploads/{os.path.basename(self.birth_certificate_path)}"


class StudentRegistered(BaseModel):
    message: str
    student_id: int = Field(..., serialization_alias="studentId")


def field_errors(errors: List[dict]) -> List[dict]:
    """Flatten pydantic errors into {field, message} pairs using the form's field names."""
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())) or "form",
            "message": str(error.get("msg", "Invalid value")).removeprefix("Value error, "),
        }
        for error in errors
    ]
