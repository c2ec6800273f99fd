"""
Report generation: spreadsheet export of the register and a PDF profile per student.

Both builders are synchronous (openpyxl / reportlab) and are meant to run in
a worker thread; the endpoints stream the finished file back in chunks.
"""

import logging
import os
import tempfile
from datetime import date, datetime
from io import BytesIO
from typing import IO, Iterable, Iterator, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from school_backend.app.models.student import Student
from school_backend.app.services.students import get_student, list_students

logger = logging.getLogger("school_registry")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"
CHUNK_SIZE = 64 * 1024

# (header, width, value getter)
SPREADSHEET_COLUMNS: Sequence[Tuple[str, int, object]] = (
    ("ID", 10, lambda s: s.id),
    ("First Name", 15, lambda s: s.first_name),
    ("Middle Name", 15, lambda s: s.middle_name or ""),
    ("Last Name", 15, lambda s: s.last_name),
    ("Sex", 10, lambda s: s.sex),
    ("Date of Birth", 15, lambda s: _format_date(s.date_of_birth)),
    ("Religion", 15, lambda s: s.religion),
    ("Class", 15, lambda s: s.class_enrolled),
    ("Parent Name", 20, lambda s: s.parent_name),
    ("Parent Phone", 15, lambda s: s.parent_phone),
    ("Email", 20, lambda s: s.email or ""),
    ("Address", 30, lambda s: s.home_address),
    ("State", 15, lambda s: s.state),
    ("LGA", 20, lambda s: s.lga),
    ("Medical Condition", 15, lambda s: _yes_no(s.has_medical_condition)),
    ("Disability", 15, lambda s: _yes_no(s.has_disability)),
    ("Submitted At", 20, lambda s: _format_date(s.submitted_at)),
)

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE0E0E0")


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _format_date(value) -> str:
    # Excel cannot store timezone-aware datetimes
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    return value or ""


def build_spreadsheet(students: Iterable[Student]) -> IO[bytes]:
    """
    Write the register to an .xlsx file.

    Uses openpyxl's write-only mode so rows are flushed as they are appended,
    and a spooled temporary file so large exports spill to disk.
    """
    workbook = Workbook(write_only=True)
    sheet = workbook.create_sheet("Students")

    for index, (_, width, _) in enumerate(SPREADSHEET_COLUMNS, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    header: List[WriteOnlyCell] = []
    for title, _, _ in SPREADSHEET_COLUMNS:
        cell = WriteOnlyCell(sheet, value=title)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        header.append(cell)
    sheet.append(header)

    for student in students:
        sheet.append([getter(student) for _, _, getter in SPREADSHEET_COLUMNS])

    output = tempfile.SpooledTemporaryFile(max_size=4 * 1024 * 1024)
    workbook.save(output)
    output.seek(0)
    return output


def iter_file(handle: IO[bytes], chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield a file in chunks and close it when done."""
    try:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


def _profile_styles():
    styles = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("ProfileTitle", parent=styles["Title"], fontSize=20),
        "subtitle": ParagraphStyle("ProfileSubtitle", parent=styles["Heading2"], alignment=TA_CENTER),
        "section": ParagraphStyle("ProfileSection", parent=styles["Heading3"], fontSize=14, spaceBefore=12),
        "body": ParagraphStyle("ProfileBody", parent=styles["Normal"], fontSize=11, leading=15),
        "footer": ParagraphStyle("ProfileFooter", parent=styles["Normal"], fontSize=10, alignment=TA_CENTER),
    }


def _photo_flowable(photo_path: Optional[str]) -> Optional[Image]:
    if not photo_path or not os.path.exists(photo_path):
        return None
    try:
        ImageReader(photo_path).getSize()
    except (OSError, ValueError) as exc:
        logger.warning("Skipping unreadable photo %s: %s", photo_path, exc)
        return None
    photo = Image(photo_path, width=100, height=100)
    photo.hAlign = "RIGHT"
    return photo


def build_profile_pdf(student: Student, school_name: str) -> BytesIO:
    """Render one student's registration profile as a paginated PDF."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=50,
        rightMargin=50,
        topMargin=50,
        bottomMargin=50,
        title=f"Student {student.id} profile",
    )
    styles = _profile_styles()

    def line(label: str, value) -> Paragraph:
        return Paragraph(f"<b>{escape(label)}:</b> {escape(str(value))}", styles["body"])

    def section(title: str) -> Paragraph:
        return Paragraph(f"<u>{escape(title)}</u>", styles["section"])

    story = [
        Paragraph(escape(school_name), styles["title"]),
        Paragraph("Student Registration Profile", styles["subtitle"]),
        Spacer(1, 12),
    ]

    photo = _photo_flowable(student.photo_path)
    if photo is not None:
        story.append(photo)

    religion = student.religion
    if student.religion_other:
        religion = f"{religion} - {student.religion_other}"

    story += [
        section("Student Information"),
        line("Full Name", student.full_name),
        line("Sex", student.sex),
        line("Date of Birth", _format_date(student.date_of_birth)),
        line("Religion", religion),
        line("Class", student.class_enrolled),
        line("Academic Session", student.academic_session or ""),
    ]

    story += [
        section("Parent/Guardian Information"),
        line("Name", student.parent_name),
        line("Phone", student.parent_phone),
    ]
    if student.alternative_phone:
        story.append(line("Alternative Phone", student.alternative_phone))
    if student.email:
        story.append(line("Email", student.email))
    story += [
        line("Address", student.home_address),
        line("State", student.state),
        line("LGA", student.lga),
    ]

    story += [
        section("Health Information"),
        line("Medical Condition", _yes_no(student.has_medical_condition)),
    ]
    if student.medical_condition_details:
        story.append(line("Details", student.medical_condition_details))
    story.append(line("Disability", _yes_no(student.has_disability)))
    if student.disability_type:
        story.append(line("Type", student.disability_type))
    if student.disability_details:
        story.append(line("Details", student.disability_details))
    if student.emergency_instructions:
        story.append(line("Emergency Instructions", student.emergency_instructions))

    story += [
        Spacer(1, 24),
        Paragraph(f"Submitted: {escape(_format_date(student.submitted_at))}", styles["footer"]),
        Paragraph(f"Parent Signature: {escape(student.parent_signature)}", styles["footer"]),
    ]

    doc.build(story)
    buffer.seek(0)
    return buffer


async def render_spreadsheet(
    db: AsyncSession,
    class_filter: Optional[str] = None,
    gender: Optional[str] = None
) -> Iterator[bytes]:
    """Register export as a chunk iterator, newest submission first."""
    students = await list_students(db, class_filter=class_filter, gender=gender)
    handle = await run_in_threadpool(build_spreadsheet, students)
    return iter_file(handle)


async def render_profile_pdf(db: AsyncSession, student_id: int, school_name: str) -> Iterator[bytes]:
    """Raises ResourceNotFoundError when the id is unknown or soft-deleted."""
    student = await get_student(db, student_id)
    handle = await run_in_threadpool(build_profile_pdf, student, school_name)
    return iter_file(handle)
