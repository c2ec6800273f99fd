"""
Admin API Endpoints.

Dashboard statistics, register exports and the security views over the
audit trail. Every route here is admin-only and audited.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from school_backend.app.core.audit_middleware import audit_action
from school_backend.app.core.config import settings
from school_backend.app.core.context import RequestContext
from school_backend.app.core.dependencies import get_request_context
from school_backend.app.core.guards import require_admin
from school_backend.app.db.session import get_db
from school_backend.app.schemas.admin import AuditLogResponse, SecurityAlert, StatsResponse
from school_backend.app.services import reports
from school_backend.app.services.audit import (
    AuditAction, get_audit_trail, get_recent_activity, get_security_alerts
)
from school_backend.app.services.students import get_stats

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get(
    "/stats",
    response_model=StatsResponse,
    dependencies=[Depends(audit_action(AuditAction.VIEW_STATS))]
)
async def stats(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Totals by class and by sex over non-deleted records."""
    return StatsResponse(**await get_stats(db))


@router.get(
    "/export/excel",
    dependencies=[Depends(audit_action(AuditAction.EXPORT_EXCEL))]
)
async def export_excel(
    class_filter: Optional[str] = Query(None, alias="class"),
    gender: Optional[str] = Query(None),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Download the register as an .xlsx workbook.

    Accepts the same class/gender filters as the student listing.
    """
    chunks = await reports.render_spreadsheet(db, class_filter=class_filter, gender=gender)
    return StreamingResponse(
        chunks,
        media_type=reports.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="students.xlsx"'},
    )


@router.get(
    "/export/pdf/{student_id}",
    dependencies=[Depends(audit_action(AuditAction.EXPORT_PDF))]
)
async def export_pdf(
    student_id: int,
    context: RequestContext = Depends(get_request_context),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    context.audit_details["student_id"] = student_id
    chunks = await reports.render_profile_pdf(db, student_id, settings.school_name)
    return StreamingResponse(
        chunks,
        media_type=reports.PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="student-{student_id}.pdf"'},
    )


@router.get(
    "/audit-logs",
    response_model=List[AuditLogResponse],
    dependencies=[Depends(audit_action(AuditAction.VIEW_AUDIT_LOGS))]
)
async def audit_logs(
    limit: int = Query(100, ge=1, le=1000, description="Maximum entries"),
    offset: int = Query(0, ge=0, description="Entries to skip"),
    action: Optional[str] = Query(None, description="Filter by action"),
    user_id: Optional[int] = Query(None, alias="userId", description="Filter by user"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Query the audit trail, newest first.
    """
    return await get_audit_trail(db, limit=limit, offset=offset, action=action, user_id=user_id)


@router.get(
    "/security-alerts",
    response_model=List[SecurityAlert],
    dependencies=[Depends(audit_action(AuditAction.VIEW_SECURITY_ALERTS))]
)
async def security_alerts(
    hours: int = Query(24, ge=1, le=24 * 30),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Failed logins grouped by (username, ip) with at least 3 attempts."""
    return await get_security_alerts(db, hours=hours)


@router.get(
    "/recent-activity",
    response_model=List[AuditLogResponse],
    dependencies=[Depends(audit_action(AuditAction.VIEW_RECENT_ACTIVITY))]
)
async def recent_activity(
    limit: int = Query(50, ge=1, le=500),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await get_recent_activity(db, limit=limit)
