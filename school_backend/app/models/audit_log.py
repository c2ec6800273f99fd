"""
Audit Log Database Model.

Tracks every audited request and authentication event for security monitoring.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from school_backend.app.db.session import Base, utcnow


class AuditLog(Base):
    """
    Append-only audit entry, one per intercepted request.

    Events logged (see AuditAction):
    - LOGIN_ATTEMPT / LOGIN_SUCCESS
    - VIEW_STATS / VIEW_AUDIT_LOGS / VIEW_SECURITY_ALERTS / VIEW_RECENT_ACTIVITY
    - VIEW_USERS / CREATE_USER / CHANGE_PASSWORD / CHANGE_OWN_PASSWORD / DELETE_USER
    - REGISTER_STUDENT / UPDATE_STUDENT / DELETE_STUDENT / EXPORT_EXCEL / EXPORT_PDF
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Who performed it (None for anonymous requests)
    user_id = Column(Integer, index=True, nullable=True)
    username = Column(String(100), nullable=False, default="anonymous")

    # Request facts
    ip_address = Column(String(50), nullable=True)
    user_agent = Column(String(255), nullable=True)
    method = Column(String(10), nullable=True)
    path = Column(String(255), nullable=True)
    status_code = Column(Integer, nullable=True)

    # Additional context (JSON for flexibility)
    details = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', user={self.username}, status={self.status_code})>"
