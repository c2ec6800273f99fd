"""
Failed login attempt model.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from school_backend.app.db.session import Base, utcnow


class FailedLogin(Base):
    """Append-only record of one rejected login. Only ever read by time window."""
    __tablename__ = "failed_logins"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(100), index=True, nullable=True)
    ip_address = Column(String(50), index=True, nullable=True)
    attempt_time = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<FailedLogin(id={self.id}, username='{self.username}', ip='{self.ip_address}')>"
