"""
User database model.

This module defines the User SQLAlchemy model for staff/admin authentication.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from school_backend.app.db.session import Base, utcnow
from school_backend.app.models.enums import UserRole


class User(Base):
    """
    Staff or admin account.

    Usernames are unique. Rows are only changed by password updates and are
    hard-deleted by an admin.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        default=UserRole.STAFF,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role.value}')>"
