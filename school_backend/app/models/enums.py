"""
Enumerations shared by models and schemas.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Full access, including user management and exports
        STAFF: Can view student records
    """
    ADMIN = "admin"
    STAFF = "staff"


class Sex(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"


class Religion(str, enum.Enum):
    CHRISTIANITY = "Christianity"
    ISLAM = "Islam"
    TRADITIONAL = "Traditional"
    OTHERS = "Others"
