# backend/app/models/__init__.py
"""
Central model registry.

Import this once at startup (e.g., in main.py) so SQLAlchemy sees all mapped
classes before any relationship is configured. Alembic's env.py and the test
suite rely on it for a complete `Base.metadata`.
"""
from app.db import Base  # re-export Base

from .reference import MembershipStatus, RoleType, District  # noqa: F401
from .members import Address, Member, MemberRole, DataProtectionProfile  # noqa: F401
from .register_numbers import RegisterNumber, PendingRegisterNumberAssignment  # noqa: F401

__all__ = [
    "Base",
    "MembershipStatus",
    "RoleType",
    "District",
    "Address",
    "Member",
    "MemberRole",
    "DataProtectionProfile",
    "RegisterNumber",
    "PendingRegisterNumberAssignment",
]
