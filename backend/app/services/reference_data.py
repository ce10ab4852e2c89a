# app/services/reference_data.py
"""
Reference data gate: existence checks for the small lookup tables a member
row points at, plus listing and seeding of those tables.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from app.models.reference import District, MembershipStatus, RoleType
from app.services.errors import ReferenceNotFound

logger = logging.getLogger(__name__)

# (name, grants_register_number)
DEFAULT_STATUSES: Sequence[tuple] = (
    ("Active", True),
    ("Expired", False),
    ("In Glory", False),
    ("InActive", False),
)

DEFAULT_ROLE_TYPES: Sequence[str] = (
    "Non-Member",
    "Member",
    "Deacon",
    "Auditor",
    "Secretary",
    "Treasurer",
    "Minister",
    "Junior Church Leader",
    "District Officer",
)

DEFAULT_DISTRICTS: Sequence[str] = tuple("ABCDEFGHIJKL")


# ----------------------------
# Existence checks
# ----------------------------

def _exists(db: Session, model, pk: int) -> bool:
    return bool(db.execute(select(exists().where(model.id == pk))).scalar())


def role_type_exists(db: Session, role_type_id: int) -> bool:
    return _exists(db, RoleType, role_type_id)


def district_exists(db: Session, district_id: int) -> bool:
    return _exists(db, District, district_id)


def require_status(db: Session, status_id: int) -> MembershipStatus:
    status = db.get(MembershipStatus, status_id)
    if status is None:
        raise ReferenceNotFound(f"Status with ID {status_id} does not exist", field="status_id")
    return status


def require_role_types(db: Session, role_type_ids: Iterable[int]) -> List[int]:
    """Validate every id; return them de-duplicated, in request order."""
    seen: List[int] = []
    for rid in role_type_ids:
        if rid in seen:
            continue
        if not role_type_exists(db, rid):
            raise ReferenceNotFound(f"Role with ID {rid} does not exist", field="role_ids")
        seen.append(rid)
    return seen


def require_district(db: Session, district_id: Optional[int]) -> None:
    if district_id is None:
        return
    if not district_exists(db, district_id):
        raise ReferenceNotFound(f"District with ID {district_id} not found", field="district_id")


def status_grants_numbering(db: Session, status_id: Optional[int]) -> bool:
    """True if members in this status are issued register numbers."""
    if status_id is None:
        return False
    flag = db.execute(
        select(MembershipStatus.grants_register_number).where(MembershipStatus.id == status_id)
    ).scalar()
    return bool(flag)


def numbering_status_ids(db: Session) -> List[int]:
    """Ids of every status whose members are issued register numbers."""
    return list(
        db.execute(
            select(MembershipStatus.id).where(MembershipStatus.grants_register_number.is_(True))
        ).scalars()
    )


# ----------------------------
# Listing
# ----------------------------

def list_statuses(db: Session) -> List[MembershipStatus]:
    return list(db.execute(select(MembershipStatus).order_by(MembershipStatus.name.asc())).scalars())


def list_role_types(db: Session) -> List[RoleType]:
    return list(db.execute(select(RoleType).order_by(RoleType.type.asc())).scalars())


def list_districts(db: Session) -> List[District]:
    return list(db.execute(select(District).order_by(District.name.asc())).scalars())


# ----------------------------
# Seeding (idempotent)
# ----------------------------

def seed_reference_data(db: Session, created_by: str = "system") -> dict:
    """Insert any missing default statuses, role types and districts."""
    added = {"statuses": 0, "role_types": 0, "districts": 0}

    have = set(db.execute(select(MembershipStatus.name)).scalars())
    for name, grants in DEFAULT_STATUSES:
        if name not in have:
            db.add(MembershipStatus(name=name, grants_register_number=grants, created_by=created_by))
            added["statuses"] += 1

    have = set(db.execute(select(RoleType.type)).scalars())
    for role in DEFAULT_ROLE_TYPES:
        if role not in have:
            db.add(RoleType(type=role, created_by=created_by))
            added["role_types"] += 1

    have = set(db.execute(select(District.name)).scalars())
    for name in DEFAULT_DISTRICTS:
        if name not in have:
            db.add(District(name=name, created_by=created_by))
            added["districts"] += 1

    db.commit()
    logger.info("Reference data seeded: %s", added)
    return added
