# app/services/members.py
"""
Member lifecycle: create, update, status/district changes and the
irreversible delete.

Every validation runs before the first write. Writes for one operation go
out in a single commit; the only thing allowed to happen after that commit
is the best-effort register number assignment (see register/outbox.py).
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.models.members import Address, DataProtectionProfile, Member, MemberRole
from app.models.register_numbers import PendingRegisterNumberAssignment, RegisterNumber
from app.schemas.members import (
    AddressIn,
    AddressRead,
    DataProtectionSummary,
    MemberCreate,
    MemberCreateResult,
    MemberRead,
    MemberUpdate,
    RoleRead,
)
from app.services import reference_data
from app.services.errors import ReferenceNotFound, ValidationFailed
from app.services.register import ledger, outbox

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("name_number", "line_one", "line_two", "town", "county", "postcode")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


# ─────────────────────────────────────────────────────────────────────────────
# Reads
# ─────────────────────────────────────────────────────────────────────────────

def get_member(db: Session, member_id: int) -> Optional[Member]:
    return db.get(Member, member_id)


def require_member(db: Session, member_id: int) -> Member:
    member = db.get(Member, member_id)
    if member is None:
        raise ReferenceNotFound(f"Church member with ID {member_id} not found", field="member_id")
    return member


def to_read(member: Member) -> MemberRead:
    profile = member.data_protection
    return MemberRead(
        id=member.id,
        title=member.title,
        first_name=member.first_name,
        last_name=member.last_name,
        email=member.email,
        phone=member.phone,
        bank_reference=member.bank_reference,
        member_number=ledger.current_year_number(member),
        member_since=member.member_since,
        status=member.status.name if member.status else "Unknown",
        status_id=member.status_id,
        roles=sorted(
            (RoleRead(id=r.role_type.id, type=r.role_type.type) for r in member.roles),
            key=lambda r: r.type,
        ),
        baptised=member.baptised,
        gift_aid=member.gift_aid,
        pastoral_care_required=member.pastoral_care_required,
        address=AddressRead.model_validate(member.address) if member.address else None,
        district_id=member.district_id,
        district_name=member.district.name if member.district else None,
        data_protection_id=member.data_protection_id,
        data_protection=(
            DataProtectionSummary(
                **{f: getattr(profile, f) for f in DataProtectionProfile.CONSENT_FIELDS},
                status=profile.consent_status,
                modified_by=profile.modified_by,
                modified_at=profile.modified_at,
            )
            if profile
            else None
        ),
        created_by=member.created_by,
        created_at=member.created_at,
        modified_by=member.modified_by,
        modified_at=member.modified_at,
    )


def read_member(db: Session, member_id: int) -> MemberRead:
    return to_read(require_member(db, member_id))


# ─────────────────────────────────────────────────────────────────────────────
# Validation helpers
# ─────────────────────────────────────────────────────────────────────────────

def _require_unique_bank_reference(db: Session, bank_reference: str, exclude_member_id: Optional[int] = None) -> None:
    stmt = select(func.count()).select_from(Member).where(
        func.lower(func.trim(Member.bank_reference)) == bank_reference.strip().lower()
    )
    if exclude_member_id is not None:
        stmt = stmt.where(Member.id != exclude_member_id)
    if db.execute(stmt).scalar_one() > 0:
        raise ValidationFailed(
            f"The bank reference '{bank_reference}' is already in use. Please enter a unique bank reference.",
            field="bank_reference",
        )


def _require_unused_member_number(
    db: Session, member_number: str, year: int, exclude_member_id: Optional[int] = None
) -> None:
    if ledger.number_in_use(db, year, member_number, exclude_member_id=exclude_member_id):
        raise ValidationFailed(
            f"Member number '{member_number}' is already assigned for {year}. "
            "Please choose a different number or leave blank to auto-generate.",
            field="member_number",
        )


def _address_is_blank(address: Optional[AddressIn]) -> bool:
    return address is None or address.is_blank()


def _address_values(address: AddressIn) -> dict:
    return {f: _clean(getattr(address, f)) for f in ADDRESS_FIELDS}


def _validate_payload(db: Session, payload, year: int, exclude_member_id: Optional[int] = None):
    """Shared create/update checks. Returns (bank_reference, member_number, status, role_ids)."""
    bank_reference = _clean(payload.bank_reference)
    member_number = _clean(payload.member_number)

    if bank_reference:
        _require_unique_bank_reference(db, bank_reference, exclude_member_id)
    if member_number:
        n = ledger.parse_number(member_number)
        if n is None:
            raise ValidationFailed(
                f"Member number '{member_number}' must be a positive whole number", field="member_number"
            )
        member_number = str(n)
        _require_unused_member_number(db, member_number, year, exclude_member_id)

    status = reference_data.require_status(db, payload.status_id)
    reference_data.require_district(db, payload.district_id)
    role_ids = reference_data.require_role_types(db, payload.role_ids)
    return bank_reference, member_number, status, role_ids


def _apply_fields(member: Member, payload, bank_reference: Optional[str]) -> None:
    member.title = _clean(payload.title)
    member.first_name = payload.first_name
    member.last_name = payload.last_name
    member.email = _clean(payload.email)
    member.phone = _clean(payload.phone)
    member.bank_reference = bank_reference
    member.member_since = payload.member_since
    member.status_id = payload.status_id
    member.district_id = payload.district_id
    member.baptised = payload.baptised
    member.gift_aid = payload.gift_aid
    member.pastoral_care_required = payload.pastoral_care_required


# ─────────────────────────────────────────────────────────────────────────────
# Create
# ─────────────────────────────────────────────────────────────────────────────

def create_member(db: Session, payload: MemberCreate, *, acting_user: str) -> MemberCreateResult:
    year = ledger.current_year()
    bank_reference, member_number, status, role_ids = _validate_payload(db, payload, year)

    pending_id = None
    try:
        member = Member(created_by=acting_user)
        _apply_fields(member, payload, bank_reference)
        if not _address_is_blank(payload.address):
            member.address = Address(**_address_values(payload.address), created_by=acting_user)
        for rid in role_ids:
            member.roles.append(MemberRole(role_type_id=rid, created_by=acting_user))
        db.add(member)
        db.flush()

        profile = DataProtectionProfile(
            member_id=member.id,
            created_by=acting_user,
            **{f: False for f in DataProtectionProfile.CONSENT_FIELDS},
        )
        db.add(profile)
        db.flush()
        member.data_protection_id = profile.id

        if status.grants_register_number:
            pending = outbox.queue_assignment(
                db, member.id, year, acting_user=acting_user, requested_number=member_number
            )
            db.flush()
            pending_id = pending.id

        db.commit()
        member_id = member.id
    except Exception:
        db.rollback()
        logger.exception("Error creating church member %s %s", payload.first_name, payload.last_name)
        raise

    logger.info("Created church member %s (%s %s) by %s", member_id, payload.first_name, payload.last_name, acting_user)

    entry = None
    if pending_id is not None:
        entry = outbox.fulfil_best_effort(db, pending_id, acting_user=acting_user)

    # pick up the profile link and any number written after the commit
    db.expire_all()
    member = require_member(db, member_id)
    return MemberCreateResult(
        id=member_id,
        message=f"Church member '{member.first_name} {member.last_name}' created successfully",
        member=to_read(member),
        register_number=entry.number if entry is not None else None,
        register_number_pending=pending_id is not None and entry is None,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Update
# ─────────────────────────────────────────────────────────────────────────────

def _replace_address(member: Member, address: Optional[AddressIn], acting_user: str, db: Session) -> None:
    if _address_is_blank(address):
        old = member.address
        if old is not None:
            member.address = None
            db.delete(old)
        return

    values = _address_values(address)
    if member.address is None:
        member.address = Address(**values, created_by=acting_user)
        return
    for k, v in values.items():
        setattr(member.address, k, v)
    member.address.modified_by = acting_user
    member.address.modified_at = _now()


def _replace_roles(db: Session, member: Member, role_ids, acting_user: str) -> None:
    member.roles.clear()
    # old links must be gone before re-inserting the same role ids
    db.flush()
    for rid in role_ids:
        member.roles.append(MemberRole(role_type_id=rid, created_by=acting_user))


def _upsert_current_number(db: Session, member: Member, year: int, number: str, acting_user: str) -> None:
    entry = ledger.get_entry(db, member.id, year)
    if entry is None:
        db.add(RegisterNumber(member_id=member.id, year=year, number=number, created_by=acting_user))
    elif entry.number != number:
        entry.number = number
        entry.modified_by = acting_user
        entry.modified_at = _now()


def update_member(db: Session, member_id: int, payload: MemberUpdate, *, acting_user: str) -> MemberRead:
    member = require_member(db, member_id)
    year = ledger.current_year()
    bank_reference, member_number, status, role_ids = _validate_payload(
        db, payload, year, exclude_member_id=member_id
    )

    try:
        _apply_fields(member, payload, bank_reference)
        _replace_address(member, payload.address, acting_user, db)
        _replace_roles(db, member, role_ids, acting_user)
        if status.grants_register_number and member_number:
            _upsert_current_number(db, member, year, member_number, acting_user)
        member.modified_by = acting_user
        member.modified_at = _now()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Error saving changes to church member %s", member_id)
        raise

    logger.info("Updated church member %s by %s", member_id, acting_user)
    db.expire_all()
    return read_member(db, member_id)


# ─────────────────────────────────────────────────────────────────────────────
# Status / district
# ─────────────────────────────────────────────────────────────────────────────

def update_status(
    db: Session, member_id: int, status_id: int, *, note: Optional[str] = None, acting_user: str
) -> MemberRead:
    member = require_member(db, member_id)
    status = reference_data.require_status(db, status_id)
    year = ledger.current_year()

    pending_id = None
    try:
        member.status_id = status.id
        member.modified_by = acting_user
        member.modified_at = _now()
        if (
            status.grants_register_number
            and ledger.get_entry(db, member_id, year) is None
            and not outbox.has_open_assignment(db, member_id, year)
        ):
            pending = outbox.queue_assignment(db, member_id, year, acting_user=acting_user)
            db.flush()
            pending_id = pending.id
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Error updating status of church member %s", member_id)
        raise

    logger.info(
        "Church member %s status changed to %s by %s. Note: %s", member_id, status.name, acting_user, note or "None"
    )
    if pending_id is not None:
        outbox.fulfil_best_effort(db, pending_id, acting_user=acting_user)

    db.expire_all()
    return read_member(db, member_id)


def assign_district(db: Session, member_id: int, district_id: Optional[int], *, acting_user: str) -> MemberRead:
    member = require_member(db, member_id)
    reference_data.require_district(db, district_id)
    try:
        member.district_id = district_id
        member.modified_by = acting_user
        member.modified_at = _now()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Error assigning district to church member %s", member_id)
        raise
    logger.info("Church member %s assigned to district %s by %s", member_id, district_id, acting_user)
    db.expire_all()
    return read_member(db, member_id)


# ─────────────────────────────────────────────────────────────────────────────
# Delete (irreversible)
# ─────────────────────────────────────────────────────────────────────────────

def delete_member(db: Session, member_id: int, *, acting_user: str) -> None:
    member = require_member(db, member_id)
    logger.warning(
        "Deleting church member %s (%s) on behalf of %s; this is permanent", member_id, member.full_name, acting_user
    )
    try:
        db.execute(
            delete(PendingRegisterNumberAssignment).where(PendingRegisterNumberAssignment.member_id == member_id)
        )
        if member.data_protection_id is not None:
            member.data_protection_id = None
            db.flush()
        db.execute(delete(DataProtectionProfile).where(DataProtectionProfile.member_id == member_id))

        address = member.address
        # roles and register numbers go with the member (delete-orphan)
        db.delete(member)
        db.flush()
        if address is not None:
            db.delete(address)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Error deleting church member %s", member_id)
        raise
    logger.info("Deleted church member %s", member_id)
