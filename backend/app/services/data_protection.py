# app/services/data_protection.py
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.members import DataProtectionProfile, Member
from app.schemas.members import DataProtectionRead, DataProtectionUpdate
from app.services.errors import ReferenceNotFound

logger = logging.getLogger(__name__)


def _to_read(profile: DataProtectionProfile) -> DataProtectionRead:
    return DataProtectionRead(
        id=profile.id,
        member_id=profile.member_id,
        status=profile.consent_status,
        modified_by=profile.modified_by,
        modified_at=profile.modified_at,
        **{f: getattr(profile, f) for f in DataProtectionProfile.CONSENT_FIELDS},
    )


def _require_profile(db: Session, member_id: int) -> DataProtectionProfile:
    if db.get(Member, member_id) is None:
        raise ReferenceNotFound(f"Church member with ID {member_id} not found", field="member_id")
    profile = db.execute(
        select(DataProtectionProfile).where(DataProtectionProfile.member_id == member_id)
    ).scalar_one_or_none()
    if profile is None:
        raise ReferenceNotFound(f"Data protection record for member {member_id} not found")
    return profile


def get_data_protection(db: Session, member_id: int) -> DataProtectionRead:
    return _to_read(_require_profile(db, member_id))


def update_data_protection(
    db: Session, member_id: int, flags: DataProtectionUpdate, *, acting_user: str
) -> DataProtectionRead:
    profile = _require_profile(db, member_id)
    try:
        for f in DataProtectionProfile.CONSENT_FIELDS:
            setattr(profile, f, getattr(flags, f))
        profile.modified_by = acting_user
        profile.modified_at = datetime.now(timezone.utc)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Error updating data protection for member %s", member_id)
        raise
    db.refresh(profile)
    logger.info("Data protection for member %s set to %s by %s", member_id, profile.consent_status, acting_user)
    return _to_read(profile)
