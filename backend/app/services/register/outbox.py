# app/services/register/outbox.py
"""
Pending ad-hoc assignments.

A member change that owes a register number writes a pending row in its own
transaction. After that commit we try to fulfil it once; a failure is logged
and recorded on the row but never undoes the member change. Open rows are
retried on demand.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.members import Member
from app.models.register_numbers import PendingRegisterNumberAssignment, RegisterNumber
from app.services import reference_data
from app.services.register import ledger

logger = logging.getLogger(__name__)

Pending = PendingRegisterNumberAssignment


def _now() -> datetime:
    return datetime.now(timezone.utc)


def has_open_assignment(db: Session, member_id: int, year: int) -> bool:
    row = db.execute(
        select(Pending.id).where(
            Pending.member_id == member_id,
            Pending.year == year,
            Pending.status.in_(Pending.OPEN_STATES),
        ).limit(1)
    ).first()
    return row is not None


def queue_assignment(
    db: Session,
    member_id: int,
    year: int,
    *,
    acting_user: str,
    requested_number: Optional[str] = None,
) -> Pending:
    """Add a pending row to the caller's transaction (no commit)."""
    row = Pending(
        member_id=member_id,
        year=year,
        requested_number=(requested_number or "").strip() or None,
        status=Pending.PENDING,
        attempts=0,
        created_by=acting_user,
    )
    db.add(row)
    return row


def fulfil(db: Session, pending_id: int, *, acting_user: str) -> Optional[RegisterNumber]:
    """Assign the number for one pending row and commit. Raises on failure."""
    row = db.get(Pending, pending_id)
    if row is None or not row.is_open:
        return None

    member = db.get(Member, row.member_id)
    if member is None or not reference_data.status_grants_numbering(db, member.status_id):
        row.status = Pending.CANCELLED
        row.updated_at = _now()
        db.commit()
        return None

    existing = ledger.get_entry(db, row.member_id, row.year)
    if existing is None:
        existing = ledger.assign_number(
            db,
            row.member_id,
            row.year,
            acting_user=acting_user,
            requested_number=row.requested_number,
        )
    row.attempts += 1
    row.status = Pending.ASSIGNED
    row.register_number_id = existing.id
    row.last_error = None
    row.updated_at = _now()
    db.commit()
    return existing


def _record_failure(db: Session, pending_id: int, error: Exception) -> None:
    row = db.get(Pending, pending_id)
    if row is None:
        return
    row.attempts += 1
    row.status = Pending.FAILED
    row.last_error = str(error)[:2000]
    row.updated_at = _now()
    db.commit()


def fulfil_best_effort(db: Session, pending_id: int, *, acting_user: str) -> Optional[RegisterNumber]:
    """fulfil(), but a failure leaves the row `failed` instead of raising."""
    try:
        return fulfil(db, pending_id, acting_user=acting_user)
    except Exception as e:
        db.rollback()
        logger.exception("Register number assignment %s failed", pending_id)
        try:
            _record_failure(db, pending_id, e)
        except Exception:
            db.rollback()
            logger.exception("Could not record failure for pending assignment %s", pending_id)
        return None


def list_pending(db: Session) -> List[Pending]:
    return list(
        db.execute(
            select(Pending).where(Pending.status.in_(Pending.OPEN_STATES)).order_by(Pending.id.asc())
        ).scalars()
    )


def retry_pending_assignments(db: Session, *, acting_user: str) -> dict:
    counts = {"attempted": 0, "assigned": 0, "failed": 0, "cancelled": 0}
    ids = [row.id for row in list_pending(db)]
    for pending_id in ids:
        counts["attempted"] += 1
        fulfil_best_effort(db, pending_id, acting_user=acting_user)
        status = db.execute(select(Pending.status).where(Pending.id == pending_id)).scalar()
        if status == Pending.ASSIGNED:
            counts["assigned"] += 1
        elif status == Pending.CANCELLED:
            counts["cancelled"] += 1
        else:
            counts["failed"] += 1
    if ids:
        logger.info("Retried %d pending register number assignments: %s", len(ids), counts)
    return counts
