# app/services/register/numbering.py
"""
Bulk numbering for the coming year.

Every member whose status grants a register number is numbered 1..N,
ordered by member_since (oldest first, unknown dates ahead of all
known ones), then last name.
A year is generated once; the check-then-write runs under a per-year
advisory lock on Postgres and the (year, number) unique index turns any
second writer's batch into a conflict on every backend.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.members import Member
from app.models.register_numbers import RegisterNumber
from app.schemas.register_numbers import (
    GenerateRegisterNumbersResult,
    RegisterNumberAssignment,
    RegisterNumberPreview,
)
from app.services import reference_data
from app.services.errors import RegisterConflict, ValidationFailed
from app.services.register import ledger
from app.services.register.locks import try_lock_year

logger = logging.getLogger(__name__)

RESULT_PREVIEW_SIZE = 10


def _validate_target_year(target_year: int) -> None:
    valid = ledger.current_year() + 1
    if target_year != valid:
        raise ValidationFailed(
            f"Cannot generate for year {target_year}. Only year {valid} is valid.",
            field="target_year",
        )


def _eligible_members(db: Session):
    """(id, first_name, last_name, member_since) rows in numbering order."""
    stmt = (
        select(Member.id, Member.first_name, Member.last_name, Member.member_since)
        .where(Member.status_id.in_(reference_data.numbering_status_ids(db)))
        .order_by(Member.member_since.asc().nulls_first(), Member.last_name.asc(), Member.id.asc())
    )
    return db.execute(stmt).all()


def _current_numbers(db: Session, year: int) -> dict:
    rows = db.execute(
        select(RegisterNumber.member_id, RegisterNumber.number).where(RegisterNumber.year == year)
    ).all()
    return {member_id: ledger.parse_number(number) for member_id, number in rows}


def _assignments(rows, current: dict) -> List[RegisterNumberAssignment]:
    return [
        RegisterNumberAssignment(
            register_number=i,
            member_id=r.id,
            member_name=f"{r.first_name} {r.last_name}",
            member_since=r.member_since,
            current_number=current.get(r.id),
        )
        for i, r in enumerate(rows, start=1)
    ]


def preview_for_year(db: Session, target_year: int) -> RegisterNumberPreview:
    """What generate_for_year would write. Nothing is persisted."""
    ledger.require_reasonable_year(target_year, field="target_year")
    _validate_target_year(target_year)

    rows = _eligible_members(db)
    current = _current_numbers(db, ledger.current_year())
    return RegisterNumberPreview(
        year=target_year,
        total_active_members=len(rows),
        preview_generated_at=datetime.now(timezone.utc),
        assignments=_assignments(rows, current),
    )


def generate_for_year(db: Session, target_year: int, *, acting_user: str) -> GenerateRegisterNumbersResult:
    """Write one entry per eligible member for `target_year`, all or nothing."""
    ledger.require_reasonable_year(target_year, field="target_year")
    _validate_target_year(target_year)

    if not try_lock_year(db, target_year):
        raise RegisterConflict(f"Register number generation for {target_year} is busy; try again shortly.")

    try:
        if ledger.has_year_been_generated(db, target_year):
            raise RegisterConflict(f"Register numbers for year {target_year} have already been generated")

        rows = _eligible_members(db)
        if not rows:
            raise RegisterConflict("No active members to assign register numbers")

        db.add_all(
            RegisterNumber(member_id=r.id, year=target_year, number=str(i), created_by=acting_user)
            for i, r in enumerate(rows, start=1)
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Concurrent generation for %s rejected by unique index", target_year)
        raise RegisterConflict(
            f"Register numbers for year {target_year} have already been generated"
        ) from e
    except Exception:
        db.rollback()
        raise

    logger.info("Generated %d register numbers for %s by %s", len(rows), target_year, acting_user)
    current = _current_numbers(db, ledger.current_year())
    return GenerateRegisterNumbersResult(
        year=target_year,
        total_members_assigned=len(rows),
        generated_at=datetime.now(timezone.utc),
        generated_by=acting_user,
        preview=_assignments(rows[:RESULT_PREVIEW_SIZE], current),
    )
