# app/services/register/ledger.py
"""
Register number ledger: reads over `register_numbers` and the ad-hoc
single-entry insert used when a member becomes (or is created) Active.

Numbers are stored as text. Only entries that parse to a positive integer
take part in "next available" arithmetic; anything else is history.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import config
from app.models.register_numbers import RegisterNumber
from app.services.errors import RegisterConflict, ValidationFailed

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100


def current_year() -> int:
    return datetime.now(ZoneInfo(config.TIMEZONE)).year


def require_reasonable_year(year: int, field: str = "year") -> None:
    if year < MIN_YEAR or year > MAX_YEAR:
        raise ValidationFailed(f"Year must be between {MIN_YEAR} and {MAX_YEAR}", field=field)


def parse_number(value: Optional[str]) -> Optional[int]:
    try:
        n = int((value or "").strip())
    except ValueError:
        return None
    return n if n > 0 else None


# ----------------------------
# Reads
# ----------------------------

def has_year_been_generated(db: Session, year: int) -> bool:
    count = db.execute(
        select(func.count()).select_from(RegisterNumber).where(RegisterNumber.year == year)
    ).scalar_one()
    return count > 0


def get_generation_status(db: Session, year: int) -> dict:
    """
    Whether `year` holds any entries, how many, and who wrote the first one.
    The first entry stands in for the bulk run; an early ad-hoc entry
    will be reported instead if it got there first.
    """
    require_reasonable_year(year)
    total = db.execute(
        select(func.count()).select_from(RegisterNumber).where(RegisterNumber.year == year)
    ).scalar_one()
    first = db.execute(
        select(RegisterNumber).where(RegisterNumber.year == year).order_by(RegisterNumber.id.asc()).limit(1)
    ).scalar_one_or_none()
    return {
        "year": year,
        "is_generated": total > 0,
        "total_assignments": total,
        "generated_by": first.created_by if first else None,
        "generated_at": first.created_at if first else None,
    }


def get_next_available_number(db: Session, year: int) -> int:
    """max(integer-parsable numbers in `year`) + 1, or 1 for an empty year."""
    values = db.execute(select(RegisterNumber.number).where(RegisterNumber.year == year)).scalars()
    highest = 0
    for v in values:
        n = parse_number(v)
        if n is not None and n > highest:
            highest = n
    return highest + 1


def number_in_use(db: Session, year: int, number: str, exclude_member_id: Optional[int] = None) -> bool:
    """True if another member holds `number` for `year`; "05" and "5" are the same number."""
    wanted = parse_number(number)
    stmt = select(RegisterNumber.number).where(RegisterNumber.year == year)
    if exclude_member_id is not None:
        stmt = stmt.where(RegisterNumber.member_id != exclude_member_id)
    for held in db.execute(stmt).scalars():
        if wanted is not None and parse_number(held) == wanted:
            return True
        if held.strip() == number.strip():
            return True
    return False


def get_entry(db: Session, member_id: int, year: int) -> Optional[RegisterNumber]:
    return db.execute(
        select(RegisterNumber).where(RegisterNumber.member_id == member_id, RegisterNumber.year == year)
    ).scalar_one_or_none()


def register_history(db: Session, member_id: int) -> List[RegisterNumber]:
    return list(
        db.execute(
            select(RegisterNumber)
            .where(RegisterNumber.member_id == member_id)
            .order_by(RegisterNumber.year.desc(), RegisterNumber.id.desc())
        ).scalars()
    )


def current_year_number(member, year: Optional[int] = None) -> Optional[str]:
    """Number held by an already-loaded member for `year` (default: now)."""
    year = year or current_year()
    for entry in member.register_numbers:
        if entry.year == year:
            return entry.number
    return None


# ----------------------------
# Writes
# ----------------------------

def _insert_entry(db: Session, member_id: int, year: int, number: str, acting_user: str) -> RegisterNumber:
    entry = RegisterNumber(member_id=member_id, year=year, number=number, created_by=acting_user)
    # SAVEPOINT: a unique clash only rolls back this insert
    with db.begin_nested():
        db.add(entry)
        db.flush()
    return entry


def assign_number(
    db: Session,
    member_id: int,
    year: int,
    *,
    acting_user: str,
    requested_number: Optional[str] = None,
    attempts: Optional[int] = None,
) -> RegisterNumber:
    """
    Give `member_id` a number for `year` inside the caller's transaction.

    With `requested_number` the value is stored in canonical form ("007" as "7")
    and a clash is a conflict.
    Without it the next available number is computed and inserted; if another
    writer takes that number first the unique index rejects the insert and we
    recompute, up to `attempts` times. The caller commits.
    """
    if get_entry(db, member_id, year) is not None:
        raise RegisterConflict(f"Member {member_id} already holds a register number for {year}")

    requested = (requested_number or "").strip() or None
    if requested is not None:
        n = parse_number(requested)
        if n is None:
            raise ValidationFailed(
                f"Member number '{requested}' must be a positive whole number", field="member_number"
            )
        requested = str(n)
        if number_in_use(db, year, requested):
            raise RegisterConflict(
                f"Member number '{requested}' is already assigned for {year}", field="member_number"
            )
        try:
            return _insert_entry(db, member_id, year, requested, acting_user)
        except IntegrityError as e:
            raise RegisterConflict(
                f"Member number '{requested}' is already assigned for {year}", field="member_number"
            ) from e

    tries = attempts or config.REGISTER_NUMBER_RETRY_ATTEMPTS
    for attempt in range(1, tries + 1):
        number = str(get_next_available_number(db, year))
        try:
            entry = _insert_entry(db, member_id, year, number, acting_user)
        except IntegrityError:
            logger.warning(
                "Register number %s/%s taken concurrently (attempt %d of %d)", year, number, attempt, tries
            )
            continue
        logger.info("Assigned register number %s for %s to member %s", number, year, member_id)
        return entry

    raise RegisterConflict(f"Could not allocate a register number for {year} after {tries} attempts")
