# app/services/register/locks.py
from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.orm import Session

# First key of the two-int advisory lock space; second key is the year
REGISTER_LOCK_NAMESPACE = 7301


def _is_postgres(db: Session) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def try_lock_year(db: Session, year: int) -> bool:
    """
    Transaction-scoped PG advisory lock for bulk generation of `year`.
    Released on commit/rollback. Other dialects rely on the unique index.
    """
    if not _is_postgres(db):
        return True
    got = db.execute(
        text("SELECT pg_try_advisory_xact_lock(:ns, :k)"),
        {"ns": REGISTER_LOCK_NAMESPACE, "k": year},
    ).scalar()
    return bool(got)
