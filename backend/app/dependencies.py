"""
Shared FastAPI dependency helpers.

`get_db` hands each request its own SQLAlchemy session and closes it
afterwards. `get_acting_user` resolves the audit identity stamped on every
row a request creates or modifies; authentication itself lives in front of
this service, which only trusts the header it is given.
"""

from typing import Generator, Optional

from fastapi import Header
from sqlalchemy.orm import Session

from app.db import SessionLocal

DEFAULT_ACTING_USER = "system"


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and close it after the request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_acting_user(
    acting_user: Optional[str] = Header(default=None, alias="X-Acting-User"),
) -> str:
    name = (acting_user or "").strip()
    return name[:100] if name else DEFAULT_ACTING_USER
