# backend/scripts/seed_reference_data.py
"""
Seed the lookup tables (membership statuses, role types, districts A-L).

Idempotent: rows that already exist by name are left alone.

Usage (from repo root):
  python backend/scripts/seed_reference_data.py
  python backend/scripts/seed_reference_data.py --db-url sqlite:///./dev.db --create-tables
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# -----------------------------------------------------------------------------
# Paths & import setup (so "import app" works regardless of CWD)
# -----------------------------------------------------------------------------
HERE = Path(__file__).resolve()
BACKEND_ROOT = HERE.parents[1]          # .../backend

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from sqlalchemy.orm import sessionmaker  # noqa: E402

from app import config  # noqa: E402
from app.db import Base, make_engine  # noqa: E402
import app.models  # noqa: E402,F401
from app.services.reference_data import seed_reference_data  # noqa: E402

# -----------------------------------------------------------------------------
# CLI
# -----------------------------------------------------------------------------
parser = argparse.ArgumentParser(description="Seed church register reference data.")
parser.add_argument("--db-url", dest="db_url", help="SQLAlchemy URL (defaults to DATABASE_URL)")
parser.add_argument("--acting-user", dest="acting_user", default="system")
parser.add_argument(
    "--create-tables",
    dest="create_tables",
    action="store_true",
    help="Create missing tables from the ORM metadata first (dev only; use Alembic otherwise)",
)


def main() -> int:
    args = parser.parse_args()
    url = args.db_url or config.DATABASE_URL
    engine = make_engine(url)
    if args.create_tables:
        Base.metadata.create_all(engine)

    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    with Session() as db:
        added = seed_reference_data(db, created_by=args.acting_user)
    print(f"Seeded {url}: {added}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
