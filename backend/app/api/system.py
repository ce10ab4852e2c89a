# app/api/system.py
from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter
from sqlalchemy import text

from app import config
from app.db import engine

router = APIRouter(tags=["ops"])


def _db_driver_from_url(url: str | None) -> str | None:
    if not url or "://" not in url:
        return None
    scheme = url.split("://", 1)[0]  # e.g., "postgresql+psycopg2"
    if "+" in scheme:
        return scheme.split("+", 1)[1]  # "psycopg2"
    return scheme


@router.get("/health")
def health():
    """Liveness check with a lightweight DB round trip and local time."""
    now_local = datetime.now(ZoneInfo(config.TIMEZONE))
    db = {"status": "ok", "driver": _db_driver_from_url(config.DATABASE_URL)}
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        db["status"] = f"error: {type(e).__name__}"

    return {
        "status": "ok",
        "time": {"tz": config.TIMEZONE, "now": now_local.isoformat(), "register_year": now_local.year},
        "db": db,
    }


@router.get("/version")
def version():
    """Minimal runtime info for the UI."""
    return {
        "app": config.APP_NAME,
        "version": config.APP_VERSION,
        "db_driver": _db_driver_from_url(config.DATABASE_URL),
        "tz": config.TIMEZONE,
    }
