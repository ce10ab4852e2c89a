# app/config.py
"""
Runtime configuration, read once from the environment.

A local `.env` file is honoured (python-dotenv), so the same variables work for
uvicorn, alembic and the scripts/ helpers.
"""
from __future__ import annotations

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _csv(name: str, default: str) -> List[str]:
    return [p.strip() for p in os.getenv(name, default).split(",") if p.strip()]


DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./church_register.db")
SQL_ECHO: bool = _flag("SQL_ECHO")

# "Current year" for ad-hoc numbering is taken in this zone
TIMEZONE: str = os.getenv("TZ", "Europe/London")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS: List[str] = _csv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
)

# Insert attempts for an auto-allocated number before giving up on a (year, number) clash
REGISTER_NUMBER_RETRY_ATTEMPTS: int = int(os.getenv("REGISTER_NUMBER_RETRY_ATTEMPTS", "5"))

APP_NAME = "Church Register Backend"
APP_VERSION = "0.1.0"
