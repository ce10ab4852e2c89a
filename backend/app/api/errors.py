# app/api/errors.py
from __future__ import annotations

from fastapi import HTTPException

from app.services.errors import RegisterError


def http_error(e: RegisterError) -> HTTPException:
    """Service error -> HTTPException with a {"message", "field"} detail."""
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


def conflict(message: str) -> HTTPException:
    return HTTPException(status_code=409, detail={"message": message, "field": None})
