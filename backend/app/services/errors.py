# app/services/errors.py
"""
Business errors raised by the service layer.

All of them are ValueError subclasses, like the rest of the services raise,
so callers that only know about ValueError keep working. Routers map
`status_code` onto the HTTP response.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class RegisterError(ValueError):
    status_code = 400

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> Dict[str, Any]:
        return {"message": self.message, "field": self.field}


class ValidationFailed(RegisterError):
    """Input rejected before any write (duplicate reference, bad year, ...)."""

    status_code = 400


class ReferenceNotFound(RegisterError):
    """A status / role / district / member id that does not exist."""

    status_code = 404


class RegisterConflict(RegisterError):
    """State of the ledger forbids the operation (already generated, busy, ...)."""

    status_code = 409
