# backend/app/api/register_numbers.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.errors import http_error
from app.dependencies import get_acting_user, get_db
from app.schemas.register_numbers import (
    GenerateRegisterNumbersRequest,
    GenerateRegisterNumbersResult,
    GenerationStatus,
    NextAvailableNumber,
    PendingAssignmentRead,
    PendingRetryResult,
    RegisterNumberPreview,
)
from app.services.errors import RegisterError, ValidationFailed
from app.services.register import ledger, numbering, outbox

router = APIRouter(prefix="/register-numbers", tags=["Register Numbers"])
logger = logging.getLogger(__name__)


@router.get("/status/{year}", response_model=GenerationStatus)
def generation_status(year: int, db: Session = Depends(get_db)):
    try:
        return ledger.get_generation_status(db, year)
    except RegisterError as e:
        raise http_error(e)


@router.get("/next/{year}", response_model=NextAvailableNumber)
def next_available(year: int, db: Session = Depends(get_db)):
    try:
        ledger.require_reasonable_year(year)
    except RegisterError as e:
        raise http_error(e)
    return {"year": year, "next_number": ledger.get_next_available_number(db, year)}


@router.get("/preview/{year}", response_model=RegisterNumberPreview)
def preview(year: int, db: Session = Depends(get_db)):
    try:
        return numbering.preview_for_year(db, year)
    except RegisterError as e:
        raise http_error(e)


@router.post("/generate", response_model=GenerateRegisterNumbersResult)
def generate(
    payload: GenerateRegisterNumbersRequest,
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
):
    try:
        if not payload.confirm_generation:
            raise ValidationFailed(
                "You must confirm generation of register numbers", field="confirm_generation"
            )
        return numbering.generate_for_year(db, payload.target_year, acting_user=acting_user)
    except RegisterError as e:
        logger.warning("Register number generation for %s refused: %s", payload.target_year, e.message)
        raise http_error(e)


@router.get("/pending", response_model=List[PendingAssignmentRead])
def pending_assignments(db: Session = Depends(get_db)):
    return outbox.list_pending(db)


@router.post("/pending/retry", response_model=PendingRetryResult)
def retry_pending(
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
):
    return outbox.retry_pending_assignments(db, acting_user=acting_user)
