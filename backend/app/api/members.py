# backend/app/api/members.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.errors import conflict, http_error
from app.dependencies import get_acting_user, get_db
from app.schemas.members import (
    DataProtectionRead,
    DataProtectionUpdate,
    MemberCreate,
    MemberCreateResult,
    MemberDistrictAssign,
    MemberRead,
    MemberStatusUpdate,
    MemberUpdate,
)
from app.schemas.register_numbers import RegisterNumberRead
from app.services import data_protection as dp_svc
from app.services import members as svc
from app.services.errors import RegisterError
from app.services.register import ledger

router = APIRouter(prefix="/members", tags=["Members"])
logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# OpenAPI "examples" for request body
# ─────────────────────────────────────────────────────────────────────────────
CREATE_EXAMPLES: Dict[str, Dict[str, Any]] = {
    "active_auto_number": {
        "summary": "Active member, number allocated automatically",
        "value": {
            "title": "Mrs",
            "first_name": "Ada",
            "last_name": "Adams",
            "email": "ada@example.org",
            "bank_reference": "ADAMS01",
            "member_since": "2023-01-01",
            "status_id": 1,
            "district_id": 1,
            "gift_aid": True,
            "address": {"name_number": "12", "line_one": "High Street", "town": "Leeds", "postcode": "LS1 1AA"},
            "role_ids": [2],
        },
    },
    "manual_number": {
        "summary": "Active member with a chosen number",
        "value": {
            "first_name": "Zed",
            "last_name": "Zephyr",
            "member_since": "2022-06-01",
            "status_id": 1,
            "member_number": "42",
        },
    },
}

OPENAPI_REQUEST_EXAMPLES = {
    "requestBody": {"content": {"application/json": {"examples": CREATE_EXAMPLES}}}
}


@router.post(
    "/",
    response_model=MemberCreateResult,
    status_code=201,
    openapi_extra=OPENAPI_REQUEST_EXAMPLES,
)
def create_member(
    payload: MemberCreate,
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
):
    try:
        return svc.create_member(db, payload, acting_user=acting_user)
    except RegisterError as e:
        raise http_error(e)
    except IntegrityError:
        raise conflict("Member conflict (unique fields)")


@router.get("/{member_id}", response_model=MemberRead)
def get_member(member_id: int, db: Session = Depends(get_db)):
    try:
        return svc.read_member(db, member_id)
    except RegisterError as e:
        raise http_error(e)


@router.put("/{member_id}", response_model=MemberRead)
def update_member(
    member_id: int,
    payload: MemberUpdate,
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
):
    try:
        return svc.update_member(db, member_id, payload, acting_user=acting_user)
    except RegisterError as e:
        raise http_error(e)
    except IntegrityError:
        raise conflict("Member conflict (unique fields)")


@router.patch("/{member_id}/status", response_model=MemberRead)
def update_member_status(
    member_id: int,
    payload: MemberStatusUpdate,
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
):
    try:
        return svc.update_status(db, member_id, payload.status_id, note=payload.note, acting_user=acting_user)
    except RegisterError as e:
        raise http_error(e)


@router.patch("/{member_id}/district", response_model=MemberRead)
def assign_member_district(
    member_id: int,
    payload: MemberDistrictAssign,
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
):
    try:
        return svc.assign_district(db, member_id, payload.district_id, acting_user=acting_user)
    except RegisterError as e:
        raise http_error(e)


@router.delete("/{member_id}", status_code=204)
def delete_member(
    member_id: int,
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
):
    try:
        svc.delete_member(db, member_id, acting_user=acting_user)
    except RegisterError as e:
        raise http_error(e)
    return Response(status_code=204)


@router.get("/{member_id}/register-numbers", response_model=List[RegisterNumberRead])
def member_register_numbers(member_id: int, db: Session = Depends(get_db)):
    try:
        svc.require_member(db, member_id)
    except RegisterError as e:
        raise http_error(e)
    return ledger.register_history(db, member_id)


@router.get("/{member_id}/data-protection", response_model=DataProtectionRead)
def get_data_protection(member_id: int, db: Session = Depends(get_db)):
    try:
        return dp_svc.get_data_protection(db, member_id)
    except RegisterError as e:
        raise http_error(e)


@router.put("/{member_id}/data-protection", response_model=DataProtectionRead)
def update_data_protection(
    member_id: int,
    payload: DataProtectionUpdate,
    db: Session = Depends(get_db),
    acting_user: str = Depends(get_acting_user),
):
    try:
        return dp_svc.update_data_protection(db, member_id, payload, acting_user=acting_user)
    except RegisterError as e:
        raise http_error(e)
