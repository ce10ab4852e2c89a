# backend/app/api/reference.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.dependencies import get_db
from app.schemas.reference import DistrictRead, RoleTypeRead, StatusRead
from app.services import reference_data as svc

router = APIRouter(prefix="/reference", tags=["Reference Data"])


@router.get("/statuses", response_model=List[StatusRead])
def list_statuses(db: Session = Depends(get_db)):
    return svc.list_statuses(db)


@router.get("/roles", response_model=List[RoleTypeRead])
def list_roles(db: Session = Depends(get_db)):
    return svc.list_role_types(db)


@router.get("/districts", response_model=List[DistrictRead])
def list_districts(db: Session = Depends(get_db)):
    return svc.list_districts(db)
