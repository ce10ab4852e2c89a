# app/schemas/reference.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StatusRead(BaseModel):
    id: int
    name: str
    grants_register_number: bool

    model_config = ConfigDict(from_attributes=True)


class RoleTypeRead(BaseModel):
    id: int
    type: str

    model_config = ConfigDict(from_attributes=True)


class DistrictRead(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)
