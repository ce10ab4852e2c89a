# app/schemas/members.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─────────────────────────────────────────────────────────────────────────────
# Address
# ─────────────────────────────────────────────────────────────────────────────

class AddressIn(BaseModel):
    name_number: Optional[str] = Field(None, max_length=100)
    line_one: Optional[str] = Field(None, max_length=200)
    line_two: Optional[str] = Field(None, max_length=200)
    town: Optional[str] = Field(None, max_length=100)
    county: Optional[str] = Field(None, max_length=100)
    postcode: Optional[str] = Field(None, max_length=20)

    def is_blank(self) -> bool:
        return all(not (v or "").strip() for v in self.model_dump().values())


class AddressRead(AddressIn):
    id: int

    model_config = ConfigDict(from_attributes=True)


# ─────────────────────────────────────────────────────────────────────────────
# Member write payloads
# ─────────────────────────────────────────────────────────────────────────────

class _MemberFields(BaseModel):
    title: Optional[str] = Field(None, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    bank_reference: Optional[str] = Field(None, max_length=100)
    member_since: date
    status_id: int
    district_id: Optional[int] = None
    baptised: bool = False
    gift_aid: bool = False
    pastoral_care_required: bool = False
    address: Optional[AddressIn] = None
    role_ids: List[int] = Field(default_factory=list)
    # Current-year register number; blank means "allocate the next one"
    member_number: Optional[str] = Field(None, max_length=10)

    @field_validator("first_name", "last_name")
    @classmethod
    def _strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("member_since")
    @classmethod
    def _not_in_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Member since date cannot be in the future")
        return v


class MemberCreate(_MemberFields):
    pass


class MemberUpdate(_MemberFields):
    """Full replacement of the editable member fields, address and roles."""


class MemberStatusUpdate(BaseModel):
    status_id: int
    note: Optional[str] = Field(None, max_length=500)


class MemberDistrictAssign(BaseModel):
    # None clears the assignment
    district_id: Optional[int] = None


# ─────────────────────────────────────────────────────────────────────────────
# Data protection
# ─────────────────────────────────────────────────────────────────────────────

class DataProtectionFlags(BaseModel):
    allow_name_in_communications: bool = False
    allow_health_status_in_communications: bool = False
    allow_photo_in_communications: bool = False
    allow_photo_in_social_media: bool = False
    group_photos: bool = False
    permission_for_my_children: bool = False


class DataProtectionUpdate(DataProtectionFlags):
    pass


class DataProtectionSummary(DataProtectionFlags):
    status: str  # all_granted | all_denied | partial
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None


class DataProtectionRead(DataProtectionSummary):
    id: int
    member_id: int

    model_config = ConfigDict(from_attributes=True)


# ─────────────────────────────────────────────────────────────────────────────
# Read models
# ─────────────────────────────────────────────────────────────────────────────

class RoleRead(BaseModel):
    id: int
    type: str


class MemberRead(BaseModel):
    id: int
    title: Optional[str] = None
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    bank_reference: Optional[str] = None
    member_number: Optional[str] = None
    member_since: Optional[date] = None
    status: str
    status_id: Optional[int] = None
    roles: List[RoleRead] = Field(default_factory=list)
    baptised: bool
    gift_aid: bool
    pastoral_care_required: bool
    address: Optional[AddressRead] = None
    district_id: Optional[int] = None
    district_name: Optional[str] = None
    data_protection_id: Optional[int] = None
    data_protection: Optional[DataProtectionSummary] = None
    created_by: str
    created_at: Optional[datetime] = None
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None


class MemberCreateResult(BaseModel):
    id: int
    message: str
    member: MemberRead
    register_number: Optional[str] = None
    # True when a number is owed but the best-effort assignment did not land
    register_number_pending: bool = False
