# app/schemas/register_numbers.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterNumberRead(BaseModel):
    id: int
    member_id: int
    year: int
    number: str
    created_by: str
    created_at: Optional[datetime] = None
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RegisterNumberAssignment(BaseModel):
    register_number: int
    member_id: int
    member_name: str
    member_since: Optional[date] = None
    # Member's number for the current year, when it is a plain integer
    current_number: Optional[int] = None


class RegisterNumberPreview(BaseModel):
    year: int
    total_active_members: int
    preview_generated_at: datetime
    assignments: List[RegisterNumberAssignment] = Field(default_factory=list)


class GenerateRegisterNumbersRequest(BaseModel):
    target_year: int
    confirm_generation: bool = False


class GenerateRegisterNumbersResult(BaseModel):
    year: int
    total_members_assigned: int
    generated_at: datetime
    generated_by: str
    preview: List[RegisterNumberAssignment] = Field(default_factory=list)


class GenerationStatus(BaseModel):
    year: int
    is_generated: bool
    total_assignments: int
    generated_by: Optional[str] = None
    generated_at: Optional[datetime] = None


class NextAvailableNumber(BaseModel):
    year: int
    next_number: int


class PendingAssignmentRead(BaseModel):
    id: int
    member_id: int
    year: int
    requested_number: Optional[str] = None
    status: str
    attempts: int
    last_error: Optional[str] = None
    register_number_id: Optional[int] = None
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PendingRetryResult(BaseModel):
    attempted: int = 0
    assigned: int = 0
    failed: int = 0
    cancelled: int = 0
