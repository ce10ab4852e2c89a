# app/models/register_numbers.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class RegisterNumber(Base):
    """One issued register number: (member, year, number). The ledger."""

    __tablename__ = "register_numbers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    # Text on purpose: historical imports hold values that are not integers
    number: Mapped[str] = mapped_column(String(10), nullable=False)

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    modified_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    member = relationship("Member", back_populates="register_numbers")

    __table_args__ = (
        UniqueConstraint("year", "number", name="ux_register_numbers_year_number"),
        UniqueConstraint("member_id", "year", name="ux_register_numbers_member_year"),
        Index("ix_register_numbers_year", "year"),
        Index("ix_register_numbers_member_id", "member_id"),
    )

    def __repr__(self) -> str:
        return f"<RegisterNumber {self.year}#{self.number} member={self.member_id}>"


class PendingRegisterNumberAssignment(Base):
    """
    Outbox row for an ad-hoc number owed to a member.

    Written in the same transaction as the member change that creates the
    obligation, then fulfilled best-effort afterwards. Rows left in
    `pending`/`failed` are picked up by the retry endpoint.
    """

    __tablename__ = "register_number_assignments_pending"

    PENDING = "pending"
    FAILED = "failed"
    ASSIGNED = "assigned"
    CANCELLED = "cancelled"
    OPEN_STATES = (PENDING, FAILED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_number: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PENDING, server_default=text("'pending'"))
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    register_number_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("register_numbers.id", ondelete="SET NULL"), nullable=True
    )

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_register_number_assignments_pending_status", "status"),
        Index("ix_register_number_assignments_pending_member", "member_id"),
    )

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATES

    def __repr__(self) -> str:
        return f"<PendingAssignment member={self.member_id} {self.year} {self.status}>"
