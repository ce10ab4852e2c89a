# app/models/members.py
"""
Member aggregate: the member row plus the records created, updated and
deleted together with it (address, role links, data-protection profile).

Member <-> DataProtectionProfile point at each other. The profile owns the
real FK (cascade on member delete); `members.data_protection_id` is a
nullable convenience link with no cascade, created with use_alter so the
tables can be built in either order.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class Address(Base):
    __tablename__ = "addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    line_one: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    line_two: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    town: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    county: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postcode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    modified_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Member(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    # Giving reference used to match bank credits; NULL when blank
    bank_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    member_since: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    baptised: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    gift_aid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    pastoral_care_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    status_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("membership_statuses.id", ondelete="SET NULL"), nullable=True
    )
    district_id: Mapped[Optional[int]] = mapped_column(ForeignKey("districts.id", ondelete="SET NULL"), nullable=True)
    address_id: Mapped[Optional[int]] = mapped_column(ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    data_protection_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey(
            "data_protection_profiles.id",
            use_alter=True,
            name="fk_members_data_protection_id",
        ),
        nullable=True,
    )

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    modified_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # relationships
    status = relationship("MembershipStatus", lazy="joined")
    district = relationship("District", lazy="joined")
    address: Mapped[Optional["Address"]] = relationship("Address", lazy="joined")
    # Written through data_protection_id only
    data_protection: Mapped[Optional["DataProtectionProfile"]] = relationship(
        "DataProtectionProfile",
        foreign_keys="Member.data_protection_id",
        viewonly=True,
        lazy="joined",
    )
    roles: Mapped[List["MemberRole"]] = relationship(
        "MemberRole",
        back_populates="member",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    register_numbers: Mapped[List["RegisterNumber"]] = relationship(
        "RegisterNumber",
        back_populates="member",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="RegisterNumber.year.desc()",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_members_status_id", "status_id"),
        Index("ix_members_member_since", "member_since"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Member {self.id} {self.full_name} status={self.status_id}>"


# Case-insensitive uniqueness of the giving reference; NULLs never clash
Index("ux_members_bank_reference_ci", func.lower(Member.bank_reference), unique=True)


class MemberRole(Base):
    __tablename__ = "member_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    role_type_id: Mapped[int] = mapped_column(ForeignKey("role_types.id", ondelete="RESTRICT"), nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    member: Mapped["Member"] = relationship("Member", back_populates="roles")
    role_type = relationship("RoleType", lazy="joined")

    __table_args__ = (
        UniqueConstraint("member_id", "role_type_id", name="ux_member_roles_member_role"),
    )


class DataProtectionProfile(Base):
    __tablename__ = "data_protection_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    allow_name_in_communications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_health_status_in_communications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_photo_in_communications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_photo_in_social_media: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    group_photos: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    permission_for_my_children: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    modified_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    CONSENT_FIELDS = (
        "allow_name_in_communications",
        "allow_health_status_in_communications",
        "allow_photo_in_communications",
        "allow_photo_in_social_media",
        "group_photos",
        "permission_for_my_children",
    )

    @property
    def consent_status(self) -> str:
        granted = sum(1 for f in self.CONSENT_FIELDS if getattr(self, f))
        if granted == len(self.CONSENT_FIELDS):
            return "all_granted"
        if granted == 0:
            return "all_denied"
        return "partial"

    def __repr__(self) -> str:
        return f"<DataProtectionProfile member={self.member_id} {self.consent_status}>"
