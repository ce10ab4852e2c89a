"""church register: members, reference data, register numbers, outbox

Revision ID: 4c1e9a7d2b60
Revises:
Create Date: 2025-11-02 00:00:00
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "4c1e9a7d2b60"
down_revision: Union[str, Sequence[str], None] = None
branch_labels = None
depends_on = None


def _has_table(bind, name: str) -> bool:
    insp = sa.inspect(bind)
    try:
        return insp.has_table(name)
    except Exception:
        return False


def _index_exists(bind, table: str, name: str) -> bool:
    insp = sa.inspect(bind)
    try:
        return any(ix.get("name") == name for ix in insp.get_indexes(table))
    except Exception:
        return False


def safe_create_index(name: str, table: str, cols, unique: bool = False) -> None:
    bind = op.get_bind()
    if _has_table(bind, table) and not _index_exists(bind, table, name):
        op.create_index(name, table, cols, unique=unique)


def _audit_columns(modified: bool = True):
    cols = [
        sa.Column("created_by", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]
    if modified:
        cols += [
            sa.Column("modified_by", sa.String(length=100), nullable=True),
            sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
        ]
    return cols


def upgrade() -> None:
    bind = op.get_bind()

    # --- reference data ---
    if not _has_table(bind, "membership_statuses"):
        op.create_table(
            "membership_statuses",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=50), nullable=False, unique=True),
            sa.Column("grants_register_number", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_audit_columns(modified=False),
        )

    if not _has_table(bind, "role_types"):
        op.create_table(
            "role_types",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("type", sa.String(length=50), nullable=False, unique=True),
            *_audit_columns(modified=False),
        )

    if not _has_table(bind, "districts"):
        op.create_table(
            "districts",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=10), nullable=False, unique=True),
            *_audit_columns(),
        )

    # --- member aggregate ---
    if not _has_table(bind, "addresses"):
        op.create_table(
            "addresses",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name_number", sa.String(length=100), nullable=True),
            sa.Column("line_one", sa.String(length=200), nullable=True),
            sa.Column("line_two", sa.String(length=200), nullable=True),
            sa.Column("town", sa.String(length=100), nullable=True),
            sa.Column("county", sa.String(length=100), nullable=True),
            sa.Column("postcode", sa.String(length=20), nullable=True),
            *_audit_columns(),
        )

    if not _has_table(bind, "members"):
        op.create_table(
            "members",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("title", sa.String(length=20), nullable=True),
            sa.Column("first_name", sa.String(length=50), nullable=False),
            sa.Column("last_name", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=100), nullable=True),
            sa.Column("phone", sa.String(length=20), nullable=True),
            sa.Column("bank_reference", sa.String(length=100), nullable=True),
            sa.Column("member_since", sa.Date(), nullable=True),
            sa.Column("baptised", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("gift_aid", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("pastoral_care_required", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                "status_id", sa.Integer(),
                sa.ForeignKey("membership_statuses.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id", ondelete="SET NULL"), nullable=True),
            sa.Column("address_id", sa.Integer(), sa.ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True),
            # FK added below, once data_protection_profiles exists
            sa.Column("data_protection_id", sa.Integer(), nullable=True),
            *_audit_columns(),
        )

    if not _has_table(bind, "member_roles"):
        op.create_table(
            "member_roles",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
            sa.Column(
                "role_type_id", sa.Integer(),
                sa.ForeignKey("role_types.id", ondelete="RESTRICT"), nullable=False,
            ),
            *_audit_columns(modified=False),
            sa.UniqueConstraint("member_id", "role_type_id", name="ux_member_roles_member_role"),
        )

    if not _has_table(bind, "data_protection_profiles"):
        op.create_table(
            "data_protection_profiles",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "member_id", sa.Integer(),
                sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False, unique=True,
            ),
            sa.Column("allow_name_in_communications", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                "allow_health_status_in_communications", sa.Boolean(), nullable=False, server_default=sa.false()
            ),
            sa.Column("allow_photo_in_communications", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("allow_photo_in_social_media", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("group_photos", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("permission_for_my_children", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_audit_columns(),
        )

    if bind.dialect.name != "sqlite":
        insp = sa.inspect(bind)
        fks = {fk.get("name") for fk in insp.get_foreign_keys("members")}
        if "fk_members_data_protection_id" not in fks:
            op.create_foreign_key(
                "fk_members_data_protection_id",
                "members", "data_protection_profiles",
                ["data_protection_id"], ["id"],
            )

    # --- ledger ---
    if not _has_table(bind, "register_numbers"):
        op.create_table(
            "register_numbers",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
            sa.Column("year", sa.Integer(), nullable=False),
            sa.Column("number", sa.String(length=10), nullable=False),
            *_audit_columns(),
            sa.UniqueConstraint("year", "number", name="ux_register_numbers_year_number"),
            sa.UniqueConstraint("member_id", "year", name="ux_register_numbers_member_year"),
        )

    if not _has_table(bind, "register_number_assignments_pending"):
        op.create_table(
            "register_number_assignments_pending",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
            sa.Column("year", sa.Integer(), nullable=False),
            sa.Column("requested_number", sa.String(length=10), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'pending'")),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column(
                "register_number_id", sa.Integer(),
                sa.ForeignKey("register_numbers.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("created_by", sa.String(length=100), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )

    # --- indexes ---
    safe_create_index("ix_members_status_id", "members", ["status_id"])
    safe_create_index("ix_members_member_since", "members", ["member_since"])
    safe_create_index("ix_register_numbers_year", "register_numbers", ["year"])
    safe_create_index("ix_register_numbers_member_id", "register_numbers", ["member_id"])
    safe_create_index(
        "ix_register_number_assignments_pending_status", "register_number_assignments_pending", ["status"]
    )
    safe_create_index(
        "ix_register_number_assignments_pending_member", "register_number_assignments_pending", ["member_id"]
    )
    if _has_table(bind, "members") and not _index_exists(bind, "members", "ux_members_bank_reference_ci"):
        op.create_index(
            "ux_members_bank_reference_ci", "members", [sa.text("lower(bank_reference)")], unique=True
        )


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name != "sqlite" and _has_table(bind, "members"):
        fks = {fk.get("name") for fk in sa.inspect(bind).get_foreign_keys("members")}
        if "fk_members_data_protection_id" in fks:
            op.drop_constraint("fk_members_data_protection_id", "members", type_="foreignkey")

    for table in (
        "register_number_assignments_pending",
        "register_numbers",
        "data_protection_profiles",
        "member_roles",
        "members",
        "addresses",
        "districts",
        "role_types",
        "membership_statuses",
    ):
        if _has_table(bind, table):
            op.drop_table(table)
