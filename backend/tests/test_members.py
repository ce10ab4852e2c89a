# tests/test_members.py
import pytest
from sqlalchemy import func, select

from app.models.members import Address, DataProtectionProfile, Member, MemberRole
from app.models.register_numbers import PendingRegisterNumberAssignment, RegisterNumber
from app.schemas.members import MemberUpdate
from app.services import members as svc
from app.services.errors import ReferenceNotFound, ValidationFailed
from app.services.register import ledger, outbox


def _broken_assign(*args, **kwargs):
    raise RuntimeError("ledger unavailable")


def _count(db, model, *where):
    stmt = select(func.count()).select_from(model)
    for clause in where:
        stmt = stmt.where(clause)
    return db.execute(stmt).scalar_one()


# ─────────────────────────────────────────────────────────────────────────────
# Create
# ─────────────────────────────────────────────────────────────────────────────

def test_create_active_gets_next_available_number(seeded, new_member, this_year):
    first = new_member(first_name="Ann")
    expected = ledger.get_next_available_number(seeded, this_year)

    result = new_member(first_name="Ben", acting_user="clerk")

    assert result.register_number == str(expected)
    assert result.register_number_pending is False
    assert result.member.member_number == str(expected)
    assert result.member.created_by == "clerk"
    assert _count(seeded, RegisterNumber, RegisterNumber.member_id == result.id) == 1
    assert first.register_number == "1"


def test_create_with_manual_number_uses_it_trimmed(seeded, new_member, this_year):
    result = new_member(member_number=" 42 ")
    assert result.register_number == "42"
    assert ledger.get_entry(seeded, result.id, this_year).number == "42"


def test_create_rejects_member_number_taken_this_year(seeded, new_member):
    new_member(first_name="Ann", member_number="42")
    with pytest.raises(ValidationFailed) as exc:
        new_member(first_name="Ben", member_number="42")
    assert exc.value.field == "member_number"
    assert _count(seeded, Member) == 1


def test_create_member_number_clash_ignores_leading_zeros(seeded, new_member):
    new_member(first_name="Ann", member_number="5")
    with pytest.raises(ValidationFailed) as exc:
        new_member(first_name="Ben", member_number="05")
    assert exc.value.field == "member_number"
    assert _count(seeded, Member) == 1


@pytest.mark.parametrize("number", ["abc", "0", "-3", "4.5"])
def test_create_rejects_member_number_not_positive_whole(seeded, new_member, number):
    with pytest.raises(ValidationFailed) as exc:
        new_member(member_number=number)
    assert exc.value.field == "member_number"
    assert _count(seeded, Member) == 0


def test_create_stores_member_number_canonical(seeded, new_member, this_year):
    result = new_member(member_number=" 007 ")
    assert result.register_number == "7"
    assert ledger.get_entry(seeded, result.id, this_year).number == "7"


def test_create_non_active_gets_no_number(seeded, new_member, statuses):
    result = new_member(status_id=statuses["InActive"], member_number="5")
    assert result.register_number is None
    assert result.register_number_pending is False
    assert _count(seeded, RegisterNumber) == 0
    assert _count(seeded, PendingRegisterNumberAssignment) == 0


def test_duplicate_bank_reference_rejected_case_and_space_insensitive(seeded, new_member):
    new_member(first_name="Ann", bank_reference="ABC123")
    with pytest.raises(ValidationFailed) as exc:
        new_member(first_name="Ben", bank_reference="  abc123 ")
    assert exc.value.field == "bank_reference"
    assert _count(seeded, Member) == 1


def test_blank_bank_reference_stored_as_null(seeded, new_member):
    a = new_member(first_name="Ann", bank_reference="   ")
    b = new_member(first_name="Ben", bank_reference="")
    assert a.member.bank_reference is None
    assert b.member.bank_reference is None


def test_unknown_role_aborts_create(seeded, new_member, roles):
    with pytest.raises(ReferenceNotFound) as exc:
        new_member(role_ids=[roles["Member"], 9999])
    assert exc.value.field == "role_ids"
    assert _count(seeded, Member) == 0
    assert _count(seeded, MemberRole) == 0


def test_unknown_status_and_district_rejected(seeded, new_member):
    with pytest.raises(ReferenceNotFound):
        new_member(status_id=9999)
    with pytest.raises(ReferenceNotFound):
        new_member(district_id=9999)
    assert _count(seeded, Member) == 0


def test_create_builds_profile_address_and_roles(seeded, new_member, roles, districts):
    result = new_member(
        address={"line_one": "1 High Street", "town": "Leeds", "postcode": "LS1 1AA"},
        role_ids=[roles["Member"], roles["Deacon"], roles["Member"]],
        district_id=districts["C"],
    )
    member = seeded.get(Member, result.id)
    profile = seeded.execute(
        select(DataProtectionProfile).where(DataProtectionProfile.member_id == result.id)
    ).scalar_one()

    assert member.data_protection_id == profile.id
    assert all(getattr(profile, f) is False for f in DataProtectionProfile.CONSENT_FIELDS)
    assert result.member.data_protection.status == "all_denied"
    assert member.address.town == "Leeds"
    assert sorted(r.type for r in result.member.roles) == ["Deacon", "Member"]
    assert result.member.district_name == "C"


def test_blank_address_not_created(seeded, new_member):
    result = new_member(address={"line_one": "  ", "town": ""})
    assert result.member.address is None
    assert _count(seeded, Address) == 0


def test_failed_assignment_keeps_member_and_retry_assigns(seeded, new_member, monkeypatch, this_year):
    with monkeypatch.context() as m:
        m.setattr(ledger, "assign_number", _broken_assign)
        result = new_member()

    assert result.register_number is None
    assert result.register_number_pending is True
    assert seeded.get(Member, result.id) is not None
    row = seeded.execute(select(PendingRegisterNumberAssignment)).scalar_one()
    assert row.status == PendingRegisterNumberAssignment.FAILED
    assert row.attempts == 1
    assert "ledger unavailable" in row.last_error

    counts = outbox.retry_pending_assignments(seeded, acting_user="clerk")

    assert counts == {"attempted": 1, "assigned": 1, "failed": 0, "cancelled": 0}
    assert ledger.get_entry(seeded, result.id, this_year).number == "1"
    assert outbox.list_pending(seeded) == []


def test_retry_cancels_when_member_no_longer_active(seeded, new_member, monkeypatch, statuses):
    with monkeypatch.context() as m:
        m.setattr(ledger, "assign_number", _broken_assign)
        result = new_member()

    member = seeded.get(Member, result.id)
    member.status_id = statuses["Expired"]
    seeded.commit()

    counts = outbox.retry_pending_assignments(seeded, acting_user="clerk")
    assert counts["cancelled"] == 1
    assert _count(seeded, RegisterNumber) == 0


# ─────────────────────────────────────────────────────────────────────────────
# Update
# ─────────────────────────────────────────────────────────────────────────────

def _update(seeded, member_id, **fields):
    current = svc.read_member(seeded, member_id)
    data = {
        "title": current.title,
        "first_name": current.first_name,
        "last_name": current.last_name,
        "email": current.email,
        "phone": current.phone,
        "bank_reference": current.bank_reference,
        "member_since": current.member_since,
        "status_id": current.status_id,
        "district_id": current.district_id,
        "baptised": current.baptised,
        "gift_aid": current.gift_aid,
        "pastoral_care_required": current.pastoral_care_required,
        "address": current.address.model_dump(exclude={"id"}) if current.address else None,
        "role_ids": [r.id for r in current.roles],
    }
    data.update(fields)
    return svc.update_member(seeded, member_id, MemberUpdate(**data), acting_user="editor")


def test_update_with_invalid_role_changes_nothing(seeded, new_member, roles):
    result = new_member(first_name="Ann", role_ids=[roles["Member"]])

    with pytest.raises(ReferenceNotFound):
        _update(seeded, result.id, first_name="Changed", role_ids=[roles["Deacon"], 9999])

    seeded.expire_all()
    after = svc.read_member(seeded, result.id)
    assert after.first_name == "Ann"
    assert [r.type for r in after.roles] == ["Member"]
    assert after.modified_by is None


def test_update_replaces_role_set(seeded, new_member, roles):
    result = new_member(role_ids=[roles["Member"], roles["Deacon"]])
    updated = _update(seeded, result.id, role_ids=[roles["Deacon"], roles["Treasurer"]])
    assert sorted(r.type for r in updated.roles) == ["Deacon", "Treasurer"]
    assert updated.modified_by == "editor"


def test_update_bank_reference_uniqueness_excludes_self(seeded, new_member):
    ann = new_member(first_name="Ann", bank_reference="REF1")
    new_member(first_name="Ben", bank_reference="REF2")

    same = _update(seeded, ann.id, bank_reference="ref1")
    assert same.bank_reference == "ref1"

    with pytest.raises(ValidationFailed):
        _update(seeded, ann.id, bank_reference="REF2")


def test_update_manual_number_upserts_current_year_only(seeded, new_member, this_year):
    result = new_member()
    seeded.add(RegisterNumber(member_id=result.id, year=this_year - 1, number="17", created_by="import"))
    seeded.commit()

    updated = _update(seeded, result.id, member_number="30")

    assert updated.member_number == "30"
    assert ledger.get_entry(seeded, result.id, this_year).modified_by == "editor"
    assert ledger.get_entry(seeded, result.id, this_year - 1).number == "17"


def test_update_rejects_number_held_by_someone_else(seeded, new_member):
    ann = new_member(first_name="Ann")
    ben = new_member(first_name="Ben")
    with pytest.raises(ValidationFailed):
        _update(seeded, ben.id, member_number=ann.register_number)


def test_update_clears_and_recreates_address(seeded, new_member):
    result = new_member(address={"line_one": "1 High Street", "town": "Leeds"})

    cleared = _update(seeded, result.id, address=None)
    assert cleared.address is None
    assert _count(seeded, Address) == 0

    again = _update(seeded, result.id, address={"town": "York"})
    assert again.address.town == "York"


def test_update_missing_member_not_found(seeded, member_payload):
    with pytest.raises(ReferenceNotFound):
        svc.update_member(seeded, 424242, MemberUpdate(**member_payload()), acting_user="editor")


# ─────────────────────────────────────────────────────────────────────────────
# Status / district
# ─────────────────────────────────────────────────────────────────────────────

def test_status_change_to_active_issues_number(seeded, new_member, statuses, this_year):
    result = new_member(status_id=statuses["InActive"])
    assert ledger.get_entry(seeded, result.id, this_year) is None

    updated = svc.update_status(seeded, result.id, statuses["Active"], note="rejoined", acting_user="clerk")

    assert updated.status == "Active"
    assert updated.member_number == "1"


def test_status_change_away_from_active_keeps_history(seeded, new_member, statuses, this_year):
    result = new_member()
    updated = svc.update_status(seeded, result.id, statuses["Expired"], acting_user="clerk")
    assert updated.status == "Expired"
    assert ledger.get_entry(seeded, result.id, this_year) is not None


def test_assign_district(seeded, new_member, districts):
    result = new_member()
    assert svc.assign_district(seeded, result.id, districts["B"], acting_user="clerk").district_name == "B"
    assert svc.assign_district(seeded, result.id, None, acting_user="clerk").district_id is None
    with pytest.raises(ReferenceNotFound):
        svc.assign_district(seeded, result.id, 9999, acting_user="clerk")


# ─────────────────────────────────────────────────────────────────────────────
# Delete
# ─────────────────────────────────────────────────────────────────────────────

def test_delete_removes_everything(seeded, new_member, roles, this_year):
    keep = new_member(first_name="Keep")
    gone = new_member(
        first_name="Gone",
        address={"line_one": "2 Low Road"},
        role_ids=[roles["Member"]],
    )
    seeded.add(RegisterNumber(member_id=gone.id, year=this_year - 1, number="8", created_by="import"))
    seeded.commit()

    svc.delete_member(seeded, gone.id, acting_user="admin")

    assert seeded.get(Member, gone.id) is None
    assert _count(seeded, RegisterNumber, RegisterNumber.member_id == gone.id) == 0
    assert _count(seeded, MemberRole, MemberRole.member_id == gone.id) == 0
    assert _count(seeded, DataProtectionProfile, DataProtectionProfile.member_id == gone.id) == 0
    assert _count(seeded, Address) == 0
    # the other member is untouched
    assert svc.read_member(seeded, keep.id).member_number == keep.register_number


def test_delete_missing_member_not_found(seeded):
    with pytest.raises(ReferenceNotFound):
        svc.delete_member(seeded, 424242, acting_user="admin")


def test_update_member_number_clash_ignores_leading_zeros(seeded, new_member):
    new_member(first_name="Ann", member_number="5")
    ben = new_member(first_name="Ben")

    with pytest.raises(ValidationFailed) as exc:
        _update(seeded, ben.id, member_number="05")
    assert exc.value.field == "member_number"
