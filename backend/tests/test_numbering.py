# tests/test_numbering.py
import pytest
from sqlalchemy import func, select

from app.models.members import Member
from app.models.register_numbers import RegisterNumber
from app.services.errors import RegisterConflict, ValidationFailed
from app.services.register import ledger, numbering


def _entries(db, year):
    return {
        r.member_id: r.number
        for r in db.execute(select(RegisterNumber).where(RegisterNumber.year == year)).scalars()
    }


@pytest.fixture()
def trio(new_member):
    adams = new_member(first_name="Ada", last_name="Adams", member_since="2023-01-01").id
    zephyr = new_member(first_name="Zed", last_name="Zephyr", member_since="2022-06-01").id
    brown = new_member(first_name="Bob", last_name="Brown", member_since="2023-01-01").id
    return {"adams": adams, "zephyr": zephyr, "brown": brown}


def test_preview_orders_by_member_since_then_last_name(seeded, trio, this_year):
    preview = numbering.preview_for_year(seeded, this_year + 1)

    assert preview.total_active_members == 3
    order = [(a.register_number, a.member_id) for a in preview.assignments]
    assert order == [(1, trio["zephyr"]), (2, trio["adams"]), (3, trio["brown"])]
    # each member already holds an ad-hoc number for the current year
    assert all(a.current_number is not None for a in preview.assignments)
    assert _entries(seeded, this_year + 1) == {}


def test_generate_assigns_once(seeded, trio, this_year):
    before_current = _entries(seeded, this_year)

    result = numbering.generate_for_year(seeded, this_year + 1, acting_user="secretary")

    assert result.total_members_assigned == 3
    assert result.generated_by == "secretary"
    assert [a.member_id for a in result.preview] == [trio["zephyr"], trio["adams"], trio["brown"]]
    first = _entries(seeded, this_year + 1)
    assert first == {trio["zephyr"]: "1", trio["adams"]: "2", trio["brown"]: "3"}

    with pytest.raises(RegisterConflict):
        numbering.generate_for_year(seeded, this_year + 1, acting_user="secretary")

    assert _entries(seeded, this_year + 1) == first
    assert _entries(seeded, this_year) == before_current


@pytest.mark.parametrize("offset", [0, 2, -1])
def test_generate_rejects_any_year_but_next(seeded, trio, this_year, offset):
    with pytest.raises(ValidationFailed) as exc:
        numbering.generate_for_year(seeded, this_year + offset, acting_user="secretary")
    assert exc.value.field == "target_year"


def test_generate_without_eligible_members_conflicts(seeded, new_member, statuses, this_year):
    new_member(first_name="Old", status_id=statuses["In Glory"])

    with pytest.raises(RegisterConflict):
        numbering.generate_for_year(seeded, this_year + 1, acting_user="secretary")
    total = seeded.execute(select(func.count()).select_from(RegisterNumber)).scalar_one()
    assert total == 0


def test_preview_still_available_after_generation(seeded, trio, this_year):
    before = numbering.preview_for_year(seeded, this_year + 1)
    numbering.generate_for_year(seeded, this_year + 1, acting_user="secretary")

    after = numbering.preview_for_year(seeded, this_year + 1)

    assert after.total_active_members == before.total_active_members == 3
    assert [a.member_id for a in after.assignments] == [a.member_id for a in before.assignments]


def test_second_writer_batch_rejected_by_unique_index(seeded, trio, monkeypatch, this_year):
    numbering.generate_for_year(seeded, this_year + 1, acting_user="secretary")
    first = _entries(seeded, this_year + 1)

    # a writer that read "not generated" before the first batch committed
    monkeypatch.setattr(ledger, "has_year_been_generated", lambda db, year: False)
    with pytest.raises(RegisterConflict) as exc:
        numbering.generate_for_year(seeded, this_year + 1, acting_user="intruder")
    assert "already been generated" in exc.value.message

    assert _entries(seeded, this_year + 1) == first
    generated_by = seeded.execute(
        select(RegisterNumber.created_by).where(RegisterNumber.year == this_year + 1).distinct()
    ).scalars().all()
    assert generated_by == ["secretary"]


def test_unknown_member_since_sorts_first(seeded, trio, this_year):
    undated = seeded.get(Member, trio["brown"])
    undated.member_since = None
    seeded.commit()

    preview = numbering.preview_for_year(seeded, this_year + 1)
    order = [a.member_id for a in preview.assignments]
    assert order == [trio["brown"], trio["zephyr"], trio["adams"]]
