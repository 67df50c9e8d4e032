from datetime import date, datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import scoped_session

from vinylstock import repository
from vinylstock.errors import DataAccessError, NotFound, ValidationError
from vinylstock.extensions import db
from vinylstock.inventory import remaining_inches
from vinylstock.models import Material, Roll, RollUsage


def test_create_material_defaults(app):
    m = repository.create_material(" Avery ", "SW900-190", "Blue")
    assert m.id is not None
    assert m.brand == "Avery"
    assert m.finish is None
    assert m.width_in == 60
    assert m.reorder_threshold_in == 300


def test_create_material_requires_names(app):
    with pytest.raises(ValidationError):
        repository.create_material("3M", "", "Black")
    with pytest.raises(ValidationError):
        repository.create_material("3M", "2080", "Black", width_in=0)
    assert Material.query.count() == 0


def test_list_materials_ordered_by_brand(app):
    repository.create_material("Oracal", "970", "Red")
    repository.create_material("3M", "2080", "Black")
    assert [m.brand for m in repository.list_materials()] == ["3M", "Oracal"]
    assert repository.count_materials() == 2


def test_create_roll(material):
    r = repository.create_roll(material.id, starting_length_in=1800, supplier="Fellers", cost_cents=14999)
    assert r.status == "open"
    assert r.material.brand == "3M"
    assert r.received_at is not None


def test_create_roll_rejects_unknown_material(app):
    with pytest.raises(ValidationError):
        repository.create_roll(999)
    with pytest.raises(ValidationError):
        repository.create_roll(None)


def test_create_roll_rejects_bad_length(material):
    with pytest.raises(ValidationError):
        repository.create_roll(material.id, starting_length_in=0)


def test_get_roll_not_found(app):
    with pytest.raises(NotFound):
        repository.get_roll(42)


def test_log_usage(roll):
    u = repository.log_usage(roll.id, 600, 60, job_code=" INV-1 ", operator="")
    assert u.job_code == "INV-1"
    assert u.operator is None
    assert u.created_at is not None


def test_log_usage_validation(roll):
    with pytest.raises(ValidationError):
        repository.log_usage(roll.id, 0)
    with pytest.raises(ValidationError):
        repository.log_usage(roll.id, 10, -1)
    with pytest.raises(NotFound):
        repository.log_usage(999, 10)
    assert RollUsage.query.count() == 0


def test_log_usage_may_overdraw(roll):
    repository.log_usage(roll.id, 1800)
    repository.log_usage(roll.id, 100)
    assert repository.roll_remaining_by_id()[roll.id] == -100


def test_set_roll_status(roll):
    repository.set_roll_status(roll.id, "consumed")
    assert repository.count_open_rolls() == 0
    with pytest.raises(ValidationError):
        repository.set_roll_status(roll.id, "lost")


def test_list_rolls_filters_status(material, roll):
    other = repository.create_roll(material.id)
    repository.set_roll_status(other.id, "consumed")

    assert [r.id for r in repository.list_rolls(status="open")] == [roll.id]
    assert {r.id for r in repository.list_rolls()} == {roll.id, other.id}


def test_roll_remaining_matches_calculator(material, roll, add_usage):
    add_usage(roll, 600, 60)
    add_usage(roll, 200)
    empty = repository.create_roll(material.id, starting_length_in=1200)

    remaining = repository.roll_remaining_by_id()
    assert remaining[roll.id] == 940
    assert remaining[roll.id] == remaining_inches(roll.starting_length_in, roll.usages)
    assert remaining[empty.id] == 1200


def test_material_remaining_sums_open_rolls(material, roll, add_usage):
    add_usage(roll, 600, 60)
    consumed = repository.create_roll(material.id, starting_length_in=1800)
    repository.set_roll_status(consumed.id, "consumed")
    bare = repository.create_material("Oracal", "970", "Red", reorder_threshold_in=0)

    rows = {m.material_id: m for m in repository.material_remaining()}

    assert rows[material.id].total_remaining_in == 1140
    assert rows[material.id].reorder_threshold_in == 2000
    assert rows[bare.id].total_remaining_in == 0


def test_usages_between_is_inclusive(roll, add_usage):
    add_usage(roll, 100, created_at=datetime(2025, 3, 10, 23, 59, 59))
    add_usage(roll, 200, created_at=datetime(2025, 3, 11, 0, 0, 0))
    add_usage(roll, 300, created_at=datetime(2025, 3, 1, 0, 0, 0))

    rows = repository.usages_between(date(2025, 3, 1), date(2025, 3, 10))

    assert sorted(u.used_length_in for u in rows) == [100, 300]
    assert rows[0].material.brand == "3M"


def test_consumed_rolls_with_usages(material, roll, add_usage):
    add_usage(roll, 100, created_at=datetime(2025, 3, 5, 10, 0))
    add_usage(roll, 50, created_at=datetime(2025, 1, 5, 10, 0))
    repository.set_roll_status(roll.id, "consumed")
    repository.create_roll(material.id)  # still open

    archived = repository.consumed_rolls_with_usages(date(2025, 3, 1), date(2025, 3, 31))

    assert len(archived) == 1
    a = archived[0]
    assert a.roll.id == roll.id
    assert [u.used_length_in for u in a.usages] == [100]
    # remaining covers every usage, not just the ones in range
    assert a.remaining_in == 1650


def test_database_errors_become_data_access_error(app, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(scoped_session, "get", boom)

    with pytest.raises(DataAccessError):
        repository.log_usage(1, 10)


def test_commit_failure_rolls_back(roll, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(scoped_session, "commit", boom)

    with pytest.raises(DataAccessError):
        repository.log_usage(roll.id, 10)

    monkeypatch.undo()
    assert RollUsage.query.count() == 0
    assert db.session.get(Roll, roll.id) is not None
