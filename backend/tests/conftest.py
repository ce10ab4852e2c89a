# tests/conftest.py
import os
import tempfile

# Point the app's default engine at a scratch file before anything imports app.db
_TMP_DIR = tempfile.mkdtemp(prefix="church-register-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'default.db')}"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, engine as default_engine, make_engine  # noqa: E402
from app.dependencies import get_db  # noqa: E402
from app.main import app as fastapi_app  # noqa: E402
from app.models.reference import District, MembershipStatus, RoleType  # noqa: E402
from app.schemas.members import MemberCreate  # noqa: E402
from app.services import members as member_svc  # noqa: E402
from app.services.reference_data import seed_reference_data  # noqa: E402
from app.services.register import ledger  # noqa: E402

THIS_YEAR = 2025

Base.metadata.create_all(default_engine)


@pytest.fixture()
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'register.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def this_year(monkeypatch):
    """Freeze the register's notion of 'now' so next year is always THIS_YEAR + 1."""
    monkeypatch.setattr(ledger, "current_year", lambda: THIS_YEAR)
    return THIS_YEAR


@pytest.fixture()
def seeded(db):
    seed_reference_data(db)
    return db


def _ids_by(db, column, model):
    ids = {name: pk for pk, name in db.execute(select(model.id, column)).all()}
    # release SQLite's read lock so API requests on other connections can write
    db.commit()
    return ids


@pytest.fixture()
def statuses(seeded):
    return _ids_by(seeded, MembershipStatus.name, MembershipStatus)


@pytest.fixture()
def roles(seeded):
    return _ids_by(seeded, RoleType.type, RoleType)


@pytest.fixture()
def districts(seeded):
    return _ids_by(seeded, District.name, District)


@pytest.fixture()
def member_payload(statuses):
    """Build a MemberCreate payload dict; keyword overrides win."""

    def _build(**overrides):
        data = {
            "first_name": "Ada",
            "last_name": "Adams",
            "member_since": "2023-01-01",
            "status_id": statuses["Active"],
        }
        data.update(overrides)
        return data

    return _build


@pytest.fixture()
def new_member(seeded, member_payload):
    """Create a member through the service and return the MemberCreateResult."""

    def _create(acting_user="tester", **overrides):
        payload = MemberCreate(**member_payload(**overrides))
        return member_svc.create_member(seeded, payload, acting_user=acting_user)

    return _create


@pytest.fixture()
def client(session_factory, seeded):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
