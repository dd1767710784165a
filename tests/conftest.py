import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FIREBASE_PROJECT_ID", "test-project")

import pytest
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient
from sqlmodel import Session

from rydz import models as m
from rydz import rydz_workflow
from rydz.auth import get_current_user_id
from rydz.database import build_engine, get_session, init_db
from rydz.schemas import ActiveRydCreate


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'rydz.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(session):
    def _make(name, role=m.UserRole.STUDENT, can_drive=False, email=None):
        user = m.User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            role=role,
            can_drive=can_drive,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return _make


@pytest.fixture
def people(session, make_user):
    """Parent Pat manages student Sam; Dana drives."""
    parent = make_user("Pat Parent", role=m.UserRole.PARENT)
    student = make_user("Sam Student")
    driver = make_user("Dana Driver", role=m.UserRole.DRIVER, can_drive=True)
    session.add(m.ParentStudentLink(parent_id=parent.id, student_id=student.id))
    session.commit()
    return {"parent": parent.id, "student": student.id, "driver": driver.id}


@pytest.fixture
def make_ryd(session):
    def _make(driver_id, capacity=3, event_name="Regional Finals"):
        result = rydz_workflow.create_active_ryd(
            session,
            driver_id,
            ActiveRydCreate(
                event_name=event_name,
                final_destination_address="1 Stadium Way",
                passenger_capacity=capacity,
            ),
        )
        assert result.success, result.message
        return result.data.id
    return _make


@pytest.fixture
def pending_ryd(session, people, make_ryd):
    """A ryd where Sam's join request waits for Pat's decision."""
    ryd_id = make_ryd(people["driver"])
    result = rydz_workflow.request_to_join(session, ryd_id, people["student"], people["student"])
    assert result.success, result.message
    assert result.data["status"] == m.PassengerManifestStatus.PENDING_PARENT_APPROVAL.value
    return ryd_id


def _header_user_id(request: Request) -> int:
    # test auth: identity comes from a header instead of a Firebase token
    uid = request.headers.get("X-User-Id")
    if not uid:
        raise HTTPException(401, "Missing X-User-Id header")
    return int(uid)


@pytest.fixture
def client(engine):
    from rydz.main import app

    def _session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_current_user_id] = _header_user_id
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    def _headers(user_id):
        return {"X-User-Id": str(user_id)}
    return _headers
