import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["CLIENT_BASE_URL"] = ""
os.environ["RATE_LIMIT"] = "10000/minute"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from staffhub.auth.security import create_access_token, get_password_hash
from staffhub.db import Base, get_db
from staffhub.main import app
from staffhub.models.models import Task, User
from staffhub.services.time_rules import utcnow


SITE_LAT = 6.5244
SITE_LNG = 3.3792
PASSWORD = "password123"


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(email, role="staff", name=None, is_active=True, password=PASSWORD):
        user = User(
            name=name or email.split("@")[0],
            email=email,
            password_hash=get_password_hash(password),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", role="admin", name="Admin")


@pytest.fixture
def staff(make_user):
    return make_user("staff@example.com", name="Field Staff")


@pytest.fixture
def other_staff(make_user):
    return make_user("other@example.com", name="Other Staff")


@pytest.fixture
def make_task(db, admin):
    def _make(assignee=None, start=None, latitude=SITE_LAT, longitude=SITE_LNG, status=None):
        start = start or utcnow()
        task = Task(
            title="Install signage",
            description="Mount two panels at the entrance",
            location="12 Marina Road, Lagos",
            latitude=latitude,
            longitude=longitude,
            scheduled_start_time=start,
            scheduled_end_time=start + timedelta(hours=4),
            total_hours=4,
            created_by=admin.id,
            assigned_to=assignee.id if assignee else None,
            status=status or ("assigned" if assignee else "pending"),
        )
        db.add(task)
        db.commit()
        db.refresh(task)
        return task
    return _make


def auth_header(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), role=user.role)}"}


@pytest.fixture
def headers():
    return auth_header
