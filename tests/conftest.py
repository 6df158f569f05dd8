import os
from datetime import datetime, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from slotswap.auth import create_access_token, hash_password
from slotswap.database import Base, engine_options, get_db
from slotswap.main import app
from slotswap.models import Slot, SlotStatus, User

BASE_TIME = datetime(2025, 1, 10, 9, 0)


@pytest.fixture
def engine(tmp_path):
    url = f"sqlite:///{tmp_path / 'slotswap-test.db'}"
    test_engine = create_engine(url, **engine_options(url))
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(name=None, password="password123"):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"User {n}",
            email=f"user{n}@example.com",
            hashed_password=hash_password(password),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_slot(db):
    def _make_slot(owner, status=SlotStatus.SWAPPABLE, hours_from_base=0, title="Shift"):
        start = BASE_TIME + timedelta(hours=hours_from_base)
        slot = Slot(
            title=title,
            start_time=start,
            end_time=start + timedelta(hours=1),
            status=status.value,
            owner_id=owner.id,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    return _make_slot


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # Entering the client shares one event loop between HTTP calls and WebSockets
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _auth_headers


class RecordingDispatcher:
    """Captures notifications instead of pushing them to sockets"""

    def __init__(self):
        self.sent = []

    def __call__(self, user_id, event, data):
        self.sent.append((user_id, event, data))


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()
