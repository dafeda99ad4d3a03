import os

# In-memory SQLite for tests. Must be set before database.py is imported.
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import models  # noqa: E402,F401
import storage  # noqa: E402
from challenges import create_challenge  # noqa: E402
from database import Base, SessionLocal, engine  # noqa: E402


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user(db):
    return storage.create_user(db, "alice", "alice@example.com", "Alice", "not-a-real-hash")


@pytest.fixture
def other_user(db):
    return storage.create_user(db, "bob", "bob@example.com", "Bob", "not-a-real-hash")


@pytest.fixture
def make_challenge(db, user):
    """Creates a challenge for `user` (or another owner) starting at `start`"""
    def _make(duration=7, start=datetime(2024, 1, 1, 9, 0), tasks=None, owner=None, name="Morning Routine"):
        return create_challenge(
            db,
            owner_id=(owner or user).id,
            name=name,
            category="health",
            duration_days=duration,
            tasks=tasks or [{"name": "Run", "scheduled_time": "07:00"}],
            now=start,
        )
    return _make


@pytest.fixture
def client(db):
    from main import app
    return TestClient(app)


@pytest.fixture
def register_user(client):
    """Registers a user through the API and returns the token response"""
    def _register(username, email=None, password="secret123", name=None):
        r = client.post("/auth/register", json={
            "username": username,
            "email": email or f"{username}@example.com",
            "name": name or username.title(),
            "password": password,
        })
        assert r.status_code == 200, r.text
        return r.json()
    return _register


@pytest.fixture
def auth_headers(register_user):
    token = register_user("carol")["access_token"]
    return {"Authorization": f"Bearer {token}"}
