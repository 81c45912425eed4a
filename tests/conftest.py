"""
Pytest configuration and fixtures.
"""
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from habit_tracker.config import Settings
from habit_tracker.db import build_engine, create_db_and_tables
from habit_tracker.main import create_app
from habit_tracker.models import Habit, User


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        secret_key="test-secret",
        app_env="test",
        log_level="WARNING",
        log_json=False,
    )


@pytest.fixture
def client(test_settings) -> Iterator[TestClient]:
    app = create_app(test_settings)
    with TestClient(app) as c:
        yield c


def register_and_login(client: TestClient, username: str, password: str = "pw-123456") -> Dict[str, str]:
    resp = client.post("/register", json={"username": username, "password": password})
    assert resp.status_code == 201, resp.text
    resp = client.post("/login", data={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def auth_headers(client) -> Dict[str, str]:
    return register_and_login(client, "alice")


@pytest.fixture
def other_headers(client) -> Dict[str, str]:
    return register_and_login(client, "bob")


@pytest.fixture
def habit_payload() -> dict:
    return {"name": "Read", "category": "Study", "color": "#22c55e", "daysOfWeek": ["MONDAY", "WEDNESDAY"]}


@pytest.fixture
def habit_id(client, auth_headers, habit_payload) -> int:
    resp = client.post("/habits", json=habit_payload, headers=auth_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


@pytest.fixture
def db_session(test_settings) -> Iterator[Session]:
    """A bare session on a fresh in-memory database, for tests below the HTTP layer."""
    engine = build_engine(test_settings)
    create_db_and_tables(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def owned_habit(db_session) -> Habit:
    user = User(username="carol", display_name="Carol", hashed_password="x")
    db_session.add(user)
    db_session.commit()
    habit = Habit(user_id=user.id, name="Run", category="Health", days_of_week=["MONDAY"])
    db_session.add(habit)
    db_session.commit()
    db_session.refresh(habit)
    return habit
