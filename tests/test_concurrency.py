"""Check-in toggles racing each other must credit XP exactly once per day."""
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from habit_tracker import crud
from habit_tracker.config import Settings
from habit_tracker.main import create_app
from habit_tracker.models import CheckIn

from .conftest import register_and_login

DAY = date(2024, 1, 1)


def lose_race_on_first_call(monkeypatch, name, stale):
    """Make the first call to ``crud.<name>`` see the state from before a competing insert."""
    real = getattr(crud, name)
    calls = []

    def wrapper(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            return stale(real, *args, **kwargs)
        return real(*args, **kwargs)

    monkeypatch.setattr(crud, name, wrapper)
    return calls


def insert_competing_row(session, habit, is_completed):
    session.add(CheckIn(user_id=habit.user_id, habit_id=habit.id, date=DAY, is_completed=is_completed))
    session.commit()


def test_insert_losing_to_completed_row_reports_unchanged(db_session, owned_habit, monkeypatch):
    insert_competing_row(db_session, owned_habit, True)
    lookups = lose_race_on_first_call(monkeypatch, "get_checkin", lambda real, *a, **kw: None)

    checkin, changed = crud.upsert_checkin(db_session, owned_habit.user_id, owned_habit.id, DAY, True)
    db_session.commit()

    assert len(lookups) == 2
    assert changed is False
    assert checkin.is_completed is True
    rows = db_session.exec(select(CheckIn).where(CheckIn.habit_id == owned_habit.id)).all()
    assert len(rows) == 1


def test_insert_losing_to_uncompleted_row_flips_it(db_session, owned_habit, monkeypatch):
    insert_competing_row(db_session, owned_habit, False)
    # the first flip runs before the competing row exists, so it matches nothing
    flips = lose_race_on_first_call(
        monkeypatch,
        "_flip",
        lambda real, session, user_id, habit_id, day, is_completed: real(session, user_id, -1, day, is_completed),
    )
    lose_race_on_first_call(monkeypatch, "get_checkin", lambda real, *a, **kw: None)

    checkin, changed = crud.upsert_checkin(db_session, owned_habit.user_id, owned_habit.id, DAY, True)
    db_session.commit()

    assert len(flips) == 2
    assert changed is True
    assert checkin.is_completed is True
    rows = db_session.exec(select(CheckIn).where(CheckIn.habit_id == owned_habit.id)).all()
    assert len(rows) == 1


@pytest.fixture
def file_client(tmp_path):
    settings = Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'habits.db'}",
        secret_key="test-secret",
        app_env="test",
        log_level="WARNING",
        log_json=False,
    )
    with TestClient(create_app(settings)) as c:
        yield c


def test_concurrent_checkins_credit_each_day_once(file_client, habit_payload):
    headers = register_and_login(file_client, "dana")
    habit_ids = [file_client.post("/habits", json=habit_payload, headers=headers).json()["id"] for _ in range(2)]
    days = ["2024-01-01", "2024-01-02", "2024-01-03"]
    urls = [f"/checkin/{day}/{habit_id}" for habit_id in habit_ids for day in days] * 2

    with ThreadPoolExecutor(max_workers=6) as pool:
        statuses = list(pool.map(lambda url: file_client.put(url, headers=headers).status_code, urls))

    assert statuses == [200] * len(urls)
    assert file_client.get("/me", headers=headers).json()["xp"] == 100 * len(habit_ids) * len(days)

    with Session(file_client.app.state.engine) as session:
        assert len(session.exec(select(CheckIn)).all()) == len(habit_ids) * len(days)
