"""Consecutive-day streaks over completed check-ins."""
from datetime import date, timedelta
from typing import Iterable

from sqlmodel import Session, col, select

from .models import CheckIn


def count_back(completed: Iterable[date], as_of: date) -> int:
    """
    Length of the run of consecutive days ending at ``as_of``.

    ``completed`` may be in any order and may contain days after ``as_of``.
    """
    days = set(completed)
    streak = 0
    day = as_of
    while day in days:
        streak += 1
        if day == date.min:
            break
        day -= timedelta(days=1)
    return streak


def longest_streak(completed: Iterable[date]) -> int:
    days = sorted(set(completed))
    best = 0
    current = 0
    previous = None
    for day in days:
        if previous is not None and day == previous + timedelta(days=1):
            current += 1
        else:
            current = 1
        best = max(best, current)
        previous = day
    return best


def compute_streak(session: Session, user_id: int, habit_id: int, as_of: date, max_lookback_days: int) -> int:
    """
    Current streak of a habit as of ``as_of``.

    Completed dates inside the lookback window are loaded with one query and
    scanned in memory. Database errors propagate to the caller.
    """
    # inclusive lower bound, clamped so early dates never overflow
    window_start = as_of - timedelta(days=min(max_lookback_days - 1, (as_of - date.min).days))
    statement = (
        select(CheckIn.date)
        .where(
            CheckIn.user_id == user_id,
            CheckIn.habit_id == habit_id,
            CheckIn.is_completed == True,  # noqa: E712
            CheckIn.date >= window_start,
            CheckIn.date <= as_of,
        )
        .order_by(col(CheckIn.date).desc())
    )
    return count_back(session.exec(statement).all(), as_of)
