from datetime import date, timedelta

from habit_tracker.models import CheckIn
from habit_tracker.streaks import compute_streak, count_back, longest_streak


def add_checkins(session, habit, days, completed=True):
    for d in days:
        session.add(CheckIn(user_id=habit.user_id, habit_id=habit.id, date=d, is_completed=completed))
    session.commit()


def test_no_checkins_means_zero(db_session, owned_habit):
    assert compute_streak(db_session, owned_habit.user_id, owned_habit.id, date(2024, 1, 4), 3650) == 0


def test_gap_breaks_the_chain(db_session, owned_habit):
    add_checkins(db_session, owned_habit, [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 4)])
    streak = lambda d: compute_streak(db_session, owned_habit.user_id, owned_habit.id, d, 3650)  # noqa: E731

    assert streak(date(2024, 1, 4)) == 1
    assert streak(date(2024, 1, 3)) == 0
    assert streak(date(2024, 1, 2)) == 2
    assert streak(date(2024, 1, 1)) == 1


def test_uncompleted_row_counts_as_gap(db_session, owned_habit):
    add_checkins(db_session, owned_habit, [date(2024, 3, 1), date(2024, 3, 3)])
    add_checkins(db_session, owned_habit, [date(2024, 3, 2)], completed=False)
    assert compute_streak(db_session, owned_habit.user_id, owned_habit.id, date(2024, 3, 3), 3650) == 1


def test_streak_recurrence_holds_for_every_day(db_session, owned_habit):
    start = date(2024, 5, 1)
    pattern = [1, 1, 0, 1, 1, 1, 0, 0, 1, 1]
    add_checkins(db_session, owned_habit, [start + timedelta(days=i) for i, done in enumerate(pattern) if done])

    previous = 0
    for i, done in enumerate(pattern):
        current = compute_streak(db_session, owned_habit.user_id, owned_habit.id, start + timedelta(days=i), 3650)
        assert current == (previous + 1 if done else 0)
        previous = current


def test_other_habits_are_ignored(db_session, owned_habit):
    db_session.add(CheckIn(user_id=owned_habit.user_id, habit_id=owned_habit.id + 1000, date=date(2024, 1, 1)))
    db_session.commit()
    assert compute_streak(db_session, owned_habit.user_id, owned_habit.id, date(2024, 1, 1), 3650) == 0


def test_lookback_window_caps_the_scan(db_session, owned_habit):
    end = date(2024, 1, 31)
    add_checkins(db_session, owned_habit, [end - timedelta(days=i) for i in range(20)])
    assert compute_streak(db_session, owned_habit.user_id, owned_habit.id, end, 7) == 7


def test_count_back_ignores_later_days():
    days = [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 5)]
    assert count_back(days, date(2024, 1, 2)) == 2
    assert count_back([], date(2024, 1, 2)) == 0


def test_longest_streak():
    days = [date(2024, 1, d) for d in (1, 2, 3, 5, 6, 10)]
    assert longest_streak(days) == 3
    assert longest_streak([]) == 0
    assert longest_streak([date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]) == 3


def test_count_back_stops_at_first_representable_day():
    assert count_back([date.min, date.min + timedelta(days=1)], date.min + timedelta(days=1)) == 2
    assert count_back([date.min], date.min) == 1


def test_early_as_of_with_large_lookback(db_session, owned_habit):
    add_checkins(db_session, owned_habit, [date(1, 1, 1), date(1, 1, 2)])
    assert compute_streak(db_session, owned_habit.user_id, owned_habit.id, date(1, 1, 2), 3650) == 2
    assert compute_streak(db_session, owned_habit.user_id, owned_habit.id, date(5, 1, 1), 3650) == 0
