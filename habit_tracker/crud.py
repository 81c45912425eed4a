"""
Persistence operations.

Every lookup is scoped to the owning user; callers never see rows that
belong to somebody else. Nothing here commits: the route handler owns the
transaction.
"""
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from .models import CheckIn, DailyMemo, Habit, User, utcnow
from .schemas import HabitCreate


# ----- Users -----
def get_user_by_username(session: Session, username: str) -> Optional[User]:
    return session.exec(select(User).where(User.username == username)).first()


def lock_user(session: Session, user_id: int) -> User:
    """Load the user row with a write lock held until the transaction ends."""
    statement = (
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.exec(statement).one()


def update_user_progress(session: Session, user_id: int, xp: int, level: int) -> None:
    # both columns in one statement; a user never has new xp with a stale level
    session.execute(update(User).where(User.id == user_id).values(xp=xp, level=level))


# ----- Habits -----
def find_habit(session: Session, habit_id: int, user_id: int) -> Optional[Habit]:
    return session.exec(select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)).first()


def list_habits(session: Session, user_id: int) -> List[Habit]:
    statement = select(Habit).where(Habit.user_id == user_id).order_by(col(Habit.created_at), col(Habit.id))
    return list(session.exec(statement).all())


def create_habit(session: Session, user_id: int, habit_in: HabitCreate) -> Habit:
    habit = Habit(
        user_id=user_id,
        name=habit_in.name,
        category=habit_in.category,
        color=habit_in.color,
        days_of_week=[d.value for d in habit_in.days_of_week],
    )
    session.add(habit)
    session.flush()
    return habit


def update_habit(session: Session, habit: Habit, habit_in: HabitCreate) -> Habit:
    habit.name = habit_in.name
    habit.category = habit_in.category
    habit.color = habit_in.color
    habit.days_of_week = [d.value for d in habit_in.days_of_week]
    session.add(habit)
    session.flush()
    return habit


def delete_habit(session: Session, habit: Habit) -> int:
    """Delete a habit and all of its check-ins. Returns the number of check-ins removed."""
    result = session.execute(delete(CheckIn).where(CheckIn.habit_id == habit.id))
    session.delete(habit)
    session.flush()
    return result.rowcount


# ----- Check-ins -----
def _checkin_key(user_id: int, habit_id: int, day: date):
    return (CheckIn.user_id == user_id, CheckIn.habit_id == habit_id, CheckIn.date == day)


def get_checkin(session: Session, user_id: int, habit_id: int, day: date) -> Optional[CheckIn]:
    statement = select(CheckIn).where(*_checkin_key(user_id, habit_id, day)).execution_options(populate_existing=True)
    return session.exec(statement).first()


def _flip(session: Session, user_id: int, habit_id: int, day: date, is_completed: bool) -> bool:
    statement = (
        update(CheckIn)
        .where(*_checkin_key(user_id, habit_id, day), CheckIn.is_completed == (not is_completed))
        .values(is_completed=is_completed)
        .execution_options(synchronize_session=False)
    )
    return session.execute(statement).rowcount == 1


def upsert_checkin(
    session: Session, user_id: int, habit_id: int, day: date, is_completed: bool
) -> Tuple[Optional[CheckIn], bool]:
    """
    Move the check-in for ``day`` to ``is_completed``.

    Returns the row (``None`` when un-completing a day that was never checked
    in) and whether this call performed the transition. The flip is a
    conditional UPDATE and a fresh row is inserted under the unique
    (user, habit, date) constraint, so of two concurrent requests only one
    ever sees ``changed=True``.
    """
    changed = _flip(session, user_id, habit_id, day, is_completed)
    if not changed and is_completed and get_checkin(session, user_id, habit_id, day) is None:
        try:
            with session.begin_nested():
                session.add(CheckIn(user_id=user_id, habit_id=habit_id, date=day, is_completed=True))
            changed = True
        except IntegrityError:
            # lost the insert race; the other row may still be un-completed
            changed = _flip(session, user_id, habit_id, day, is_completed)
    return get_checkin(session, user_id, habit_id, day), changed


def completed_dates(session: Session, user_id: int, habit_id: int, start: date, end: date) -> List[date]:
    statement = (
        select(CheckIn.date)
        .where(
            CheckIn.user_id == user_id,
            CheckIn.habit_id == habit_id,
            CheckIn.is_completed == True,  # noqa: E712
            CheckIn.date >= start,
            CheckIn.date <= end,
        )
        .order_by(col(CheckIn.date))
    )
    return list(session.exec(statement).all())


def all_completed_dates(session: Session, user_id: int, habit_id: int) -> List[date]:
    statement = (
        select(CheckIn.date)
        .where(CheckIn.user_id == user_id, CheckIn.habit_id == habit_id, CheckIn.is_completed == True)  # noqa: E712
        .order_by(col(CheckIn.date))
    )
    return list(session.exec(statement).all())


def checkins_in_range(session: Session, user_id: int, habit_id: int, start: date, end: date) -> List[CheckIn]:
    statement = (
        select(CheckIn)
        .where(
            CheckIn.user_id == user_id,
            CheckIn.habit_id == habit_id,
            CheckIn.date >= start,
            CheckIn.date <= end,
        )
        .order_by(col(CheckIn.date))
    )
    return list(session.exec(statement).all())


# ----- Memos -----
def get_memo(session: Session, user_id: int, day: date) -> Optional[DailyMemo]:
    return session.exec(select(DailyMemo).where(DailyMemo.user_id == user_id, DailyMemo.date == day)).first()


def create_memo(session: Session, user_id: int, day: date, content: str) -> DailyMemo:
    memo = DailyMemo(user_id=user_id, date=day, content=content)
    session.add(memo)
    session.flush()
    return memo


def upsert_memo(session: Session, user_id: int, day: date, content: str) -> DailyMemo:
    memo = get_memo(session, user_id, day)
    if memo is None:
        return create_memo(session, user_id, day, content)
    memo.content = content
    memo.updated_at = utcnow()
    session.add(memo)
    session.flush()
    return memo


def delete_memo(session: Session, memo: DailyMemo) -> None:
    session.delete(memo)
    session.flush()
