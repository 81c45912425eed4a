"""HTTP endpoints. Everything except register/login/health requires a bearer token."""
import calendar
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session

from . import crud
from .config import Settings
from .db import get_session
from .errors import Conflict, NotFound, Unauthenticated, ValidationFailed
from .models import Habit, User
from .progression import ProgressionRules
from .schemas import (
    CalendarDay,
    CheckInCompleted,
    CheckInRead,
    CheckInRemoved,
    CheckInState,
    HabitCreate,
    HabitRead,
    HabitStats,
    MemoContent,
    MemoDeleted,
    MemoRead,
    Message,
    Progress,
    StreakRead,
    Token,
    UserCreate,
    UserRead,
)
from .security import create_access_token, get_app_settings, get_current_user, get_password_hash, verify_password
from .streaks import compute_streak, count_back, longest_streak

logger = structlog.get_logger(__name__)

router = APIRouter()

DATE_FORMAT = "%Y-%m-%d"


def parse_day(value: str) -> date:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValidationFailed("Invalid date format. Use YYYY-MM-DD.")


def get_rules(request: Request) -> ProgressionRules:
    return request.app.state.rules


def require_habit(session: Session, habit_id: int, user: User) -> Habit:
    habit = crud.find_habit(session, habit_id, user.id)
    if habit is None:
        raise NotFound("Habit not found")
    return habit


def one_year_before(day: date) -> date:
    if day.year == 1:
        return date.min
    try:
        return day.replace(year=day.year - 1)
    except ValueError:  # Feb 29
        return day.replace(year=day.year - 1, day=28)


# ----- Auth endpoints -----
@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=UserRead)
def register(user_in: UserCreate, session: Session = Depends(get_session)):
    if crud.get_user_by_username(session, user_in.username):
        raise Conflict("Username already registered")
    user = User(
        username=user_in.username,
        display_name=user_in.display_name or user_in.username,
        hashed_password=get_password_hash(user_in.password),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("user_registered", user_id=user.id)
    return user


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    user = crud.get_user_by_username(session, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise Unauthenticated("Incorrect username or password")
    access_token = create_access_token(
        data={"sub": user.username},
        settings=settings,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=Progress)
def me(current_user: User = Depends(get_current_user), rules: ProgressionRules = Depends(get_rules)):
    return Progress(
        id=current_user.id,
        username=current_user.username,
        display_name=current_user.display_name,
        xp=current_user.xp,
        level=current_user.level,
        next_level_xp=rules.threshold(current_user.level),
    )


# ----- Habit endpoints -----
@router.get("/habits", response_model=List[HabitRead])
def list_habits(current_user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    return crud.list_habits(session, current_user.id)


@router.post("/habits", status_code=status.HTTP_201_CREATED, response_model=HabitRead)
def create_habit(
    habit_in: HabitCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    habit = crud.create_habit(session, current_user.id, habit_in)
    session.commit()
    session.refresh(habit)
    logger.info("habit_created", user_id=current_user.id, habit_id=habit.id)
    return habit


@router.get("/habit/{habit_id}", response_model=HabitRead)
def get_habit(habit_id: int, current_user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    return require_habit(session, habit_id, current_user)


@router.put("/habit/{habit_id}", response_model=HabitRead)
def update_habit(
    habit_id: int,
    habit_in: HabitCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    habit = require_habit(session, habit_id, current_user)
    crud.update_habit(session, habit, habit_in)
    session.commit()
    session.refresh(habit)
    return habit


@router.delete("/habit/{habit_id}", response_model=Message)
def delete_habit(habit_id: int, current_user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    habit = require_habit(session, habit_id, current_user)
    removed = crud.delete_habit(session, habit)
    session.commit()
    logger.info("habit_deleted", user_id=current_user.id, habit_id=habit_id, checkins_removed=removed)
    return Message(message="Habit deleted")


@router.get("/habit/{habit_id}/streak", response_model=StreakRead)
def habit_streak(
    habit_id: int,
    as_of: Optional[str] = Query(default=None, alias="date"),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    require_habit(session, habit_id, current_user)
    day = parse_day(as_of) if as_of else date.today()
    streak = compute_streak(session, current_user.id, habit_id, day, settings.streak_max_lookback_days)
    return StreakRead(streak=streak)


@router.get("/habit/{habit_id}/stats", response_model=HabitStats)
def habit_stats(habit_id: int, current_user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    require_habit(session, habit_id, current_user)
    days = crud.all_completed_dates(session, current_user.id, habit_id)
    return HabitStats(
        current_streak=count_back(days, date.today()),
        longest_streak=longest_streak(days),
        total_completions=len(days),
    )


# ----- Calendar endpoints -----
@router.get("/checkin/calendar/{habit_id}", response_model=List[CalendarDay])
def calendar_range(
    habit_id: int,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    end = parse_day(end_date) if end_date else date.today()
    start = parse_day(start_date) if start_date else one_year_before(end)
    require_habit(session, habit_id, current_user)
    return [CalendarDay(date=d) for d in crud.completed_dates(session, current_user.id, habit_id, start, end)]


@router.get("/calendar/{habit_id}/{year}/{month}", response_model=Dict[str, CheckInState])
def calendar_month(
    habit_id: int,
    year: int,
    month: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        raise ValidationFailed("Invalid year or month")
    require_habit(session, habit_id, current_user)
    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    checkins = crud.checkins_in_range(session, current_user.id, habit_id, start, end)
    return {c.date.strftime(DATE_FORMAT): CheckInState(is_completed=c.is_completed) for c in checkins}


# ----- Check-in endpoints -----
@router.get("/checkin/{day}/{habit_id}", response_model=CheckInState)
def checkin_state(
    day: str,
    habit_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    target = parse_day(day)
    require_habit(session, habit_id, current_user)
    checkin = crud.get_checkin(session, current_user.id, habit_id, target)
    return CheckInState(is_completed=bool(checkin and checkin.is_completed))


@router.put("/checkin/{day}/{habit_id}", response_model=CheckInCompleted)
def complete_checkin(
    day: str,
    habit_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    rules: ProgressionRules = Depends(get_rules),
):
    target = parse_day(day)
    require_habit(session, habit_id, current_user)
    checkin, changed = crud.upsert_checkin(session, current_user.id, habit_id, target, True)

    user = crud.lock_user(session, current_user.id)
    new_xp, new_level, leveled_up = user.xp, user.level, False
    if changed:
        progress = rules.apply_completion(user.xp, user.level)
        crud.update_user_progress(session, user.id, progress.new_xp, progress.new_level)
        new_xp, new_level, leveled_up = progress.new_xp, progress.new_level, progress.leveled_up
    body = CheckInCompleted(
        **CheckInRead.model_validate(checkin).model_dump(),
        leveled_up=leveled_up,
        new_level=new_level,
        new_xp=new_xp,
        already_checked_in=not changed,
    )
    session.commit()

    if changed:
        logger.info("checkin_completed", user_id=user.id, habit_id=habit_id, date=str(target), xp=new_xp)
        if leveled_up:
            logger.info("level_up", user_id=user.id, level=new_level)
    return body


@router.delete("/checkin/{day}/{habit_id}", response_model=CheckInRemoved)
def remove_checkin(
    day: str,
    habit_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    rules: ProgressionRules = Depends(get_rules),
):
    target = parse_day(day)
    require_habit(session, habit_id, current_user)
    checkin, changed = crud.upsert_checkin(session, current_user.id, habit_id, target, False)
    if checkin is None:
        raise NotFound("Check-in not found")

    user = crud.lock_user(session, current_user.id)
    new_xp, new_level = user.xp, user.level
    if changed:
        progress = rules.apply_removal(user.xp, user.level)
        crud.update_user_progress(session, user.id, progress.new_xp, progress.new_level)
        new_xp, new_level = progress.new_xp, progress.new_level
    body = CheckInRemoved(
        **CheckInRead.model_validate(checkin).model_dump(),
        new_level=new_level,
        new_xp=new_xp,
    )
    session.commit()

    if changed:
        logger.info("checkin_removed", user_id=user.id, habit_id=habit_id, date=str(target), xp=new_xp)
    return body


# ----- Memo endpoints -----
@router.get("/memo/{day}")
def get_memo(day: str, current_user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    memo = crud.get_memo(session, current_user.id, parse_day(day))
    if memo is None:
        return {"content": ""}
    return MemoRead.model_validate(memo)


@router.post("/memo/{day}", status_code=status.HTTP_201_CREATED, response_model=MemoRead)
def create_memo(
    day: str,
    memo_in: MemoContent,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    target = parse_day(day)
    if crud.get_memo(session, current_user.id, target):
        raise Conflict("A memo already exists for this date. Use PUT to update it.")
    memo = crud.create_memo(session, current_user.id, target, memo_in.content)
    session.commit()
    session.refresh(memo)
    logger.info("memo_saved", user_id=current_user.id, date=str(target))
    return memo


@router.put("/memo/{day}", response_model=MemoRead)
def save_memo(
    day: str,
    memo_in: MemoContent,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    target = parse_day(day)
    memo = crud.upsert_memo(session, current_user.id, target, memo_in.content)
    session.commit()
    session.refresh(memo)
    logger.info("memo_saved", user_id=current_user.id, date=str(target))
    return memo


@router.delete("/memo/{day}", response_model=MemoDeleted)
def delete_memo(day: str, current_user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    memo = crud.get_memo(session, current_user.id, parse_day(day))
    if memo is None:
        raise NotFound("No memo for this date")
    memo_id = memo.id
    crud.delete_memo(session, memo)
    session.commit()
    return MemoDeleted(message="Memo deleted", deleted_memo_id=memo_id)
