"""Database tables."""
import datetime as dt
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


class DayOfWeek(str, Enum):
    SUNDAY = "SUNDAY"
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    display_name: str
    hashed_password: str
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    created_at: dt.datetime = Field(default_factory=utcnow)


class Habit(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    name: str
    category: str
    color: Optional[str] = None
    days_of_week: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: dt.datetime = Field(default_factory=utcnow)


class CheckIn(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "habit_id", "date", name="uq_checkin_user_habit_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    habit_id: int = Field(foreign_key="habit.id", index=True, ondelete="CASCADE")
    date: dt.date = Field(index=True)
    is_completed: bool = Field(default=True)
    created_at: dt.datetime = Field(default_factory=utcnow)


class DailyMemo(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_memo_user_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    date: dt.date
    content: str = ""
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)
