"""Request and response bodies. JSON field names are camelCase."""
import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, StrictStr, field_validator
from pydantic.alias_generators import to_camel

from .models import DayOfWeek


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ----- Auth -----
class UserCreate(ApiModel):
    username: StrictStr
    password: StrictStr
    display_name: Optional[StrictStr] = None

    @field_validator("username", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class UserRead(ApiModel):
    id: int
    username: str
    display_name: str


class Token(BaseModel):
    access_token: str
    token_type: str


class Progress(ApiModel):
    id: int
    username: str
    display_name: str
    xp: int
    level: int
    next_level_xp: int


# ----- Habits -----
class HabitCreate(ApiModel):
    name: StrictStr
    category: StrictStr
    color: Optional[str] = None
    days_of_week: List[DayOfWeek]

    @field_validator("name", "category")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("days_of_week")
    @classmethod
    def at_least_one_day(cls, v: List[DayOfWeek]) -> List[DayOfWeek]:
        if not v:
            raise ValueError("select at least one day")
        # keep calendar order, drop duplicates
        order = list(DayOfWeek)
        return sorted(set(v), key=order.index)


class HabitRead(ApiModel):
    id: int
    user_id: int
    name: str
    category: str
    color: Optional[str]
    days_of_week: List[DayOfWeek]
    created_at: dt.datetime


class StreakRead(ApiModel):
    streak: int


class HabitStats(ApiModel):
    current_streak: int
    longest_streak: int
    total_completions: int


# ----- Check-ins -----
class CheckInState(ApiModel):
    is_completed: bool


class CheckInRead(ApiModel):
    id: int
    user_id: int
    habit_id: int
    date: dt.date
    is_completed: bool
    created_at: dt.datetime


class CheckInCompleted(CheckInRead):
    leveled_up: bool
    new_level: int
    new_xp: int
    already_checked_in: bool = False


class CheckInRemoved(CheckInRead):
    new_level: int
    new_xp: int


class CalendarDay(ApiModel):
    date: dt.date


# ----- Memos -----
class MemoContent(ApiModel):
    content: StrictStr


class MemoRead(ApiModel):
    id: int
    user_id: int
    date: dt.date
    content: str
    created_at: dt.datetime
    updated_at: dt.datetime


class Message(ApiModel):
    message: str


class MemoDeleted(Message):
    deleted_memo_id: int
