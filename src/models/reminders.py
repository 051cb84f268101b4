"""Pydantic models for contraception and appointment reminders."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated

from pydantic import Field

from src.models.base import HealthPathBase, TimestampMixin

TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

Weekday = Annotated[int, Field(ge=0, le=6)]  # 0 = Sunday


class ReminderType(str, Enum):
    pill = "pill"
    patch = "patch"
    ring = "ring"
    injection = "injection"
    appointment = "appointment"
    other = "other"


class ReminderFrequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    custom = "custom"


class ReminderBase(HealthPathBase):
    title: str = Field(min_length=1, max_length=100)
    type: ReminderType = ReminderType.other
    frequency: ReminderFrequency = ReminderFrequency.daily
    time: str | None = Field(default=None, pattern=TIME_OF_DAY_PATTERN)  # "HH:MM", UTC
    start_date: date
    end_date: date | None = None
    days: list[Weekday] = Field(default_factory=list)  # weekly reminders
    day_of_month: int | None = Field(default=None, ge=1, le=31)  # monthly reminders
    notes: str | None = None
    enabled: bool = True
    sound_id: str | None = None


class ReminderCreate(ReminderBase):
    pass


class ReminderUpdate(HealthPathBase):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    type: ReminderType | None = None
    frequency: ReminderFrequency | None = None
    time: str | None = Field(default=None, pattern=TIME_OF_DAY_PATTERN)
    start_date: date | None = None
    end_date: date | None = None
    days: list[Weekday] | None = None
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    notes: str | None = None
    enabled: bool | None = None
    sound_id: str | None = None


class ReminderRead(ReminderBase, TimestampMixin):
    id: str
    user_id: str
    next_due: datetime | None = None  # None once the end date has passed
    last_completed: datetime | None = None
    shared_from: str | None = None


class ReminderCompletionCreate(HealthPathBase):
    completed: bool = True
    notes: str | None = None


class ReminderLogRead(HealthPathBase):
    id: str
    reminder_id: str
    completed: bool
    notes: str | None = None
    timestamp: datetime
