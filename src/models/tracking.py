"""Pydantic models for health tracking: periods, day logs, mood, sleep,
nutrition, activity, and the computed cycle views."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import Field

from src.models.base import HealthPathBase, TimestampMixin


# ---------- Enums ----------

class FlowIntensity(str, Enum):
    light = "light"
    medium = "medium"
    heavy = "heavy"
    spotting = "spotting"


class SleepQuality(str, Enum):
    poor = "poor"
    fair = "fair"
    good = "good"
    excellent = "excellent"


SLEEP_QUALITY_SCORES: dict[SleepQuality, int] = {
    SleepQuality.poor: 1,
    SleepQuality.fair: 2,
    SleepQuality.good: 3,
    SleepQuality.excellent: 4,
}


class ActivityType(str, Enum):
    cycling = "cycling"
    running = "running"
    steps = "steps"


class TrackerType(str, Enum):
    period = "period"
    mood = "mood"
    sleep = "sleep"
    nutrition = "nutrition"
    activity = "activity"


TRACKER_COLLECTIONS: dict[TrackerType, str] = {
    TrackerType.period: "tracker_periods",
    TrackerType.mood: "tracker_moods",
    TrackerType.sleep: "tracker_sleep",
    TrackerType.nutrition: "tracker_nutrition",
    TrackerType.activity: "tracker_activities",
}


class MenstrualPhase(str, Enum):
    menstrual = "menstrual"
    follicular = "follicular"
    ovulatory = "ovulatory"
    luteal = "luteal"
    unknown = "unknown"


# ---------- Period history ----------

class PeriodEntryCreate(HealthPathBase):
    start_date: date
    end_date: date | None = None
    symptoms: list[str] = Field(default_factory=list)
    adjust_from_symptoms: bool = False


class PeriodEntryRead(HealthPathBase):
    id: str
    start_date: date
    end_date: date | None = None
    symptoms: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class PeriodLogResponse(HealthPathBase):
    entry: PeriodEntryRead
    warnings: list[str] = Field(default_factory=list)


class PeriodValidationRead(HealthPathBase):
    is_valid: bool
    message: str = ""
    warnings: list[str] = Field(default_factory=list)
    days_since_last_period: int | None = None


class MigrationResult(HealthPathBase):
    migrated: int
    skipped: int


# ---------- Day logs ----------

class PeriodDayData(HealthPathBase):
    is_start: bool = False
    is_end: bool = False
    flow: FlowIntensity | None = None
    symptoms: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.is_start or self.is_end or self.flow or self.symptoms)


class DayLogWrite(HealthPathBase):
    period: PeriodDayData | None = None
    mood: str | None = None
    sexual_activity: bool | None = None
    notes: str | None = None

    def has_content(self) -> bool:
        """True when at least one field carries user data."""
        return bool(
            (self.period is not None and not self.period.is_empty())
            or self.mood
            or self.sexual_activity is not None
            or self.notes
        )


class DayLogRead(DayLogWrite, TimestampMixin):
    date: date
    user_id: str


class DayLogSaveResponse(HealthPathBase):
    day_log: DayLogRead
    period_entry: PeriodEntryRead | None = None
    warnings: list[str] = Field(default_factory=list)


# ---------- Mood ----------

class MoodEntryCreate(HealthPathBase):
    date: date
    mood: str = Field(min_length=1)
    notes: str | None = None


class MoodEntryRead(MoodEntryCreate):
    id: str
    created_at: datetime | None = None


# ---------- Sleep ----------

class SleepEntryCreate(HealthPathBase):
    date: date
    hours: float = Field(ge=0, le=24)
    quality: SleepQuality
    bed_time: str | None = None
    wake_time: str | None = None
    notes: str | None = None


class SleepEntryRead(SleepEntryCreate):
    id: str
    quality_score: int = Field(ge=1, le=4)
    created_at: datetime | None = None


# ---------- Nutrition ----------

class Meal(HealthPathBase):
    name: str = Field(min_length=1)
    calories: int | None = Field(default=None, ge=0)
    time: str | None = None


class NutritionEntryCreate(HealthPathBase):
    date: date
    meals: list[Meal] = Field(default_factory=list)
    water: float = Field(default=0, ge=0)
    notes: str | None = None


class NutritionEntryRead(NutritionEntryCreate):
    id: str
    created_at: datetime | None = None


# ---------- Activity ----------

class ActivityEntryCreate(HealthPathBase):
    date: date
    type: ActivityType
    distance: float | None = Field(default=None, ge=0)  # km
    duration: float | None = Field(default=None, ge=0)  # minutes
    steps: int | None = Field(default=None, ge=0)
    goal: float | None = Field(default=None, ge=0)
    goal_type: str | None = None


class ActivityEntryRead(ActivityEntryCreate):
    id: str
    created_at: datetime | None = None


class ActivitySummary(HealthPathBase):
    date: date
    total_steps: int = 0
    cycling_distance: float = 0
    cycling_duration: float = 0
    running_distance: float = 0
    running_duration: float = 0
    entries: int = 0


# ---------- Computed cycle views ----------

class CycleInfoRead(HealthPathBase):
    days_until_next_period: int
    next_period_date: date
    average_cycle_length: int
    last_period_date: date | None = None
    cycle_phase: MenstrualPhase = MenstrualPhase.unknown
    days_since_last_period: int = 0
    current_cycle_day: int | None = None
    is_data_available: bool = False
    is_irregular: bool = False
    warnings: list[str] = Field(default_factory=list)


class FertileWindowRead(HealthPathBase):
    ovulation_date: date
    fertile_start: date
    fertile_end: date
    next_period_start: date
    cycle_length: int
    period_length: int
    is_default: bool = False
    days_to_ovulation: int


class DayStateRead(HealthPathBase):
    day: date
    is_today: bool = False
    is_past: bool = False
    is_period: bool = False
    is_predicted_period: bool = False
    is_fertile: bool = False
    is_ovulation: bool = False
    has_data: bool = False
    flow: FlowIntensity | None = None


class CalendarRead(HealthPathBase):
    start_date: date
    end_date: date
    label: str
    days: list[DayStateRead]
    can_edit: bool
    previous_start: date
    next_start: date


class MonthCalendarRead(HealthPathBase):
    year: int
    month: int
    days: list[DayStateRead | None]
    can_edit: bool


class NextEventRead(HealthPathBase):
    event_type: str
    countdown: int
    is_today: bool
    is_past: bool
    message: str
    sub_message: str
