"""Pydantic models for the class calendar, attendance and progression.

All data structures use Pydantic v2 for validation and JSON serialization.
The persisted documents (CitySchedule, AttendanceRecord, Student,
AchievementUnlock) round-trip through ``model_dump(mode="json")``.
"""

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.dojo.timeutils import format_range, is_valid_time, session_key

BLOCKED_STATUS = "Bloqueado"


def _check_time(value: str) -> str:
    if not is_valid_time(value):
        raise ValueError(f"start_time must be HH:MM, got {value!r}")
    return value


class SourceKind(str, Enum):
    FIXED = "fixed"
    FLEXIBLE = "flexible"


class DayStatus(str, Enum):
    """What the month calendar shows for one day."""

    CANCELLED = "cancelled"
    FLEXIBLE = "flexible"
    FIXED = "fixed"
    NONE = "none"


class FixedClass(BaseModel):
    """A class recurring every week on ``weekday`` (0 = Sunday)."""

    id: str
    city_id: str
    weekday: int = Field(ge=0, le=6)
    start_time: str  # "18:00"
    duration_minutes: int = Field(gt=0)
    class_type: str  # "Aula Normal", "Exame de Faixa", custom types

    @field_validator("start_time")
    @classmethod
    def check_start_time(cls, value: str) -> str:
        return _check_time(value)


class FlexibleClass(BaseModel):
    """A one-off class on a specific date, on top of the weekly pattern."""

    id: str
    city_id: str
    date: dt.date
    start_time: str
    duration_minutes: int = Field(gt=0)
    class_type: str

    @field_validator("start_time")
    @classmethod
    def check_start_time(cls, value: str) -> str:
        return _check_time(value)


class Cancellation(BaseModel):
    """Suppresses every class of the city on ``date``."""

    id: str
    city_id: str
    date: dt.date
    reason: str | None = None  # "Feriado", shown in the broadcast


class CitySchedule(BaseModel):
    """Everything persisted for one city's calendar."""

    city_id: str
    fixed_classes: list[FixedClass] = Field(default_factory=list)
    flexible_classes: list[FlexibleClass] = Field(default_factory=list)
    cancellations: list[Cancellation] = Field(default_factory=list)
    class_types: list[str] = Field(default_factory=list)  # custom, per city

    def cancellation_on(self, day: dt.date) -> Cancellation | None:
        for cancellation in self.cancellations:
            if cancellation.date == day:
                return cancellation
        return None


class Occurrence(BaseModel):
    """A concrete class on a date. Derived, never stored."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    start_time: str
    duration_minutes: int
    class_type: str
    source_kind: SourceKind
    source_id: str  # id of the FixedClass/FlexibleClass it came from

    @property
    def time_range(self) -> str:
        return format_range(self.start_time, self.duration_minutes)

    @property
    def session_key(self) -> str:
        return session_key(self.date, self.start_time)


class AttendanceRecord(BaseModel):
    """Roll call of one class, keyed by ``date`` + ``start_time``."""

    city_id: str
    date: dt.date
    start_time: str
    class_type: str | None = None
    present_by_student_id: dict[str, bool] = Field(default_factory=dict)
    updated_at: dt.datetime

    @field_validator("start_time")
    @classmethod
    def check_start_time(cls, value: str) -> str:
        return _check_time(value)

    @property
    def session_key(self) -> str:
        return session_key(self.date, self.start_time)

    @property
    def present_count(self) -> int:
        return sum(1 for present in self.present_by_student_id.values() if present)


class Student(BaseModel):
    """The slice of a student profile the engine reads and mutates."""

    id: str
    name: str = ""
    city_id: str
    current_belt: str = "Branca"
    classes_attended: int = 0
    status: str = "Ativo"  # "Bloqueado" when the account is blocked

    @property
    def is_blocked(self) -> bool:
        return self.status == BLOCKED_STATUS


class City(BaseModel):
    id: str
    name: str


class AchievementUnlock(BaseModel):
    """Ledger row: ``achievement_id`` unlocked for ``student_id``."""

    student_id: str
    achievement_id: str
    unlocked_at: dt.datetime


class CalendarDay(BaseModel):
    date: dt.date
    weekday: int
    status: DayStatus
