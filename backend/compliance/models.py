"""
Compliance Data Models - Fahrtenbuch & Auswertung
Aktivitäten, Verstöße und Status-Zusammenfassung gemäß EU 561/2006
"""

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .exceptions import OpenActivityError

IMPLICIT_REST_PREFIX = "implicit-rest-"


class ActivityType(str, Enum):
    """Aktivitätstyp im Fahrtenbuch"""
    START_WORK = "start_work"   # ▶️ Arbeitsbeginn (Marker)
    DRIVING = "driving"         # 🚗 Lenkzeit
    BREAK = "break"             # ☕ Pause
    REST = "rest"               # 🛌 Ruhezeit
    OTHER_WORK = "other_work"   # 🛠️ andere Arbeit
    END_WORK = "end_work"       # ⏹️ Arbeitsende (Marker)


DURATIONAL_ACTIVITY_TYPES = (
    ActivityType.DRIVING,
    ActivityType.BREAK,
    ActivityType.REST,
    ActivityType.OTHER_WORK,
)


class ViolationLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    VIOLATION = "violation"


class ViolationKind(str, Enum):
    """Maschinenlesbare Art eines Befunds (Text ist reine Darstellung)"""
    OVERLAPPING_ACTIVITIES = "overlapping_activities"
    CONTINUOUS_DRIVING = "continuous_driving"
    NO_DAILY_REST_WITHIN_24H = "no_daily_rest_within_24h"
    DAILY_DUTY_EXCEEDED = "daily_duty_exceeded"
    DAILY_DRIVING_EXCEEDED = "daily_driving_exceeded"
    REDUCED_DAILY_REST_EXHAUSTED = "reduced_daily_rest_exhausted"
    ONGOING_NO_DAILY_REST_WITHIN_24H = "ongoing_no_daily_rest_within_24h"
    ONGOING_DUTY_EXCEEDED = "ongoing_duty_exceeded"
    ONGOING_DRIVING_EXCEEDED = "ongoing_driving_exceeded"
    WEEKLY_DRIVING_EXCEEDED = "weekly_driving_exceeded"
    BI_WEEKLY_DRIVING_EXCEEDED = "bi_weekly_driving_exceeded"
    SIX_DAY_PERIOD_EXCEEDED = "six_day_period_exceeded"
    CONSECUTIVE_REDUCED_WEEKLY_RESTS = "consecutive_reduced_weekly_rests"
    REST_COMPENSATION_OVERDUE = "rest_compensation_overdue"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============== INPUTS (vom Fahrer) ==============

class Activity(BaseModel):
    """
    Eine Aktivität im Fahrtenbuch
    end=None bedeutet: Aktivität läuft noch
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: ActivityType
    start: datetime
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive Zeitstempel gelten als UTC
        return as_utc(value)

    @model_validator(mode="after")
    def _check_chronology(self) -> "Activity":
        if self.end is not None and self.end < self.start:
            raise ValueError(f"Activity '{self.id}' ends before it starts")
        return self

    @property
    def is_ongoing(self) -> bool:
        return self.end is None

    @property
    def is_implicit(self) -> bool:
        """Vom System eingefügte Ruhezeit (nicht protokolliert)"""
        return self.id.startswith(IMPLICIT_REST_PREFIX)

    @property
    def duration(self) -> timedelta:
        if self.end is None:
            raise OpenActivityError(self.id)
        return self.end - self.start

    def is_rest_of_at_least(self, threshold: timedelta) -> bool:
        return self.type == ActivityType.REST and self.duration >= threshold


class ActivitySettings(BaseModel):
    """Standarddauer einer Aktivität (Formular-Vorbelegung)"""
    hours: int = Field(0, ge=0)
    minutes: int = Field(0, ge=0, lt=60)

    @property
    def duration(self) -> timedelta:
        return timedelta(hours=self.hours, minutes=self.minutes)


def _default_durations() -> Dict[ActivityType, ActivitySettings]:
    return {
        ActivityType.DRIVING: ActivitySettings(hours=4, minutes=30),
        ActivityType.BREAK: ActivitySettings(hours=0, minutes=45),
        ActivityType.REST: ActivitySettings(hours=11, minutes=0),
        ActivityType.OTHER_WORK: ActivitySettings(hours=2, minutes=0),
    }


class AppSettings(BaseModel):
    """Benutzereinstellungen: Standarddauer je Aktivitätstyp"""
    durations: Dict[ActivityType, ActivitySettings] = Field(default_factory=_default_durations)

    @field_validator("durations")
    @classmethod
    def _only_durational_types(cls, value: Dict[ActivityType, ActivitySettings]):
        unknown = [t.value for t in value if t not in DURATIONAL_ACTIVITY_TYPES]
        if unknown:
            raise ValueError(f"No default duration allowed for: {', '.join(unknown)}")
        merged = _default_durations()
        merged.update(value)
        return merged

    def default_duration(self, activity_type: ActivityType) -> Optional[timedelta]:
        setting = self.durations.get(activity_type)
        return setting.duration if setting else None


# ============== OUTPUTS (zur App/UI) ==============

class Violation(BaseModel):
    """Ein Befund der Regelprüfung"""
    level: ViolationLevel = ViolationLevel.VIOLATION
    kind: ViolationKind
    message: str
    activity_id: Optional[str] = None


class Suggestion(BaseModel):
    """Genau eine Handlungsempfehlung"""
    level: ViolationLevel = ViolationLevel.INFO
    message: str


class RestDebt(BaseModel):
    """Ausgleichspflicht aus einer reduzierten Wochenruhezeit"""
    amount: timedelta
    deadline: datetime


class SplitBreakInfo(BaseModel):
    first_part_taken: bool = True


class StatusSummary(BaseModel):
    """
    Restbudgets zum aktuellen Zeitpunkt
    Alle Werte sind roh (können negativ sein); clamped() liefert Anzeigewerte.
    """
    remaining_continuous_driving: timedelta
    remaining_daily_driving_normal: timedelta
    remaining_daily_driving_extended: timedelta
    remaining_daily_work_normal: timedelta
    remaining_daily_work_extended: timedelta
    remaining_weekly_driving: timedelta
    remaining_bi_weekly_driving: timedelta
    time_until_weekly_rest_due: timedelta

    extended_drives_used_this_week: int = 0
    extended_work_periods_used_this_week: int = 0
    reduced_rests_used: int = 0

    total_uncompensated_rest: timedelta = timedelta(0)
    uncompensated_rest_deadline: Optional[datetime] = None

    split_break_info: Optional[SplitBreakInfo] = None
    current_week_key: str
    next_action_suggestion: Suggestion

    def clamped(self) -> "StatusSummary":
        """Kopie mit auf 0 begrenzten Restzeiten (nur für die Anzeige)"""
        zero = timedelta(0)
        budgets = {
            name: max(zero, getattr(self, name))
            for name in (
                "remaining_continuous_driving",
                "remaining_daily_driving_normal",
                "remaining_daily_driving_extended",
                "remaining_daily_work_normal",
                "remaining_daily_work_extended",
                "remaining_weekly_driving",
                "remaining_bi_weekly_driving",
                "time_until_weekly_rest_due",
            )
        }
        return self.model_copy(update=budgets)


class ComplianceAnalysis(BaseModel):
    """Verstöße + Zusammenfassung aus einem Aufruf"""
    violations: List[Violation] = []
    summary: StatusSummary


class ComplianceReport(BaseModel):
    """Auswertung für einen Zeitraum"""
    model_config = ConfigDict(extra="ignore")

    start: datetime
    end: datetime
    total_driving: timedelta = timedelta(0)
    total_other_work: timedelta = timedelta(0)
    total_break: timedelta = timedelta(0)
    total_rest: timedelta = timedelta(0)
    violations_in_period: List[Violation] = []

    @computed_field
    @property
    def total_work(self) -> timedelta:
        return self.total_driving + self.total_other_work
