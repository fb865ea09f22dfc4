"""
MODUL: Tageslenkzeit, Schichtzeit & tägliche Ruhezeit (Art. 6 Abs. 1, Art. 8)

Eine Schicht (Arbeitsperiode) beginnt mit dem Ende der letzten qualifizierenden
Ruhezeit (≥ 9h) bzw. dem Referenzzeitpunkt und endet mit dem Beginn der
nächsten qualifizierenden Ruhezeit.

Entscheidungsbaum je abgeschlossener Schicht:
- Schicht > 24h? → VERSTOSS (keine Tagesruhe innerhalb 24h)
- Schicht > 15h (oder > 13h ohne Verlängerung)? → VERSTOSS, sonst > 13h → Verlängerung verbraucht
- Lenkzeit > 10h (oder > 9h ohne Verlängerung)? → VERSTOSS, sonst > 9h → Verlängerung verbraucht
- Ruhezeit < 11h → reduzierte Tagesruhe (max. 3 zwischen zwei Wochenruhezeiten)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from .formatters import format_duration
from .limits import (
    DAILY_DRIVING_LIMIT_EXTENDED,
    DAILY_DRIVING_LIMIT_NORMAL,
    DAILY_REST_NORMAL,
    DAILY_REST_REDUCED,
    DAILY_WORK_PERIOD_EXTENDED,
    DAILY_WORK_PERIOD_NORMAL,
    MAX_EXTENDED_DRIVES_PER_WEEK,
    MAX_EXTENDED_WORK_PERIODS_PER_WEEK,
    MAX_REDUCED_DAILY_RESTS,
    MAX_WORK_PERIOD_WITHOUT_DAILY_REST,
    WEEKLY_REST_REDUCED,
)
from .models import Activity, ActivityType, Violation, ViolationKind, ViolationLevel
from .weeks import week_key

logger = logging.getLogger(__name__)


@dataclass
class DutyPeriod:
    start: datetime
    end: datetime
    driving: timedelta
    closing_rest: Optional[Activity] = None   # None = Schicht läuft noch

    @property
    def duty(self) -> timedelta:
        return self.end - self.start

    @property
    def week_key(self) -> str:
        return week_key(self.end)

    @property
    def is_open(self) -> bool:
        return self.closing_rest is None


@dataclass
class WeeklyRights:
    """Verbrauchte Verlängerungen einer ISO-Woche"""
    extended_drives: int = 0
    extended_work_periods: int = 0

    @property
    def can_extend_driving(self) -> bool:
        return self.extended_drives < MAX_EXTENDED_DRIVES_PER_WEEK

    @property
    def can_extend_work(self) -> bool:
        return self.extended_work_periods < MAX_EXTENDED_WORK_PERIODS_PER_WEEK

    def duty_exceeded(self, duty: timedelta) -> bool:
        return duty > DAILY_WORK_PERIOD_EXTENDED or (
            duty > DAILY_WORK_PERIOD_NORMAL and not self.can_extend_work
        )

    def driving_exceeded(self, driving: timedelta) -> bool:
        return driving > DAILY_DRIVING_LIMIT_EXTENDED or (
            driving > DAILY_DRIVING_LIMIT_NORMAL and not self.can_extend_driving
        )


@dataclass
class CycleStatus:
    """Stand seit der letzten Wochenruhezeit (für die Zusammenfassung)"""
    extended_drives_used_this_week: int
    extended_work_periods_used_this_week: int
    reduced_rests_used: int
    ongoing_start: datetime
    ongoing_duty: timedelta
    ongoing_driving: timedelta


class DrivingWindows:
    """
    Lenkzeit je Zeitfenster in einem Durchlauf über die sortierte Timeline

    Fenster müssen mit nicht fallendem Ende abgefragt werden und dürfen erst
    nach dem Ende des vorherigen beginnen (wie die Schichten).
    """

    def __init__(self, timeline: Sequence[Activity]):
        self._drives = [act for act in timeline if act.type == ActivityType.DRIVING]
        self._next = 0
        self._pending: List[Activity] = []

    def driving(self, start: datetime, end: datetime) -> timedelta:
        """Lenkzeit im Fenster [start, end)"""
        while self._next < len(self._drives) and self._drives[self._next].start < end:
            self._pending.append(self._drives[self._next])
            self._next += 1

        total = timedelta(0)
        for activity in self._pending:
            overlap = min(activity.end, end) - max(activity.start, start)
            if overlap > timedelta(0):
                total += overlap
        # Nur Fahrten über das Fensterende hinaus bleiben relevant
        self._pending = [act for act in self._pending if act.end > end]
        return total


def segment_duty_periods(
    timeline: Sequence[Activity],
    anchor: datetime,
) -> Tuple[List[DutyPeriod], Optional[DutyPeriod]]:
    """
    Timeline in Schichten zerlegen

    Args:
        timeline: Normalisierte Timeline
        anchor: Ende der letzten bekannten Ruhezeit (Beginn der ersten Schicht)

    Returns:
        (abgeschlossene Schichten, laufende Schicht oder None)
    """
    closed: List[DutyPeriod] = []
    windows = DrivingWindows(timeline)
    period_start = anchor

    for activity in timeline:
        if activity.end <= period_start:
            continue
        if activity.is_rest_of_at_least(DAILY_REST_REDUCED):
            closed.append(DutyPeriod(
                start=period_start,
                end=activity.start,
                driving=windows.driving(period_start, activity.start),
                closing_rest=activity,
            ))
            period_start = activity.end

    open_period = None
    if timeline and timeline[-1].end > period_start:
        last_end = timeline[-1].end
        open_period = DutyPeriod(
            start=period_start,
            end=last_end,
            driving=windows.driving(period_start, last_end),
        )
    return closed, open_period


def _violation(kind: ViolationKind, message: str, activity: Activity) -> Violation:
    return Violation(level=ViolationLevel.VIOLATION, kind=kind, message=message, activity_id=activity.id)


def check_duty_periods(timeline: Sequence[Activity], anchor: datetime) -> List[Violation]:
    """
    Alle Schichten prüfen (abgeschlossene + laufende)

    Verlängerungen werden je ISO-Woche des Schichtendes gezählt, reduzierte
    Tagesruhezeiten seit der letzten Wochenruhezeit.
    """
    violations: List[Violation] = []
    rights: Dict[str, WeeklyRights] = defaultdict(WeeklyRights)
    reduced_rests_used = 0

    closed, open_period = segment_duty_periods(timeline, anchor)

    for period in closed:
        rest = period.closing_rest
        if rest.duration >= WEEKLY_REST_REDUCED:
            reduced_rests_used = 0

        if period.duty > MAX_WORK_PERIOD_WITHOUT_DAILY_REST:
            violations.append(_violation(
                ViolationKind.NO_DAILY_REST_WITHIN_24H,
                "🛑 VERSTOSS! Innerhalb von 24h nach Ende der letzten Ruhezeit keine neue Tagesruhezeit genommen.",
                rest,
            ))

        week = rights[period.week_key]
        if week.duty_exceeded(period.duty):
            violations.append(_violation(
                ViolationKind.DAILY_DUTY_EXCEEDED,
                f"🛑 VERSTOSS! Tägliche Schichtzeit überschritten. Dauer: {format_duration(period.duty)}.",
                rest,
            ))
        elif period.duty > DAILY_WORK_PERIOD_NORMAL:
            week.extended_work_periods += 1

        if week.driving_exceeded(period.driving):
            violations.append(_violation(
                ViolationKind.DAILY_DRIVING_EXCEEDED,
                f"🛑 VERSTOSS! Tageslenkzeit überschritten. Lenkzeit: {format_duration(period.driving)}.",
                rest,
            ))
        elif period.driving > DAILY_DRIVING_LIMIT_NORMAL:
            week.extended_drives += 1

        if rest.duration < DAILY_REST_NORMAL:
            if reduced_rests_used < MAX_REDUCED_DAILY_RESTS:
                reduced_rests_used += 1
            else:
                violations.append(_violation(
                    ViolationKind.REDUCED_DAILY_REST_EXHAUSTED,
                    "🛑 VERSTOSS! Tagesruhezeit zu kurz, keine reduzierte Ruhezeit mehr verfügbar. "
                    f"Ruhezeit: {format_duration(rest.duration)}.",
                    rest,
                ))

    if open_period is not None:
        violations.extend(_check_open_period(timeline[-1], open_period, rights))

    logger.debug(f"{len(closed)} Schicht(en) geprüft, {len(violations)} Verstoß/Verstöße")
    return violations


def _check_open_period(
    last_activity: Activity,
    period: DutyPeriod,
    rights: Dict[str, WeeklyRights],
) -> List[Violation]:
    # Nur lesen - die laufende Schicht verbraucht keine Rechte
    week = rights.get(period.week_key, WeeklyRights())
    violations = []

    if period.duty > MAX_WORK_PERIOD_WITHOUT_DAILY_REST:
        violations.append(_violation(
            ViolationKind.ONGOING_NO_DAILY_REST_WITHIN_24H,
            "🛑 VERSTOSS! Seit der letzten Ruhezeit keine ausreichende Tagesruhe im 24h-Zeitraum.",
            last_activity,
        ))
    if week.duty_exceeded(period.duty):
        violations.append(_violation(
            ViolationKind.ONGOING_DUTY_EXCEEDED,
            f"🛑 VERSTOSS! Schichtzeit in der laufenden Schicht überschritten! Dauer: {format_duration(period.duty)}.",
            last_activity,
        ))
    if week.driving_exceeded(period.driving):
        violations.append(_violation(
            ViolationKind.ONGOING_DRIVING_EXCEEDED,
            f"🛑 VERSTOSS! Lenkzeit in der laufenden Schicht überschritten! Lenkzeit: {format_duration(period.driving)}.",
            last_activity,
        ))
    return violations


def analyse_current_cycle(
    timeline: Sequence[Activity],
    weekly_rest_end: datetime,
    current_week: str,
) -> CycleStatus:
    """
    Verbrauchte Rechte seit der letzten Wochenruhezeit + laufende Schicht

    Verlängerungen zählen nur für Schichten, die in current_week enden; die
    laufende Schicht belegt eine Verlängerung, solange noch eine frei ist.
    """
    closed, open_period = segment_duty_periods(timeline, weekly_rest_end)

    rights = WeeklyRights()
    reduced_rests_used = 0
    for period in closed:
        if period.week_key == current_week:
            if period.driving > DAILY_DRIVING_LIMIT_NORMAL:
                rights.extended_drives += 1
            if period.duty > DAILY_WORK_PERIOD_NORMAL:
                rights.extended_work_periods += 1
        if period.closing_rest.duration < DAILY_REST_NORMAL:
            reduced_rests_used += 1

    ongoing_start = closed[-1].closing_rest.end if closed else weekly_rest_end
    ongoing_duty = timedelta(0)
    ongoing_driving = timedelta(0)
    if open_period is not None:
        ongoing_start = open_period.start
        ongoing_duty = open_period.duty
        ongoing_driving = open_period.driving
        if open_period.week_key == current_week:
            if ongoing_driving > DAILY_DRIVING_LIMIT_NORMAL and rights.can_extend_driving:
                rights.extended_drives += 1
            if ongoing_duty > DAILY_WORK_PERIOD_NORMAL and rights.can_extend_work:
                rights.extended_work_periods += 1

    return CycleStatus(
        extended_drives_used_this_week=rights.extended_drives,
        extended_work_periods_used_this_week=rights.extended_work_periods,
        reduced_rests_used=reduced_rests_used,
        ongoing_start=ongoing_start,
        ongoing_duty=ongoing_duty,
        ongoing_driving=ongoing_driving,
    )
