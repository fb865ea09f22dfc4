"""
EU 561/2006 Compliance-Engine
Verstöße und Restbudgets aus dem Fahrtenbuch berechnen

Module:
- timeline: Normalisierung (laufende Aktivitäten, Sortierung, implizite Ruhezeiten)
- continuous: 4h30 Lenkzeit ohne Pause (teilbar 15+30)
- duty: 9h/10h Tageslenkzeit, 13h/15h Schicht, 11h/9h Tagesruhe
- weekly_driving: 56h/90h Wochenlenkzeit
- weekly_rest: 45h/24h Wochenruhe, 6-Tage-Regel, Ausgleich

Alle Funktionen sind zustandslos: gleiche Eingaben (inkl. now) → gleiche Ausgabe.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from .continuous import track_continuous_driving
from .duty import analyse_current_cycle, check_duty_periods
from .formatters import format_duration, format_full_duration
from .limits import (
    BI_WEEKLY_DRIVING_LIMIT,
    CONTINUOUS_DRIVING_LIMIT,
    CONTINUOUS_DRIVING_WARNING,
    DAILY_DRIVING_LIMIT_EXTENDED,
    DAILY_DRIVING_LIMIT_NORMAL,
    DAILY_WORK_PERIOD_EXTENDED,
    DAILY_WORK_PERIOD_NORMAL,
    MAX_EXTENDED_DRIVES_PER_WEEK,
    MAX_EXTENDED_WORK_PERIODS_PER_WEEK,
    MAX_WORK_PERIOD_BEFORE_WEEKLY_REST,
    MINIMUM_BREAK,
    WEEKLY_DRIVING_LIMIT,
    WEEKLY_REST_WARNING,
)
from .models import (
    Activity,
    ComplianceAnalysis,
    SplitBreakInfo,
    StatusSummary,
    Suggestion,
    Violation,
    ViolationKind,
    ViolationLevel,
    as_utc,
)
from .timeline import inject_implicit_rests, resolve_ongoing, sort_timeline, utc_now
from .weekly_driving import accumulate_weekly_driving, check_weekly_driving
from .weekly_rest import (
    calculate_rest_debts,
    check_rest_compensation,
    check_weekly_rest,
    weekly_rest_anchor,
)
from .weeks import previous_week_key, week_key

logger = logging.getLogger(__name__)

ZERO = timedelta(0)


def _prepare(
    activities: Sequence[Activity],
    now: datetime,
    floor_minute: bool,
) -> Tuple[List[Activity], List[Activity]]:
    """(sortierte Timeline, Timeline mit impliziten Ruhezeiten)"""
    ordered = sort_timeline(resolve_ongoing(activities, now, floor_minute))
    return ordered, inject_implicit_rests(ordered)


# ============== Eingabeprüfung ==============

def check_input_order(ordered: Sequence[Activity]) -> List[Violation]:
    """Überlappende Aktivitäten sind ein Datenfehler, kein Programmfehler"""
    violations = []
    for current, following in zip(ordered, ordered[1:]):
        if current.end > following.start:
            violations.append(Violation(
                level=ViolationLevel.VIOLATION,
                kind=ViolationKind.OVERLAPPING_ACTIVITIES,
                message=(
                    f"Fehler: Aktivitäten überlappen. '{following.type.value}' beginnt, "
                    f"bevor '{current.type.value}' beendet ist."
                ),
                activity_id=following.id,
            ))
    return violations


# ============== HAUPTFUNKTION: Verstöße ==============

def check_all_violations(
    activities: Sequence[Activity],
    last_weekly_rest_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> List[Violation]:
    """
    Alle Regeln prüfen

    Args:
        activities: Fahrtenbuch in beliebiger Reihenfolge (laufende mit end=None)
        last_weekly_rest_end: Ende der letzten Wochenruhe vor dem Protokoll
        now: Bezugszeitpunkt (Standard: aktuelle Zeit)

    Returns:
        Verstöße in Reihenfolge: Eingabe, Lenkzeit, Schicht, Woche, Wochenruhe, Ausgleich
    """
    reference = as_utc(last_weekly_rest_end)
    if not activities and reference is None:
        return []

    now = as_utc(now) if now else utc_now()
    ordered, timeline = _prepare(activities, now, floor_minute=False)
    first_start = timeline[0].start if timeline else None
    duty_anchor = reference or first_start or now

    continuous_violations, _ = track_continuous_driving(timeline)
    violations = [
        *check_input_order(ordered),
        *continuous_violations,
        *check_duty_periods(timeline, duty_anchor),
        *check_weekly_driving(timeline),
        *check_weekly_rest(timeline, reference),
        *check_rest_compensation(timeline, reference or first_start, now),
    ]
    logger.debug(f"{len(violations)} Befund(e) für {len(activities)} Aktivität(en)")
    return violations


# ============== Handlungsempfehlung ==============

@dataclass
class BudgetSnapshot:
    """Rohwerte für die Auswahl der Handlungsempfehlung"""
    remaining_continuous_driving: timedelta
    remaining_weekly_driving: timedelta
    remaining_bi_weekly_driving: timedelta
    time_until_weekly_rest_due: timedelta
    total_remaining_driving: timedelta
    total_remaining_work: timedelta
    ongoing_driving: timedelta
    ongoing_duty: timedelta
    extended_drives_used: int
    extended_work_periods_used: int


SuggestionRule = Tuple[
    Callable[[BudgetSnapshot], bool],
    ViolationLevel,
    Callable[[BudgetSnapshot], str],
]

# Reihenfolge = Priorität, die erste zutreffende Regel gewinnt
SUGGESTION_RULES: List[SuggestionRule] = [
    (
        lambda s: s.remaining_bi_weekly_driving < ZERO,
        ViolationLevel.VIOLATION,
        lambda s: "🛑 VERSTOSS! 2-Wochen-Lenkzeit (90h) überschritten! Keine Weiterfahrt möglich.",
    ),
    (
        lambda s: s.remaining_weekly_driving < ZERO,
        ViolationLevel.VIOLATION,
        lambda s: "🛑 VERSTOSS! Wochenlenkzeit (56h) überschritten! Diese Woche keine Fahrt mehr.",
    ),
    (
        lambda s: s.time_until_weekly_rest_due < ZERO,
        ViolationLevel.VIOLATION,
        lambda s: "🛑 VERSTOSS! 6-Tage-Zeitraum überschritten. SOFORT Wochenruhezeit beginnen!",
    ),
    (
        lambda s: s.total_remaining_work < ZERO,
        ViolationLevel.VIOLATION,
        lambda s: "🛑 VERSTOSS! Schichtzeit überschritten. SOFORT Tagesruhezeit beginnen.",
    ),
    (
        lambda s: s.total_remaining_driving < ZERO,
        ViolationLevel.VIOLATION,
        lambda s: "🛑 VERSTOSS! Tageslenkzeit überschritten. SOFORT Tagesruhezeit beginnen.",
    ),
    (
        lambda s: s.remaining_continuous_driving < ZERO,
        ViolationLevel.VIOLATION,
        lambda s: f"🛑 VERSTOSS! Lenkzeit ohne Pause überschritten. SOFORT {format_duration(MINIMUM_BREAK)} Pause!",
    ),
    (
        lambda s: s.ongoing_duty > DAILY_WORK_PERIOD_NORMAL and s.extended_work_periods_used > 0,
        ViolationLevel.WARNING,
        lambda s: (
            "⚠️ 13h Schichtzeit überschritten, Verlängerung wird genutzt. "
            f"Restzeit: {format_duration(s.total_remaining_work)}"
        ),
    ),
    (
        lambda s: s.ongoing_driving > DAILY_DRIVING_LIMIT_NORMAL and s.extended_drives_used > 0,
        ViolationLevel.WARNING,
        lambda s: (
            "⚠️ 9h Tageslenkzeit überschritten, Verlängerung wird genutzt. "
            f"Restzeit: {format_duration(s.total_remaining_driving)}"
        ),
    ),
    (
        lambda s: s.total_remaining_work <= ZERO,
        ViolationLevel.WARNING,
        lambda s: "⚠️ Schichtzeit ausgeschöpft. Tagesruhezeit beginnen.",
    ),
    (
        lambda s: s.total_remaining_driving <= ZERO,
        ViolationLevel.WARNING,
        lambda s: "⚠️ Tageslenkzeit ausgeschöpft. Tagesruhezeit beginnen.",
    ),
    (
        lambda s: s.remaining_continuous_driving <= ZERO,
        ViolationLevel.WARNING,
        lambda s: f"⚠️ Lenkzeit ohne Pause ausgeschöpft. {format_duration(MINIMUM_BREAK)} Pause einlegen.",
    ),
    (
        lambda s: s.time_until_weekly_rest_due <= WEEKLY_REST_WARNING,
        ViolationLevel.INFO,
        lambda s: f"🟡 Wochenruhezeit steht bevor! Restzeit: {format_full_duration(s.time_until_weekly_rest_due)}.",
    ),
    (
        lambda s: s.remaining_continuous_driving <= CONTINUOUS_DRIVING_WARNING,
        ViolationLevel.INFO,
        lambda s: f"🟡 Lenkzeit ohne Pause fast erreicht. {format_duration(MINIMUM_BREAK)} Pause einplanen.",
    ),
]


def select_suggestion(snapshot: BudgetSnapshot) -> Suggestion:
    """Genau eine Empfehlung - niedrigere Prioritäten werden unterdrückt"""
    for predicate, level, build_message in SUGGESTION_RULES:
        if predicate(snapshot):
            return Suggestion(level=level, message=build_message(snapshot))
    return Suggestion(
        level=ViolationLevel.INFO,
        message=f"Noch {format_duration(snapshot.remaining_continuous_driving)} bis zur nächsten Pause.",
    )


# ============== HAUPTFUNKTION: Zusammenfassung ==============

def _initial_summary(current_week: str) -> StatusSummary:
    return StatusSummary(
        remaining_continuous_driving=CONTINUOUS_DRIVING_LIMIT,
        remaining_daily_driving_normal=DAILY_DRIVING_LIMIT_NORMAL,
        remaining_daily_driving_extended=DAILY_DRIVING_LIMIT_EXTENDED - DAILY_DRIVING_LIMIT_NORMAL,
        remaining_daily_work_normal=DAILY_WORK_PERIOD_NORMAL,
        remaining_daily_work_extended=DAILY_WORK_PERIOD_EXTENDED - DAILY_WORK_PERIOD_NORMAL,
        remaining_weekly_driving=WEEKLY_DRIVING_LIMIT,
        remaining_bi_weekly_driving=BI_WEEKLY_DRIVING_LIMIT,
        time_until_weekly_rest_due=MAX_WORK_PERIOD_BEFORE_WEEKLY_REST,
        current_week_key=current_week,
        next_action_suggestion=Suggestion(
            level=ViolationLevel.INFO,
            message="Erste Aktivität eingeben, um zu beginnen.",
        ),
    )


def calculate_summary(
    activities: Sequence[Activity],
    last_weekly_rest_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> StatusSummary:
    """
    Restbudgets + eine Handlungsempfehlung zum Zeitpunkt now

    Laufende Aktivitäten werden bei now (auf volle Minute abgerundet) geschlossen.
    Restwerte bleiben roh (negativ = überschritten).
    """
    reference = as_utc(last_weekly_rest_end)
    now = as_utc(now) if now else utc_now()
    _, timeline = _prepare(activities, now, floor_minute=True)

    last_instant = timeline[-1].end if timeline else now
    current_week = week_key(last_instant)
    if not activities and reference is None:
        return _initial_summary(current_week)

    _, continuous = track_continuous_driving(timeline)

    anchor = weekly_rest_anchor(timeline, reference)
    cycle = analyse_current_cycle(timeline, anchor, current_week)

    first_start = timeline[0].start if timeline else None
    debts = calculate_rest_debts(timeline, reference or first_start)

    weekly_totals = accumulate_weekly_driving(timeline)
    current_week_driving = weekly_totals.get(current_week, ZERO)
    previous_week_driving = weekly_totals.get(previous_week_key(current_week), ZERO)

    driving, duty = cycle.ongoing_driving, cycle.ongoing_duty
    remaining_driving_normal = DAILY_DRIVING_LIMIT_NORMAL - min(driving, DAILY_DRIVING_LIMIT_NORMAL)
    remaining_driving_extended = (
        (DAILY_DRIVING_LIMIT_EXTENDED - DAILY_DRIVING_LIMIT_NORMAL)
        - max(ZERO, driving - DAILY_DRIVING_LIMIT_NORMAL)
    )
    remaining_work_normal = DAILY_WORK_PERIOD_NORMAL - min(duty, DAILY_WORK_PERIOD_NORMAL)
    remaining_work_extended = (
        (DAILY_WORK_PERIOD_EXTENDED - DAILY_WORK_PERIOD_NORMAL)
        - max(ZERO, duty - DAILY_WORK_PERIOD_NORMAL)
    )

    drives_used = cycle.extended_drives_used_this_week
    work_used = cycle.extended_work_periods_used_this_week
    total_remaining_driving = remaining_driving_normal + (
        remaining_driving_extended if drives_used < MAX_EXTENDED_DRIVES_PER_WEEK else ZERO
    )
    total_remaining_work = remaining_work_normal + (
        remaining_work_extended if work_used < MAX_EXTENDED_WORK_PERIODS_PER_WEEK else ZERO
    )

    snapshot = BudgetSnapshot(
        remaining_continuous_driving=continuous.remaining,
        remaining_weekly_driving=WEEKLY_DRIVING_LIMIT - current_week_driving,
        remaining_bi_weekly_driving=BI_WEEKLY_DRIVING_LIMIT - (current_week_driving + previous_week_driving),
        time_until_weekly_rest_due=MAX_WORK_PERIOD_BEFORE_WEEKLY_REST - (last_instant - anchor),
        total_remaining_driving=total_remaining_driving,
        total_remaining_work=total_remaining_work,
        ongoing_driving=driving,
        ongoing_duty=duty,
        extended_drives_used=drives_used,
        extended_work_periods_used=work_used,
    )

    return StatusSummary(
        remaining_continuous_driving=snapshot.remaining_continuous_driving,
        remaining_daily_driving_normal=remaining_driving_normal,
        remaining_daily_driving_extended=remaining_driving_extended,
        remaining_daily_work_normal=remaining_work_normal,
        remaining_daily_work_extended=remaining_work_extended,
        remaining_weekly_driving=snapshot.remaining_weekly_driving,
        remaining_bi_weekly_driving=snapshot.remaining_bi_weekly_driving,
        time_until_weekly_rest_due=snapshot.time_until_weekly_rest_due,
        extended_drives_used_this_week=drives_used,
        extended_work_periods_used_this_week=work_used,
        reduced_rests_used=cycle.reduced_rests_used,
        total_uncompensated_rest=sum((debt.amount for debt in debts), ZERO),
        uncompensated_rest_deadline=debts[0].deadline if debts else None,
        split_break_info=SplitBreakInfo() if continuous.split_first_part_taken else None,
        current_week_key=current_week,
        next_action_suggestion=select_suggestion(snapshot),
    )


def analyse(
    activities: Sequence[Activity],
    last_weekly_rest_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> ComplianceAnalysis:
    """Verstöße + Zusammenfassung zum selben Zeitpunkt"""
    now = as_utc(now) if now else utc_now()
    return ComplianceAnalysis(
        violations=check_all_violations(activities, last_weekly_rest_end, now),
        summary=calculate_summary(activities, last_weekly_rest_end, now),
    )
