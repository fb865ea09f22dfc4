"""
MODUL: Wöchentliche Ruhezeit & Ausgleich (Art. 8 Abs. 6-7)

- Wochenruhezeit: Ruhe ≥ 24h (reduziert) bzw. ≥ 45h (regelmäßig)
- In zwei aufeinanderfolgenden Wochen mindestens eine regelmäßige Wochenruhe
- Spätestens 6 Tage nach der letzten Wochenruhe beginnt die nächste
- Reduzierte Wochenruhe → Ausgleich (45h - Dauer) bis Ende der Woche + 2 Wochen
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .formatters import format_date, format_duration
from .limits import (
    MAX_WORK_PERIOD_BEFORE_WEEKLY_REST,
    REST_COMPENSATION_PERIOD,
    REST_DEBT_EPSILON,
    WEEKLY_REST_NORMAL,
    WEEKLY_REST_REDUCED,
)
from .models import Activity, ActivityType, RestDebt, Violation, ViolationKind, ViolationLevel
from .weeks import consecutive_week_pairs, week_end, week_key

logger = logging.getLogger(__name__)


@dataclass
class WeeklyRestEntry:
    activity_id: str
    is_reduced: bool


def weekly_rests(timeline: Sequence[Activity]) -> List[Activity]:
    return [act for act in timeline if act.is_rest_of_at_least(WEEKLY_REST_REDUCED)]


def group_by_week(rests: Sequence[Activity]) -> Dict[str, List[WeeklyRestEntry]]:
    """Wochenruhezeiten nach ISO-Woche ihres Endes"""
    by_week: Dict[str, List[WeeklyRestEntry]] = defaultdict(list)
    for rest in rests:
        by_week[week_key(rest.end)].append(WeeklyRestEntry(
            activity_id=rest.id,
            is_reduced=rest.duration < WEEKLY_REST_NORMAL,
        ))
    return dict(sorted(by_week.items()))


def consecutive_reduced_weeks(
    by_week: Dict[str, List[WeeklyRestEntry]],
) -> List[Tuple[str, List[WeeklyRestEntry]]]:
    """
    Wochenpaare, in denen beide Wochen nur reduzierte Wochenruhezeiten haben

    Returns:
        Liste von (zweite Woche, deren Ruhezeiten)
    """
    offending = []
    for first_week, second_week in consecutive_week_pairs(list(by_week)):
        first = by_week.get(first_week, [])
        second = by_week.get(second_week, [])
        has_normal_rest = any(not r.is_reduced for r in first) or any(not r.is_reduced for r in second)
        if first and second and not has_normal_rest:
            offending.append((second_week, second))
    return offending


def invalid_reduced_rest_ids(by_week: Dict[str, List[WeeklyRestEntry]]) -> Set[str]:
    """Reduzierte Ruhezeiten, die keinen Ausgleichsanspruch begründen"""
    return {
        entry.activity_id
        for _, entries in consecutive_reduced_weeks(by_week)
        for entry in entries
    }


def weekly_rest_anchor(timeline: Sequence[Activity], reference: Optional[datetime]) -> Optional[datetime]:
    """Ende der letzten Wochenruhezeit (Referenz, sonst erster Start)"""
    anchor = reference
    for rest in weekly_rests(timeline):
        if anchor is None or rest.end > anchor:
            anchor = rest.end
    if anchor is None and timeline:
        anchor = timeline[0].start
    return anchor


# ============== Wochenruhe-Regeln ==============

def check_weekly_rest(timeline: Sequence[Activity], reference: Optional[datetime]) -> List[Violation]:
    """6-Tage-Regel + aufeinanderfolgende reduzierte Wochenruhezeiten"""
    if not timeline:
        return []

    violations: List[Violation] = []
    anchor = weekly_rest_anchor(timeline, reference)
    last_activity = timeline[-1]
    if last_activity.end - anchor > MAX_WORK_PERIOD_BEFORE_WEEKLY_REST:
        if not last_activity.is_rest_of_at_least(WEEKLY_REST_REDUCED):
            violations.append(Violation(
                level=ViolationLevel.VIOLATION,
                kind=ViolationKind.SIX_DAY_PERIOD_EXCEEDED,
                message=(
                    "🛑 VERSTOSS! 6-Tage-Zeitraum seit der letzten Wochenruhezeit überschritten "
                    "und keine neue Wochenruhezeit begonnen!"
                ),
            ))

    for _, entries in consecutive_reduced_weeks(group_by_week(weekly_rests(timeline))):
        violations.append(Violation(
            level=ViolationLevel.VIOLATION,
            kind=ViolationKind.CONSECUTIVE_REDUCED_WEEKLY_RESTS,
            message=(
                "🛑 VERSTOSS! Zwei reduzierte Wochenruhezeiten in Folge sind nicht erlaubt. "
                "In zwei aufeinanderfolgenden Wochen ist mindestens eine regelmäßige Wochenruhezeit (45h) nötig."
            ),
            activity_id=entries[0].activity_id,
        ))
    return violations


# ============== Ausgleich (Ruhezeit-Schuld) ==============

def settle_debts(debts: List[RestDebt], surplus: timedelta) -> List[RestDebt]:
    """
    Überschuss einer langen Wochenruhe auf offene Schulden verteilen

    Früheste Frist zuerst; Reste unter 1 Minute gelten als ausgeglichen.
    """
    debts.sort(key=lambda debt: debt.deadline)
    for debt in debts:
        if surplus <= timedelta(0):
            break
        payment = min(surplus, debt.amount)
        debt.amount -= payment
        surplus -= payment
    return [debt for debt in debts if debt.amount >= REST_DEBT_EPSILON]


def calculate_rest_debts(timeline: Sequence[Activity], reference: Optional[datetime]) -> List[RestDebt]:
    """
    Offene Ausgleichspflichten nach Frist sortiert

    Args:
        timeline: Normalisierte Timeline
        reference: Ende der letzten Wochenruhe vor dem Protokoll (ältere Ruhezeiten zählen nicht)
    """
    relevant = [act for act in timeline if reference is None or act.end > reference]
    invalid_ids = invalid_reduced_rest_ids(group_by_week(weekly_rests(relevant)))

    debts: List[RestDebt] = []
    weeks_with_normal_rest: Set[str] = set()
    weeks_with_reduced_rest: Set[str] = set()

    for activity in relevant:
        if activity.type != ActivityType.REST:
            continue

        rest_duration = activity.duration
        key = week_key(activity.end)

        if rest_duration >= WEEKLY_REST_NORMAL:
            weeks_with_normal_rest.add(key)
            surplus = rest_duration - WEEKLY_REST_NORMAL
            if surplus > timedelta(0) and debts:
                debts = settle_debts(debts, surplus)
                logger.debug(f"Ausgleich aus Ruhezeit {activity.id}: {format_duration(surplus)}")
        elif (
            rest_duration >= WEEKLY_REST_REDUCED
            and activity.id not in invalid_ids
            and key not in weeks_with_normal_rest
            and key not in weeks_with_reduced_rest
        ):
            debt = RestDebt(
                amount=WEEKLY_REST_NORMAL - rest_duration,
                deadline=week_end(activity.end) + REST_COMPENSATION_PERIOD,
            )
            debts.append(debt)
            weeks_with_reduced_rest.add(key)
            logger.debug(f"Ausgleichspflicht {format_duration(debt.amount)} bis {debt.deadline.isoformat()}")

    return sorted(debts, key=lambda debt: debt.deadline)


def check_rest_compensation(
    timeline: Sequence[Activity],
    reference: Optional[datetime],
    now: datetime,
) -> List[Violation]:
    debts = calculate_rest_debts(timeline, reference)
    if debts and debts[0].deadline < now:
        return [Violation(
            level=ViolationLevel.VIOLATION,
            kind=ViolationKind.REST_COMPENSATION_OVERDUE,
            message=(
                f"🛑 VERSTOSS! Frist für den Ausgleich der reduzierten Wochenruhezeit "
                f"({format_date(debts[0].deadline)}) ist abgelaufen!"
            ),
        )]
    return []
