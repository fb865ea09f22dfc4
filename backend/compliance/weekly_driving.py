"""
MODUL: Wochenlenkzeit (Art. 6 Abs. 2-3)

Prüft: Max 56h je ISO-Woche, max 90h in zwei aufeinanderfolgenden Wochen.
Fahrten über die Wochengrenze (Montag 00:00 UTC) werden anteilig verbucht.
"""

from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Sequence

from .formatters import format_duration
from .limits import BI_WEEKLY_DRIVING_LIMIT, WEEKLY_DRIVING_LIMIT
from .models import Activity, ActivityType, Violation, ViolationKind, ViolationLevel
from .weeks import consecutive_week_pairs, split_by_week


def accumulate_weekly_driving(timeline: Sequence[Activity]) -> Dict[str, timedelta]:
    """Lenkzeit je Wochenschlüssel (sortiert nach Woche)"""
    totals: Dict[str, timedelta] = defaultdict(timedelta)
    for activity in timeline:
        if activity.type != ActivityType.DRIVING:
            continue
        for key, share in split_by_week(activity.start, activity.end):
            totals[key] += share
    return dict(sorted(totals.items()))


def bi_weekly_total(totals: Dict[str, timedelta], first_week: str, second_week: str) -> timedelta:
    return totals.get(first_week, timedelta(0)) + totals.get(second_week, timedelta(0))


def check_weekly_driving(timeline: Sequence[Activity]) -> List[Violation]:
    totals = accumulate_weekly_driving(timeline)
    violations: List[Violation] = []

    for key, total in totals.items():
        if total > WEEKLY_DRIVING_LIMIT:
            violations.append(Violation(
                level=ViolationLevel.VIOLATION,
                kind=ViolationKind.WEEKLY_DRIVING_EXCEEDED,
                message=(
                    f"🛑 VERSTOSS! Wochenlenkzeit (56h) überschritten ({key})! "
                    f"Diese Woche: {format_duration(total)}."
                ),
            ))

    for first_week, second_week in consecutive_week_pairs(list(totals)):
        total = bi_weekly_total(totals, first_week, second_week)
        if total > BI_WEEKLY_DRIVING_LIMIT:
            violations.append(Violation(
                level=ViolationLevel.VIOLATION,
                kind=ViolationKind.BI_WEEKLY_DRIVING_EXCEEDED,
                message=(
                    f"🛑 VERSTOSS! 2-Wochen-Lenkzeit (90h) überschritten ({first_week} & {second_week})! "
                    f"Gesamt: {format_duration(total)}."
                ),
            ))
    return violations
