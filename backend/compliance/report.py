"""
Zeitraum-Auswertung
Summen je Aktivitätstyp + Verstöße, deren Aktivität im Zeitraum beginnt
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Optional, Sequence

from .models import Activity, ActivityType, ComplianceReport, Violation
from .timeline import resolve_ongoing, utc_now

TOTAL_FIELDS: Dict[ActivityType, str] = {
    ActivityType.DRIVING: "total_driving",
    ActivityType.OTHER_WORK: "total_other_work",
    ActivityType.BREAK: "total_break",
    ActivityType.REST: "total_rest",
}


def build_report(
    activities: Sequence[Activity],
    violations: Sequence[Violation],
    start_date: date,
    end_date: date,
    now: Optional[datetime] = None,
) -> ComplianceReport:
    """
    Auswertung von start_date 00:00 bis end_date 23:59:59 (UTC)

    Args:
        activities: Fahrtenbuch (laufende Aktivitäten zählen bis now)
        violations: Ergebnis von check_all_violations
        start_date: Erster Tag
        end_date: Letzter Tag (inklusive)
    """
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_date, time.max, tzinfo=timezone.utc)
    range_end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
    report = ComplianceReport(start=start, end=end)

    resolved = resolve_ongoing(activities, now or utc_now())
    for activity in resolved:
        field = TOTAL_FIELDS.get(activity.type)
        if field is None or activity.start > end or activity.end < start:
            continue
        in_range = min(activity.end, range_end) - max(activity.start, start)
        if in_range > timedelta(0):
            setattr(report, field, getattr(report, field) + in_range)

    by_id = {activity.id: activity for activity in resolved}
    linked = [
        violation for violation in violations
        if violation.activity_id in by_id
        and start <= by_id[violation.activity_id].start <= end
    ]
    report.violations_in_period = sorted(linked, key=lambda v: by_id[v.activity_id].start)
    return report
