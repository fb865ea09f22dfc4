"""
Timeline-Normalisierung

1. Laufende Aktivitäten bei "jetzt" schließen
2. Chronologisch sortieren (start, end)
3. Nicht protokollierte Ruhezeiten (Lücken >= 9h) einfügen
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .exceptions import OpenActivityError
from .limits import DAILY_REST_REDUCED
from .models import IMPLICIT_REST_PREFIX, Activity, ActivityType

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def floor_to_minute(instant: datetime) -> datetime:
    return instant.replace(second=0, microsecond=0)


def resolve_ongoing(
    activities: Sequence[Activity],
    now: datetime,
    floor_minute: bool = False,
) -> List[Activity]:
    """
    Laufende Aktivitäten (end=None) bei now schließen

    Die Eingabe wird nie verändert - geschlossene Aktivitäten sind Kopien.
    Ein Ende vor dem Start (Startzeit in der Zukunft) wird auf start begrenzt.
    """
    effective_now = floor_to_minute(now) if floor_minute else now
    resolved = []
    for activity in activities:
        if activity.end is None:
            end = max(effective_now, activity.start)
            resolved.append(activity.model_copy(update={"end": end}))
        else:
            resolved.append(activity)
    return resolved


def _sort_key(activity: Activity):
    if activity.end is None:
        raise OpenActivityError(activity.id)
    return activity.start, activity.end


def sort_timeline(activities: Sequence[Activity]) -> List[Activity]:
    """Sortierung nach (start, end) - bei gleichem Start zuerst die kürzere"""
    return sorted(activities, key=_sort_key)


def implicit_rest_id(previous: Activity, following: Activity) -> str:
    return f"{IMPLICIT_REST_PREFIX}{previous.id}-{following.id}"


def inject_implicit_rests(timeline: Sequence[Activity]) -> List[Activity]:
    """
    Lücken >= reduzierte Tagesruhe als Ruhezeit einfügen (z.B. über Nacht)

    Erwartet eine sortierte Timeline ohne offene Aktivitäten.
    """
    if len(timeline) < 2:
        return list(timeline)

    augmented = [timeline[0]]
    for current, following in zip(timeline, timeline[1:]):
        gap = following.start - current.end
        if gap >= DAILY_REST_REDUCED:
            augmented.append(Activity(
                id=implicit_rest_id(current, following),
                type=ActivityType.REST,
                start=current.end,
                end=following.start,
            ))
        augmented.append(following)

    injected = len(augmented) - len(timeline)
    if injected:
        logger.debug(f"{injected} implizite Ruhezeit(en) eingefügt")
    return augmented


def normalize(
    activities: Sequence[Activity],
    now: Optional[datetime] = None,
    floor_minute: bool = False,
) -> List[Activity]:
    """Vollständige Normalisierung: schließen, sortieren, Ruhezeiten einfügen"""
    now = now or utc_now()
    return inject_implicit_rests(sort_timeline(resolve_ongoing(activities, now, floor_minute)))
