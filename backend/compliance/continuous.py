"""
MODUL: Lenkzeit ohne Unterbrechung (Art. 7)

Entscheidungsbaum je Aktivität:
- Fahrt → Lenkzeit addieren, > 4h30 (+5min Toleranz)? → VERSTOSS
- Pause/Ruhe ≥ 45min → Reset
- Pause/Ruhe ≥ 30min nach einer Teilpause ≥ 15min → Reset (15+30)
- Pause/Ruhe ≥ 15min → erste Teilpause merken
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import List, Sequence, Tuple

from .formatters import format_duration
from .limits import (
    CONTINUOUS_DRIVING_LIMIT,
    CONTINUOUS_DRIVING_TOLERANCE,
    MINIMUM_BREAK,
    MINIMUM_SPLIT_BREAK_1,
    MINIMUM_SPLIT_BREAK_2,
)
from .models import Activity, ActivityType, Violation, ViolationKind, ViolationLevel

BREAK_TYPES = (ActivityType.BREAK, ActivityType.REST)


@dataclass
class ContinuousDrivingState:
    accumulated: timedelta = timedelta(0)
    split_first_part_taken: bool = False

    @property
    def remaining(self) -> timedelta:
        return CONTINUOUS_DRIVING_LIMIT - self.accumulated

    def register_break(self, length: timedelta) -> None:
        if length >= MINIMUM_BREAK or (self.split_first_part_taken and length >= MINIMUM_SPLIT_BREAK_2):
            self.accumulated = timedelta(0)
            self.split_first_part_taken = False
        elif length >= MINIMUM_SPLIT_BREAK_1:
            self.split_first_part_taken = True


def track_continuous_driving(
    timeline: Sequence[Activity],
) -> Tuple[List[Violation], ContinuousDrivingState]:
    """
    Lenkzeit seit der letzten gültigen Pause verfolgen

    Args:
        timeline: Normalisierte Timeline (sortiert, alle end gesetzt)

    Returns:
        (Verstöße je überschreitender Fahrt, Endzustand für die Zusammenfassung)
    """
    state = ContinuousDrivingState()
    violations: List[Violation] = []

    for activity in timeline:
        if activity.type == ActivityType.DRIVING:
            state.accumulated += activity.duration
            if state.accumulated > CONTINUOUS_DRIVING_LIMIT + CONTINUOUS_DRIVING_TOLERANCE:
                violations.append(Violation(
                    level=ViolationLevel.VIOLATION,
                    kind=ViolationKind.CONTINUOUS_DRIVING,
                    message=(
                        "🛑 VERSTOSS! Lenkzeit ohne Pause (4h 30min) überschritten! "
                        f"Aktuelle Lenkzeit: {format_duration(state.accumulated)}."
                    ),
                    activity_id=activity.id,
                ))
        elif activity.type in BREAK_TYPES:
            state.register_break(activity.duration)

    return violations, state
