"""
Lenkzeit ohne Unterbrechung - EU 561/2006 Art. 7
4h30 Grenze, 45min Pause oder geteilte Pause 15 + 30
"""

from datetime import datetime, timedelta, timezone

from compliance.continuous import ContinuousDrivingState, track_continuous_driving
from compliance.models import Activity, ActivityType, ViolationKind


def utc(hour, minute=0, day=6):
    return datetime(2025, 10, day, hour, minute, tzinfo=timezone.utc)


def drive(activity_id, start, end):
    return Activity(id=activity_id, type=ActivityType.DRIVING, start=start, end=end)


def pause(activity_id, start, end):
    return Activity(id=activity_id, type=ActivityType.BREAK, start=start, end=end)


class TestContinuousDriving:
    """Tests für track_continuous_driving"""

    # ============== Verstöße ==============

    def test_five_hours_without_break(self):
        """Test: 5h am Stück → genau ein Verstoß an der Fahrt"""
        violations, state = track_continuous_driving([drive("d1", utc(8), utc(13))])

        assert len(violations) == 1
        assert violations[0].kind == ViolationKind.CONTINUOUS_DRIVING
        assert violations[0].activity_id == "d1"
        assert "5h" in violations[0].message
        assert state.remaining == timedelta(minutes=-30)
        print("✓ 5h Lenkzeit ohne Pause erkannt")

    def test_full_break_resets(self):
        """Test: 4h + 45min Pause + 4h15 → kein Verstoß"""
        timeline = [
            drive("d1", utc(6), utc(10)),
            pause("b1", utc(10), utc(10, 45)),
            drive("d2", utc(10, 45), utc(15)),
        ]
        violations, state = track_continuous_driving(timeline)

        assert violations == []
        assert state.accumulated == timedelta(hours=4, minutes=15)

    def test_tolerance_of_five_minutes(self):
        violations, _ = track_continuous_driving([drive("d1", utc(8), utc(12, 34))])
        assert violations == []

        violations, _ = track_continuous_driving([drive("d1", utc(8), utc(12, 36))])
        assert len(violations) == 1

    def test_rest_counts_as_break(self):
        timeline = [
            drive("d1", utc(6), utc(10)),
            Activity(id="r1", type=ActivityType.REST, start=utc(10), end=utc(21)),
            drive("d2", utc(21), utc(23)),
        ]
        violations, state = track_continuous_driving(timeline)

        assert violations == []
        assert state.accumulated == timedelta(hours=2)

    def test_other_work_does_not_reset(self):
        timeline = [
            drive("d1", utc(6), utc(9)),
            Activity(id="w1", type=ActivityType.OTHER_WORK, start=utc(9), end=utc(10)),
            drive("d2", utc(10), utc(12)),
        ]
        violations, _ = track_continuous_driving(timeline)
        assert [v.activity_id for v in violations] == ["d2"]

    # ============== Geteilte Pause ==============

    def test_split_break_fifteen_then_thirty(self):
        """Test: 20min dann 35min Pause → Reset"""
        timeline = [
            drive("d1", utc(6), utc(7)),
            pause("b1", utc(7), utc(7, 20)),
            drive("d2", utc(7, 20), utc(9, 20)),
            pause("b2", utc(9, 20), utc(9, 55)),
        ]
        violations, state = track_continuous_driving(timeline)

        assert violations == []
        assert state.accumulated == timedelta(0)
        assert not state.split_first_part_taken
        print("✓ Geteilte Pause 20 + 35 setzt zurück")

    def test_thirty_five_minutes_alone_is_first_part(self):
        """Test: 35min ohne vorherige Teilpause → kein Reset, nur erste Teilpause"""
        timeline = [
            drive("d1", utc(6), utc(7)),
            pause("b1", utc(7), utc(7, 35)),
        ]
        _, state = track_continuous_driving(timeline)

        assert state.accumulated == timedelta(hours=1)
        assert state.split_first_part_taken

    def test_short_break_is_ignored(self):
        timeline = [
            drive("d1", utc(6), utc(7)),
            pause("b1", utc(7), utc(7, 10)),
        ]
        _, state = track_continuous_driving(timeline)

        assert state.accumulated == timedelta(hours=1)
        assert not state.split_first_part_taken


class TestContinuousDrivingState:

    def test_accumulated_never_decreases_without_break(self):
        state = ContinuousDrivingState(accumulated=timedelta(hours=2))
        state.register_break(timedelta(minutes=14))
        assert state.accumulated == timedelta(hours=2)

    def test_full_break_clears_split_flag(self):
        state = ContinuousDrivingState(accumulated=timedelta(hours=2), split_first_part_taken=True)
        state.register_break(timedelta(minutes=45))
        assert state.accumulated == timedelta(0)
        assert not state.split_first_part_taken
