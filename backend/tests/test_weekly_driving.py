"""
Wochenlenkzeit - max 56h je Woche, max 90h in zwei aufeinanderfolgenden Wochen
"""

from datetime import datetime, timedelta, timezone

from compliance.models import Activity, ActivityType, ViolationKind
from compliance.weekly_driving import accumulate_weekly_driving, bi_weekly_total, check_weekly_driving


def utc(day, hour=0):
    return datetime(2025, 10, day, hour, tzinfo=timezone.utc)


def drives(*spans):
    """spans: (tag, startstunde, endstunde) - ein Block je Tag"""
    return [
        Activity(id=f"d{day}", type=ActivityType.DRIVING, start=utc(day, start), end=utc(day, end))
        for day, start, end in spans
    ]


class TestAccumulation:

    def test_drive_over_monday_is_split(self):
        activity = Activity(
            id="night", type=ActivityType.DRIVING, start=utc(12, 22), end=utc(13, 2)
        )
        totals = accumulate_weekly_driving([activity])
        assert totals == {"2025-W41": timedelta(hours=2), "2025-W42": timedelta(hours=2)}

    def test_only_driving_counts(self):
        timeline = [
            Activity(id="w", type=ActivityType.OTHER_WORK, start=utc(6, 6), end=utc(6, 8)),
            Activity(id="d", type=ActivityType.DRIVING, start=utc(6, 8), end=utc(6, 12)),
        ]
        assert accumulate_weekly_driving(timeline) == {"2025-W41": timedelta(hours=4)}

    def test_bi_weekly_total_with_missing_week(self):
        totals = {"2025-W41": timedelta(hours=40)}
        assert bi_weekly_total(totals, "2025-W41", "2025-W42") == timedelta(hours=40)


class TestWeeklyLimits:

    def test_more_than_56_hours_in_a_week(self):
        """Test: 60h in W41 → Wochenverstoß"""
        violations = check_weekly_driving(drives((6, 0, 20), (7, 0, 20), (8, 0, 20)))

        assert [v.kind for v in violations] == [ViolationKind.WEEKLY_DRIVING_EXCEEDED]
        assert "2025-W41" in violations[0].message
        print("✓ Wochenlenkzeit > 56h erkannt")

    def test_more_than_90_hours_in_two_weeks(self):
        """Test: 50h + 45h → nur 2-Wochen-Verstoß"""
        timeline = drives(
            (6, 0, 20), (7, 0, 20), (8, 0, 10),     # W41: 50h
            (13, 0, 20), (14, 0, 20), (15, 0, 5),   # W42: 45h
        )
        violations = check_weekly_driving(timeline)

        assert [v.kind for v in violations] == [ViolationKind.BI_WEEKLY_DRIVING_EXCEEDED]
        assert "2025-W41 & 2025-W42" in violations[0].message

    def test_week_without_driving_breaks_the_pair(self):
        timeline = drives(
            (6, 0, 20), (7, 0, 20), (8, 0, 10),     # W41: 50h
            (20, 0, 20), (21, 0, 20), (22, 0, 10),  # W43: 50h
        )
        assert check_weekly_driving(timeline) == []

    def test_exactly_56_hours_is_allowed(self):
        assert check_weekly_driving(drives((6, 0, 20), (7, 0, 20), (8, 0, 16))) == []

    def test_log_spanning_more_than_four_years(self):
        """Test: alte Fahrt 2020-W02, dann 50h + 50h in 2025-W10/W11 → 2-Wochen-Verstoß"""
        def block(activity_id, month, day, start, end):
            return Activity(
                id=activity_id,
                type=ActivityType.DRIVING,
                start=datetime(2025, month, day, start, tzinfo=timezone.utc),
                end=datetime(2025, month, day, end, tzinfo=timezone.utc),
            )

        timeline = [
            Activity(
                id="old",
                type=ActivityType.DRIVING,
                start=datetime(2020, 1, 6, 8, tzinfo=timezone.utc),
                end=datetime(2020, 1, 6, 12, tzinfo=timezone.utc),
            ),
            block("w10a", 3, 3, 0, 20), block("w10b", 3, 4, 0, 20), block("w10c", 3, 5, 0, 10),
            block("w11a", 3, 10, 0, 20), block("w11b", 3, 11, 0, 20), block("w11c", 3, 12, 0, 10),
        ]
        violations = check_weekly_driving(timeline)

        assert [v.kind for v in violations] == [ViolationKind.BI_WEEKLY_DRIVING_EXCEEDED]
        assert "2025-W10 & 2025-W11" in violations[0].message
        print("✓ 2-Wochen-Verstoß auch nach langer Historie erkannt")
