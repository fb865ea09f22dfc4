"""
Zeitraum-Auswertung, Key-Value Speicher und ComplianceService
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone

import pytest

from compliance.engine import check_all_violations
from compliance.models import Activity, ActivityType, AppSettings, ViolationKind
from compliance.report import build_report
from compliance.service import ComplianceService, create_store
from compliance.store import (
    ACTIVITIES_KEY,
    InMemoryStore,
    dump_activities,
    parse_activities,
    parse_reference,
    parse_settings,
)


def utc(day, hour=0, minute=0):
    return datetime(2025, 10, day, hour, minute, tzinfo=timezone.utc)


def act(activity_id, activity_type, start, end=None):
    return Activity(id=activity_id, type=activity_type, start=start, end=end)


def logbook():
    return [
        act("d1", ActivityType.DRIVING, utc(6, 22), utc(7, 2)),
        act("b1", ActivityType.BREAK, utc(7, 2), utc(7, 2, 45)),
        act("w1", ActivityType.OTHER_WORK, utc(7, 3), utc(7, 5)),
        act("d2", ActivityType.DRIVING, utc(8, 8), utc(8, 13)),
    ]


# ============== Report ==============

class TestReport:
    """Tests für build_report"""

    def test_totals_clipped_to_range(self):
        activities = logbook()
        now = utc(9, 12)
        violations = check_all_violations(activities, None, now)
        report = build_report(activities, violations, date(2025, 10, 7), date(2025, 10, 8), now)

        assert report.total_driving == timedelta(hours=7)
        assert report.total_break == timedelta(minutes=45)
        assert report.total_other_work == timedelta(hours=2)
        assert report.total_work == timedelta(hours=9)
        assert report.start == utc(7, 0)

    def test_violations_of_activities_in_range(self):
        activities = logbook()
        now = utc(9, 12)
        violations = check_all_violations(activities, None, now)
        report = build_report(activities, violations, date(2025, 10, 7), date(2025, 10, 8), now)

        assert [v.kind for v in report.violations_in_period] == [ViolationKind.CONTINUOUS_DRIVING]
        assert report.violations_in_period[0].activity_id == "d2"

    def test_no_violations_outside_range(self):
        activities = logbook()
        now = utc(9, 12)
        violations = check_all_violations(activities, None, now)
        report = build_report(activities, violations, date(2025, 10, 6), date(2025, 10, 6), now)

        assert report.total_driving == timedelta(hours=2)
        assert report.violations_in_period == []

    def test_ongoing_activity_counts_until_now(self):
        activities = [act("d1", ActivityType.DRIVING, utc(6, 8))]
        report = build_report(activities, [], date(2025, 10, 6), date(2025, 10, 6), utc(6, 10))
        assert report.total_driving == timedelta(hours=2)


# ============== Store ==============

class TestStoreParsing:
    """Fehlerhafte Daten → leere Werte / Standardeinstellungen"""

    def test_malformed_activities(self, caplog):
        with caplog.at_level(logging.ERROR):
            assert parse_activities("{not json") == []
        assert "Fahrtenbuch" in caplog.text

    def test_activity_ending_before_start(self):
        raw = '[{"id": "a", "type": "driving", "start": "2025-10-06T10:00:00Z", "end": "2025-10-06T09:00:00Z"}]'
        assert parse_activities(raw) == []

    def test_missing_values(self):
        assert parse_activities(None) == []
        assert parse_reference(None) is None
        assert parse_settings(None) == AppSettings()

    def test_activities_survive_storage(self):
        activities = logbook()[:2] + [act("open", ActivityType.DRIVING, utc(9, 8))]
        assert parse_activities(dump_activities(activities)) == activities

    def test_malformed_reference(self):
        assert parse_reference('"gestern"') is None

    def test_partial_settings_keep_defaults(self):
        settings = parse_settings('{"durations": {"driving": {"hours": 3, "minutes": 0}}}')

        assert settings.default_duration(ActivityType.DRIVING) == timedelta(hours=3)
        assert settings.default_duration(ActivityType.BREAK) == timedelta(minutes=45)
        assert settings.default_duration(ActivityType.START_WORK) is None

    def test_settings_for_marker_rejected(self):
        settings = parse_settings('{"durations": {"start_work": {"hours": 1, "minutes": 0}}}')
        assert settings == AppSettings()


class TestInMemoryStore:

    def test_get_and_set(self):
        store = InMemoryStore({"a": "1"})

        async def scenario():
            await store.set("b", "2")
            return await store.get("a"), await store.get("b"), await store.get("c")

        assert asyncio.run(scenario()) == ("1", "2", None)

    def test_unknown_backend_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "redis")
        assert isinstance(create_store(), InMemoryStore)


# ============== Service ==============

class TestComplianceService:
    """Tests für ComplianceService mit InMemoryStore"""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.store = InMemoryStore()
        self.service = ComplianceService(self.store)

    def test_add_and_list(self):
        async def scenario():
            await self.service.add_activity(act("d1", ActivityType.DRIVING, utc(6, 8), utc(6, 10)))
            return await self.service.get_activities()

        assert [a.id for a in asyncio.run(scenario())] == ["d1"]
        assert asyncio.run(self.store.get(ACTIVITIES_KEY)) is not None

    def test_finish_ongoing_activity(self):
        async def scenario():
            await self.service.add_activity(act("d1", ActivityType.DRIVING, utc(6, 8)))
            return await self.service.finish_activity("d1", utc(6, 9))

        finished = asyncio.run(scenario())
        assert finished.end == utc(6, 9)

    def test_update_and_delete(self):
        async def scenario():
            await self.service.add_activity(act("d1", ActivityType.DRIVING, utc(6, 8), utc(6, 10)))
            updated = await self.service.update_activity("d1", {"type": ActivityType.OTHER_WORK})
            missing = await self.service.update_activity("nope", {"end": utc(6, 11)})
            deleted = await self.service.delete_activity("d1")
            deleted_again = await self.service.delete_activity("d1")
            return updated, missing, deleted, deleted_again

        updated, missing, deleted, deleted_again = asyncio.run(scenario())
        assert updated.type == ActivityType.OTHER_WORK
        assert updated.start == utc(6, 8)
        assert missing is None
        assert deleted is True
        assert deleted_again is False

    def test_analysis_uses_stored_reference(self):
        async def scenario():
            await self.service.set_weekly_rest_reference(utc(6, 0))
            await self.service.add_activity(act("d1", ActivityType.DRIVING, utc(13, 6), utc(13, 8)))
            return await self.service.get_analysis(utc(13, 9))

        analysis = asyncio.run(scenario())
        assert ViolationKind.SIX_DAY_PERIOD_EXCEEDED in [v.kind for v in analysis.violations]

    def test_report(self):
        async def scenario():
            await self.service.save_activities(logbook())
            return await self.service.get_report(date(2025, 10, 7), date(2025, 10, 8), utc(9, 12))

        report = asyncio.run(scenario())
        assert report.total_driving == timedelta(hours=7)

    def test_duplicate_id_not_added(self):
        async def scenario():
            first = await self.service.add_activity(act("d1", ActivityType.DRIVING, utc(6, 8), utc(6, 10)))
            second = await self.service.add_activity(act("d1", ActivityType.BREAK, utc(6, 10), utc(6, 11)))
            return first, second, await self.service.get_activities()

        first, second, activities = asyncio.run(scenario())
        assert first.id == "d1"
        assert second is None
        assert [a.type for a in activities] == [ActivityType.DRIVING]

    def test_concurrent_adds_keep_every_activity(self):
        """Test: 5 gleichzeitige Einträge bei langsamem Speicher → alle 5 gespeichert"""

        class SlowStore(InMemoryStore):
            async def get(self, key):
                await asyncio.sleep(0)
                return await super().get(key)

        service = ComplianceService(SlowStore())

        async def scenario():
            await asyncio.gather(*(
                service.add_activity(act(f"d{hour}", ActivityType.DRIVING, utc(6, hour), utc(6, hour, 30)))
                for hour in range(5)
            ))
            return await service.get_activities()

        activities = asyncio.run(scenario())
        assert sorted(a.id for a in activities) == ["d0", "d1", "d2", "d3", "d4"]
        print(f"✓ {len(activities)} gleichzeitige Einträge gespeichert")
