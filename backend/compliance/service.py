"""
Compliance Service - Zentrale Schnittstelle
Verbindet Speicher (Fahrtenbuch, Einstellungen) mit der Regel-Engine
"""

import asyncio
import logging
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .engine import analyse, check_all_violations
from .models import Activity, AppSettings, ComplianceAnalysis, ComplianceReport, as_utc
from .report import build_report
from .store import (
    ACTIVITIES_KEY,
    SETTINGS_KEY,
    WEEKLY_REST_REFERENCE_KEY,
    BaseKeyValueStore,
    InMemoryStore,
    MongoKeyValueStore,
    dump_activities,
    dump_reference,
    dump_settings,
    parse_activities,
    parse_reference,
    parse_settings,
)
from .timeline import utc_now

logger = logging.getLogger(__name__)


def create_store() -> BaseKeyValueStore:
    """Speicher gemäß STORE_BACKEND (memory | mongo)"""
    backend = os.environ.get("STORE_BACKEND", "memory").lower()
    if backend == "mongo":
        return MongoKeyValueStore(
            os.environ.get("MONGO_URL", "mongodb://localhost:27017"),
            os.environ.get("DB_NAME", "tacho_compliance"),
        )
    if backend != "memory":
        logger.warning(f"Unbekanntes STORE_BACKEND '{backend}', verwende Speicher im RAM")
    return InMemoryStore()


class ComplianceService:
    """
    Zentrale Compliance-Service-Klasse

    Verwendung:
        service = ComplianceService(InMemoryStore())
        await service.add_activity(Activity(type=ActivityType.DRIVING, start=...))
        analysis = await service.get_analysis()
    """

    def __init__(self, store: Optional[BaseKeyValueStore] = None):
        self._store = store or create_store()
        # Schützt Lesen-Ändern-Schreiben des Fahrtenbuchs
        self._lock = asyncio.Lock()

    @property
    def store(self) -> BaseKeyValueStore:
        return self._store

    # ============== Fahrtenbuch ==============

    async def get_activities(self) -> List[Activity]:
        return parse_activities(await self._store.get(ACTIVITIES_KEY))

    async def save_activities(self, activities: List[Activity]) -> None:
        await self._store.set(ACTIVITIES_KEY, dump_activities(activities))
        logger.info(f"Fahrtenbuch gespeichert ({len(activities)} Aktivitäten)")

    async def get_activity(self, activity_id: str) -> Optional[Activity]:
        return next((act for act in await self.get_activities() if act.id == activity_id), None)

    async def add_activity(self, activity: Activity) -> Optional[Activity]:
        """Aktivität anhängen (None wenn die ID schon existiert)"""
        async with self._lock:
            activities = await self.get_activities()
            if any(act.id == activity.id for act in activities):
                return None
            activities.append(activity)
            await self.save_activities(activities)
            return activity

    async def update_activity(self, activity_id: str, changes: Dict[str, Any]) -> Optional[Activity]:
        """
        Aktivität ändern

        Returns:
            Geänderte Aktivität oder None wenn die ID unbekannt ist
        """
        async with self._lock:
            return await self._apply_changes(activity_id, changes)

    async def _apply_changes(self, activity_id: str, changes: Dict[str, Any]) -> Optional[Activity]:
        activities = await self.get_activities()
        for index, activity in enumerate(activities):
            if activity.id == activity_id:
                updated = Activity.model_validate({**activity.model_dump(), **changes, "id": activity_id})
                activities[index] = updated
                await self.save_activities(activities)
                return updated
        return None

    async def finish_activity(self, activity_id: str, end: Optional[datetime] = None) -> Optional[Activity]:
        """Laufende Aktivität beenden (Standard: jetzt)"""
        async with self._lock:
            activity = await self.get_activity(activity_id)
            if activity is None:
                return None
            if not activity.is_ongoing:
                return activity
            return await self._apply_changes(activity_id, {"end": as_utc(end) if end else utc_now()})

    async def delete_activity(self, activity_id: str) -> bool:
        async with self._lock:
            activities = await self.get_activities()
            remaining = [act for act in activities if act.id != activity_id]
            if len(remaining) == len(activities):
                return False
            await self.save_activities(remaining)
            return True

    # ============== Referenz & Einstellungen ==============

    async def get_weekly_rest_reference(self) -> Optional[datetime]:
        return parse_reference(await self._store.get(WEEKLY_REST_REFERENCE_KEY))

    async def set_weekly_rest_reference(self, reference: Optional[datetime]) -> None:
        await self._store.set(WEEKLY_REST_REFERENCE_KEY, dump_reference(as_utc(reference)))

    async def get_settings(self) -> AppSettings:
        return parse_settings(await self._store.get(SETTINGS_KEY))

    async def save_settings(self, settings: AppSettings) -> AppSettings:
        await self._store.set(SETTINGS_KEY, dump_settings(settings))
        return settings

    # ============== Compliance ==============

    async def get_analysis(self, now: Optional[datetime] = None) -> ComplianceAnalysis:
        """Verstöße + Zusammenfassung für das gespeicherte Fahrtenbuch"""
        activities = await self.get_activities()
        reference = await self.get_weekly_rest_reference()
        return analyse(activities, reference, now)

    async def get_report(
        self,
        start_date: date,
        end_date: date,
        now: Optional[datetime] = None,
    ) -> ComplianceReport:
        now = as_utc(now) if now else utc_now()
        activities = await self.get_activities()
        violations = check_all_violations(activities, await self.get_weekly_rest_reference(), now)
        return build_report(activities, violations, start_date, end_date, now)


# ============== Singleton für globalen Zugriff ==============

_service_instance: Optional[ComplianceService] = None


def get_compliance_service() -> ComplianceService:
    """Globale ComplianceService-Instanz abrufen"""
    global _service_instance
    if _service_instance is None:
        _service_instance = ComplianceService()
    return _service_instance
