"""
Key-Value Speicher für Fahrtenbuch, Wochenruhe-Referenz und Einstellungen

Werte werden als JSON-Strings unter festen Schlüsseln abgelegt. Fehlerhafte
Daten werden protokolliert und durch leere Werte / Standardeinstellungen
ersetzt, damit die Engine immer gültige Eingaben bekommt.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import TypeAdapter, ValidationError

from .models import Activity, AppSettings

logger = logging.getLogger(__name__)

ACTIVITIES_KEY = "tacho-activities"
WEEKLY_REST_REFERENCE_KEY = "tacho-lastWeeklyRestEnd"
SETTINGS_KEY = "tacho-settings"

_activity_list = TypeAdapter(List[Activity])
_reference = TypeAdapter(Optional[datetime])


class BaseKeyValueStore(ABC):
    """
    Abstrakte Basisklasse für alle Speicher

    Implementierungen:
    - InMemoryStore: Tests / Demo
    - MongoKeyValueStore: MongoDB über motor
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Gespeicherten Wert lesen (None wenn nicht vorhanden)"""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Wert speichern (überschreibt)"""

    async def close(self) -> None:
        pass


class InMemoryStore(BaseKeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value


class MongoKeyValueStore(BaseKeyValueStore):
    """Ein Dokument {key, value} je Schlüssel"""

    def __init__(self, mongo_url: str, db_name: str, collection: str = "tacho_store"):
        self._client = AsyncIOMotorClient(mongo_url)
        self._collection = self._client[db_name][collection]

    async def get(self, key: str) -> Optional[str]:
        document = await self._collection.find_one({"key": key}, {"_id": 0})
        return document["value"] if document else None

    async def set(self, key: str, value: str) -> None:
        await self._collection.update_one({"key": key}, {"$set": {"value": value}}, upsert=True)

    async def close(self) -> None:
        self._client.close()


# ============== Serialisierung ==============

def parse_activities(raw: Optional[str]) -> List[Activity]:
    if not raw:
        return []
    try:
        return _activity_list.validate_json(raw)
    except ValidationError as e:
        logger.error(f"Fahrtenbuch konnte nicht gelesen werden: {e}")
        return []


def dump_activities(activities: List[Activity]) -> str:
    return _activity_list.dump_json(activities).decode()


def parse_reference(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return _reference.validate_json(raw)
    except ValidationError as e:
        logger.error(f"Wochenruhe-Referenz konnte nicht gelesen werden: {e}")
        return None


def dump_reference(reference: Optional[datetime]) -> str:
    return _reference.dump_json(reference).decode()


def parse_settings(raw: Optional[str]) -> AppSettings:
    if not raw:
        return AppSettings()
    try:
        return AppSettings.model_validate_json(raw)
    except ValidationError as e:
        logger.error(f"Einstellungen konnten nicht gelesen werden: {e}")
        return AppSettings()


def dump_settings(settings: AppSettings) -> str:
    return settings.model_dump_json()
