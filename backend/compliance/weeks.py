"""
ISO-Wochen Hilfsfunktionen
Wochenschlüssel im Format "YYYY-Www", Wochengrenze = Montag 00:00 UTC
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, List, Set, Tuple

from .limits import WEEK


def week_key(instant: datetime) -> str:
    """ISO-8601 Wochenschlüssel, z.B. '2025-W40'"""
    iso_year, iso_week, _ = instant.astimezone(timezone.utc).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def parse_week_key(key: str) -> Tuple[int, int]:
    year, week = key.split("-W")
    return int(year), int(week)


def week_start(instant: datetime) -> datetime:
    """Montag 00:00 UTC der ISO-Woche"""
    utc = instant.astimezone(timezone.utc)
    monday = utc.date() - timedelta(days=utc.isoweekday() - 1)
    return datetime.combine(monday, time.min, tzinfo=timezone.utc)


def week_end(instant: datetime) -> datetime:
    """Sonntag 23:59:59.999999 UTC der ISO-Woche"""
    return week_start(instant) + WEEK - timedelta(microseconds=1)


def monday_of_week_key(key: str) -> datetime:
    year, week = parse_week_key(key)
    return datetime.combine(date.fromisocalendar(year, week, 1), time.min, tzinfo=timezone.utc)


def previous_week_key(key: str) -> str:
    return week_key(monday_of_week_key(key) - WEEK)


def next_week_key(key: str) -> str:
    return week_key(monday_of_week_key(key) + WEEK)


def weeks_in_range(start_key: str, end_key: str) -> List[str]:
    """
    Alle Wochenschlüssel von start_key bis end_key (inklusive, Lücken gefüllt)

    Leere Liste wenn ein Schlüssel fehlt oder start_key nach end_key liegt.
    """
    if not start_key or not end_key:
        return []

    current = monday_of_week_key(start_key)
    last = monday_of_week_key(end_key)
    weeks: List[str] = []
    while current <= last:
        weeks.append(week_key(current))
        current += WEEK
    return weeks


def consecutive_week_pairs(keys: List[str]) -> Iterator[Tuple[str, str]]:
    """
    Paare aufeinanderfolgender Wochen, in denen mindestens eine Woche Daten hat

    Nur Paare zwischen erstem und letztem Schlüssel; Wochen ohne Daten werden
    mit ihren Nachbarn gepaart, Paare ganz ohne Daten entfallen.
    """
    ordered = sorted(set(keys))
    if not ordered:
        return
    first, last = ordered[0], ordered[-1]
    pairs: Set[Tuple[str, str]] = set()
    for key in ordered:
        if key != first:
            pairs.add((previous_week_key(key), key))
        if key != last:
            pairs.add((key, next_week_key(key)))
    yield from sorted(pairs)


def split_by_week(start: datetime, end: datetime) -> Iterator[Tuple[str, timedelta]]:
    """
    Intervall [start, end) an jeder Wochengrenze schneiden

    Yields:
        (Wochenschlüssel, Anteil im Intervall) - nur Anteile > 0
    """
    cursor = start
    while cursor < end:
        boundary = week_start(cursor) + WEEK
        segment_end = min(end, boundary)
        yield week_key(cursor), segment_end - cursor
        cursor = segment_end
