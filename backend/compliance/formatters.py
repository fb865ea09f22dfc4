"""Dauer-Formatierung für Meldungstexte"""

from datetime import datetime, timedelta

from .limits import MINUTE


def format_duration(value: timedelta) -> str:
    """'4h 30min' - negative Werte werden als 0 angezeigt"""
    total_minutes = max(0, value // MINUTE)
    if total_minutes == 0:
        return "0min"

    hours, minutes = divmod(total_minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}min")
    return " ".join(parts)


def format_full_duration(value: timedelta) -> str:
    """'1T 4h 30min' - mit Tagen"""
    total_minutes = max(0, value // MINUTE)
    if total_minutes == 0:
        return "0min"

    days, rest = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}T")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}min")
    return " ".join(parts)


def format_date(value: datetime) -> str:
    return value.strftime("%d.%m.%Y")
