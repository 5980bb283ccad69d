"""
Opening-hours evaluation.

Weekdays use 0=Sunday..6=Saturday and times are "HH:MM" strings, as stored.
A shop is open when today's entry has both times and the instant lies in
[open, close); a close earlier than open wraps past midnight.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

DAY_NAMES = ["Sonntag", "Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag"]


def weekday_index(at: datetime) -> int:
    """Python counts Monday=0; stored hours count Sunday=0."""
    return (at.weekday() + 1) % 7


def parse_time(value: str | None) -> int | None:
    """Return minutes after midnight for "HH:MM", or ``None`` if unusable."""
    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours <= 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes


def _field(entry: Any, name: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def _entry_for(hours: Iterable[Any], weekday: int) -> Any | None:
    for entry in hours:
        if _field(entry, "weekday") == weekday:
            return entry
    return None


def is_open_at(hours: Iterable[Any], at: datetime) -> bool:
    today = _entry_for(hours, weekday_index(at))
    if today is None:
        return False

    open_min = parse_time(_field(today, "open_time"))
    close_min = parse_time(_field(today, "close_time"))
    if open_min is None or close_min is None:
        return False

    now_min = at.hour * 60 + at.minute
    if close_min < open_min:
        return now_min >= open_min or now_min < close_min
    return open_min <= now_min < close_min


def status_text(hours: Iterable[Any], at: datetime) -> str:
    """Human-readable open/closed status in German."""
    hours = list(hours)
    if not hours:
        return "Öffnungszeiten unbekannt"

    current_day = weekday_index(at)
    if is_open_at(hours, at):
        today = _entry_for(hours, current_day)
        close_time = _field(today, "close_time")
        if close_time:
            return f"Bis {close_time} geöffnet"
        return "Jetzt geöffnet"

    now_min = at.hour * 60 + at.minute
    for offset in range(7):
        day = (current_day + offset) % 7
        entry = _entry_for(hours, day)
        open_time = _field(entry, "open_time") if entry is not None else None
        if not open_time or parse_time(open_time) is None:
            continue
        if offset == 0:
            # Today's opening already passed: look at the following days
            if parse_time(open_time) <= now_min:
                continue
            return f"Öffnet heute um {open_time}"
        if offset == 1:
            return f"Öffnet morgen um {open_time}"
        return f"Öffnet {DAY_NAMES[day]} um {open_time}"

    # Only today's slot exists and it already passed: next week
    today = _entry_for(hours, current_day)
    if today is not None and parse_time(_field(today, "open_time")) is not None:
        return f"Öffnet {DAY_NAMES[current_day]} um {_field(today, 'open_time')}"
    return "Geschlossen"
