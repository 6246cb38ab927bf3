"""Room availability computed from schedule snapshots.

Two modes are supported:

* today-status: every room is labelled ``In Use``, ``Scheduled`` or
  ``Available`` for the given wall-clock instant;
* search: the rooms with no schedule overlap inside an arbitrary
  ``[start, end)`` window on a given day.

Rooms and schedule rows are joined on :func:`facility.normalize.normalize`
of their names. All intervals are closed-open.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Dict, Generic, Iterable, List, Optional, Protocol, Sequence, TypeVar

from .normalize import normalize

logger = logging.getLogger("facility.availability")

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# End time of an entry that runs until midnight.
END_OF_DAY = "24:00"

# Timetables are imported with Indonesian day names.
_DAY_ALIASES: Dict[str, int] = {
    "monday": 0,
    "senin": 0,
    "tuesday": 1,
    "selasa": 1,
    "wednesday": 2,
    "rabu": 2,
    "thursday": 3,
    "kamis": 3,
    "friday": 4,
    "jumat": 4,
    "jum'at": 4,
    "saturday": 5,
    "sabtu": 5,
    "sunday": 6,
    "minggu": 6,
}


class RoomStatus(str, Enum):
    IN_USE = "In Use"
    SCHEDULED = "Scheduled"
    AVAILABLE = "Available"


class ScheduleKind(str, Enum):
    LECTURE = "lecture"
    EXAM = "exam"
    SESSION = "session"
    BOOKING = "booking"


@dataclass(frozen=True)
class ScheduleEntry:
    """A time-boxed occupation of a room, whatever table it came from.

    Recurring entries carry only ``day``; one-off entries also carry
    ``on_date`` and apply to that date alone.
    """

    room_name: Optional[str]
    day: str
    start_time: Optional[str]
    end_time: Optional[str]
    label: str = ""
    kind: ScheduleKind = ScheduleKind.LECTURE
    on_date: Optional[date] = None


class NamedRoom(Protocol):
    name: str


R = TypeVar("R", bound=NamedRoom)


@dataclass
class RoomAvailability(Generic[R]):
    room: R
    status: RoomStatus


def weekday_index(day: Optional[str]) -> Optional[int]:
    """Map an English or Indonesian weekday name to ``date.weekday()`` numbering."""

    if not day:
        return None
    return _DAY_ALIASES.get(day.strip().lower())


def weekday_name(value: date) -> str:
    return WEEKDAY_NAMES[value.weekday()]


def resolve_weekday(day: Optional[str], on_date: Optional[date] = None) -> int:
    """Weekday number for a query given by day name, calendar date, or both."""

    weekday = weekday_index(day) if day else None
    if day and weekday is None:
        raise ValueError(f"Unknown day: {day}")
    if on_date is not None:
        if weekday is not None and weekday != on_date.weekday():
            raise ValueError("Day does not match the given date")
        return on_date.weekday()
    if weekday is None:
        raise ValueError("Either day or on_date is required")
    return weekday


def parse_clock(value: Optional[str]) -> Optional[time]:
    """Parse ``HH:MM`` or ``HH:MM:SS``; anything else yields ``None``."""

    if not value:
        return None
    text = value.strip()
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def _ends_at_midnight(value: Optional[str]) -> bool:
    return bool(value) and value.strip() in (END_OF_DAY, END_OF_DAY + ":00")


def _window(entry: ScheduleEntry) -> Optional[tuple[time, Optional[time]]]:
    """Parsed ``[start, end)``; an end of ``None`` runs to midnight."""

    start = parse_clock(entry.start_time)
    at_midnight = _ends_at_midnight(entry.end_time)
    end = None if at_midnight else parse_clock(entry.end_time)
    if start is None or (end is None and not at_midnight):
        logger.warning(
            "Ignoring %s entry %r for room %r: unparseable time window %r-%r",
            entry.kind.value,
            entry.label,
            entry.room_name,
            entry.start_time,
            entry.end_time,
        )
        return None
    return start, end


def _applies(entry: ScheduleEntry, weekday: int, on_date: Optional[date]) -> bool:
    if entry.on_date is not None:
        return on_date is not None and entry.on_date == on_date
    return weekday_index(entry.day) == weekday


def group_by_room(
    entries: Iterable[ScheduleEntry], weekday: int, on_date: Optional[date] = None
) -> Dict[str, List[ScheduleEntry]]:
    """Bucket the entries that apply to the given day under their normalized room name."""

    grouped: Dict[str, List[ScheduleEntry]] = {}
    for entry in entries:
        key = normalize(entry.room_name)
        if not key or not _applies(entry, weekday, on_date):
            continue
        grouped.setdefault(key, []).append(entry)
    return grouped


def _occupied_at(entry: ScheduleEntry, moment: time) -> bool:
    window = _window(entry)
    if window is None:
        return False
    start, end = window
    return start <= moment and (end is None or moment < end)


def resolve_today(
    rooms: Sequence[R], entries: Iterable[ScheduleEntry], now: datetime
) -> List[RoomAvailability[R]]:
    """Label each room for the instant ``now``.

    A room with at least one entry today is ``Scheduled``; it is ``In Use``
    when one of those entries covers ``now``. Entries with an unparseable
    window still make the room ``Scheduled`` but never ``In Use``.
    """

    grouped = group_by_room(entries, now.weekday(), now.date())
    moment = now.time()
    resolved: List[RoomAvailability[R]] = []
    for room in rooms:
        room_entries = grouped.get(normalize(room.name), [])
        if not room_entries:
            status = RoomStatus.AVAILABLE
        elif any(_occupied_at(entry, moment) for entry in room_entries):
            status = RoomStatus.IN_USE
        else:
            status = RoomStatus.SCHEDULED
        resolved.append(RoomAvailability(room=room, status=status))
    return resolved


def busy_rooms(
    entries: Iterable[ScheduleEntry],
    weekday: int,
    start: time,
    end: time,
    on_date: Optional[date] = None,
) -> set[str]:
    """Normalized names of rooms with an entry overlapping ``[start, end)``."""

    busy: set[str] = set()
    for key, room_entries in group_by_room(entries, weekday, on_date).items():
        for entry in room_entries:
            window = _window(entry)
            if window is None:
                continue
            entry_start, entry_end = window
            if entry_start < end and (entry_end is None or entry_end > start):
                busy.add(key)
                break
    return busy


def search_available(
    rooms: Sequence[R],
    entries: Iterable[ScheduleEntry],
    weekday: int,
    start: time,
    end: time,
    on_date: Optional[date] = None,
) -> List[RoomAvailability[R]]:
    """Return the rooms free for the whole ``[start, end)`` window, in input order."""

    if end <= start:
        raise ValueError("end must be after start")
    busy = busy_rooms(entries, weekday, start, end, on_date)
    return [
        RoomAvailability(room=room, status=RoomStatus.AVAILABLE)
        for room in rooms
        if normalize(room.name) not in busy
    ]
