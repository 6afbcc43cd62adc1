"""
Due-date normalization for Taskmate.

A stored due date is either a calendar date ("YYYY-MM-DD") or a wall-clock
date and time followed by the UTC offset the user was in when saving
("YYYY-MM-DDTHH:MM:SS+02:00"). The wall-clock components are what the user
typed; they are read back verbatim and never shifted into the viewer's zone.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from taskmate.errors import ParseError, ValidationError

logger = logging.getLogger(__name__)

_DATE_ONLY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DATE_TIME = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$"
)
_ZONE_SUFFIX = re.compile(r"(Z|[+-]\d{2}:\d{2})$")
_CLOCK = re.compile(r"\d{2}:\d{2}")
_CLOCK_TEXT = re.compile(r"^(\d{1,2}):(\d{2})$")

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Due-date filter buckets
DUE_FILTERS = ("all", "overdue", "today", "tomorrow", "upcoming")


@dataclass(frozen=True)
class DueDate:
    """
    A due date in local civil time.

    Attributes:
        value: Naive datetime holding the wall-clock components
        has_time: True when a time of day was set explicitly
        offset: UTC offset recorded in storage (None if date-only or unsaved)
    """

    value: datetime
    has_time: bool = False
    offset: Optional[timedelta] = None

    @property
    def day(self) -> date:
        return self.value.date()

    def to_storage(self) -> str:
        """Format for storage, re-emitting the recorded offset if any."""
        return format_due_date(self.value, self.has_time, self.offset)

    @classmethod
    def from_value(cls, value: date | datetime, has_time: Optional[bool] = None) -> "DueDate":
        """
        Build a DueDate from a user-chosen date or datetime.

        Plain dates are date-only. For datetimes, has_time=None means the time
        counts only when it is not midnight. Aware datetimes keep their wall
        clock and their offset.
        """
        if not isinstance(value, datetime):
            return cls(value=datetime.combine(value, time()), has_time=False)

        offset = value.utcoffset() if value.tzinfo is not None else None
        naive = value.replace(tzinfo=None, microsecond=0)
        if has_time is None:
            has_time = naive.time() != time()
        return cls(value=naive, has_time=has_time, offset=offset if has_time else None)


def parse_due_date(stored: str) -> DueDate:
    """
    Parse a stored due-date string.

    Any trailing "Z" or "+HH:MM"/"-HH:MM" marker is stripped and the remaining
    components are taken as local civil time.

    Raises:
        ParseError: If the components cannot be extracted
    """
    if not isinstance(stored, str):
        raise ParseError(f"Due date must be a string, got {type(stored).__name__}")

    text = stored.strip()
    has_time = "T" in text and _CLOCK.search(text) is not None

    try:
        if not has_time:
            match = _DATE_ONLY.match(text)
            if not match:
                raise ParseError(f"Malformed due date: {stored!r}")
            year, month, day = (int(g) for g in match.groups())
            return DueDate(value=datetime(year, month, day), has_time=False)

        offset = None
        zone = _ZONE_SUFFIX.search(text)
        if zone:
            offset = _parse_offset(zone.group(1))
            text = text[:zone.start()]

        match = _DATE_TIME.match(text)
        if not match:
            raise ParseError(f"Malformed due date: {stored!r}")
        year, month, day, hour, minute = (int(g) for g in match.groups()[:5])
        second = int(match.group(6) or 0)
        return DueDate(
            value=datetime(year, month, day, hour, minute, second),
            has_time=True,
            offset=offset,
        )
    except ValueError as e:
        if isinstance(e, ParseError):
            raise
        raise ParseError(f"Invalid due date {stored!r}: {e}") from e


def parse_optional_due_date(stored: Optional[str]) -> Optional[DueDate]:
    """Parse a due date, treating empty or malformed values as absent."""
    if not stored:
        return None
    try:
        return parse_due_date(stored)
    except ParseError as e:
        logger.warning(f"Ignoring due date: {e}")
        return None


def format_due_date(
    value: date | datetime,
    has_time: Optional[bool] = None,
    offset: Optional[timedelta] = None,
) -> str:
    """
    Format a due date for storage.

    Args:
        value: Date or datetime (wall-clock components are used as-is)
        has_time: Emit the time of day. None means only when not midnight.
        offset: UTC offset to append. Defaults to the datetime's own offset,
                or the local zone's offset for that moment.

    Returns:
        "YYYY-MM-DD" or "YYYY-MM-DDTHH:MM:SS+HH:MM"
    """
    day_text = f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
    if not isinstance(value, datetime):
        return day_text

    if has_time is None:
        has_time = value.time().replace(microsecond=0) != time()
    if not has_time:
        return day_text

    if offset is None:
        offset = value.utcoffset() if value.tzinfo is not None else local_offset(value)

    return (
        f"{day_text}T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
        f"{_format_offset(offset)}"
    )


def local_offset(value: datetime) -> timedelta:
    """UTC offset of the local zone at the given wall-clock moment (DST-aware)."""
    return value.replace(tzinfo=None).astimezone().utcoffset()


def _format_offset(offset: timedelta) -> str:
    minutes = round(offset.total_seconds() / 60)
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_offset(marker: str) -> timedelta:
    if marker == "Z":
        return timedelta(0)
    sign = -1 if marker[0] == "-" else 1
    hours, minutes = int(marker[1:3]), int(marker[4:6])
    return sign * timedelta(hours=hours, minutes=minutes)


def _local_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now()
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


def due_bucket(due: DueDate, now: Optional[datetime] = None) -> str:
    """
    Classify a due date relative to the viewer's current local day.

    Returns:
        "overdue", "today", "tomorrow" or "upcoming"
    """
    now = _local_now(now)
    today = now.date()

    if due.value < now and due.day != today:
        return "overdue"
    if due.day == today:
        return "today"
    if due.day == today + timedelta(days=1):
        return "tomorrow"
    return "upcoming"


def matches_due_filter(
    due: Optional[DueDate],
    due_filter: str,
    now: Optional[datetime] = None,
) -> bool:
    """
    Check a due date against a due-date filter.

    "upcoming" matches anything from today onwards. Missing due dates only
    match "all".
    """
    if due_filter not in DUE_FILTERS:
        raise ValidationError(f"Invalid due date filter. Must be one of: {', '.join(DUE_FILTERS)}")
    if due_filter == "all":
        return True
    if due is None:
        return False

    today = _local_now(now).date()

    if due_filter == "overdue":
        return due.day < today
    if due_filter == "today":
        return due.day == today
    if due_filter == "tomorrow":
        return due.day == today + timedelta(days=1)
    return due.day >= today


def _clock_text(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def describe_due_date(
    due: DueDate,
    now: Optional[datetime] = None,
    relative: bool = True,
) -> str:
    """
    Human-readable due date, e.g. "Today at 2:30 PM" or "Mar 15, 2024".

    With relative=False the full date is always shown.
    """
    value = due.value
    month_day = f"{_MONTHS[value.month - 1]} {value.day}"
    full = f"{month_day}, {value.year}"
    clock = f" at {_clock_text(value)}" if due.has_time else ""

    if not relative:
        return full + clock

    now = _local_now(now)
    if due.day == now.date():
        return "Today" + clock
    if due.day == now.date() + timedelta(days=1):
        return "Tomorrow" + clock
    if value < now:
        return full + clock
    return month_day + clock


def parse_clock(text: str) -> time:
    """Parse an "HH:MM" time-of-day string."""
    match = _CLOCK_TEXT.match(text.strip())
    if not match:
        raise ValidationError(f"Invalid time: {text!r}. Expected HH:MM")
    try:
        return time(int(match.group(1)), int(match.group(2)))
    except ValueError as e:
        raise ValidationError(f"Invalid time: {text!r}") from e


def combine_date_time(day: date, time_text: Optional[str] = None) -> datetime:
    """Combine a calendar day with an optional "HH:MM" time (midnight if absent)."""
    if isinstance(day, datetime):
        day = day.date()
    clock = parse_clock(time_text) if time_text else time()
    return datetime.combine(day, clock)
