"""Temporal utilities: birthday recurrence, reminder countdowns and event views.

Every function takes ``now`` explicitly and never reads the system clock, so
callers (routes, screen controllers, tests) decide what "now" means.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, tzinfo
from enum import StrEnum
from typing import Any, Iterable, Sequence, TypeVar

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

DATE_NOT_SET = "Date not set"
REMINDER_DUE_LABEL = "due"

_MINUTES_PER_DAY = 1440
_MINUTES_PER_HOUR = 60

T = TypeVar("T")


class EventView(StrEnum):
    UPCOMING = "upcoming"
    TODAY = "today"
    PAST = "past"
    ALL = "all"


# ---------------------------------------------------------------------------
# Date parsing / validation
# ---------------------------------------------------------------------------


def parse_instant(value: Any, tz: tzinfo | None = None) -> datetime | None:
    """Parse a date-ish value into a ``datetime``, or ``None`` when invalid.

    Accepts ``None``, strings, ``date`` and ``datetime``. Never raises. When
    *tz* is given, naive results are placed in that zone and aware results
    are converted into it.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # ISO only; a partial value like "23:00" must not borrow today's date
        try:
            parsed = isoparse(text)
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if tz is not None:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        else:
            parsed = parsed.astimezone(tz)
    return parsed


def align(value: Any, now: datetime) -> datetime | None:
    """Parse *value* so it can be compared against *now*.

    Naive values are read in ``now``'s zone. An aware value compared against a
    naive ``now`` is converted to system local time and made naive.
    """
    parsed = parse_instant(value, now.tzinfo)
    if parsed is not None and now.tzinfo is None and parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def day_window(now: datetime) -> tuple[datetime, datetime]:
    """Return the half-open ``[today_midnight, tomorrow_midnight)`` window."""
    start = start_of_day(now)
    end = datetime.combine(start.date() + timedelta(days=1), time(), tzinfo=start.tzinfo)
    return start, end


def format_date(value: Any) -> str:
    parsed = parse_instant(value)
    if parsed is None:
        return DATE_NOT_SET
    return parsed.strftime("%b %d, %Y").replace(" 0", " ")


def format_datetime(value: Any, tz: tzinfo | None = None) -> str:
    parsed = parse_instant(value, tz)
    if parsed is None:
        return DATE_NOT_SET
    return parsed.strftime("%b %d, %Y %I:%M %p").replace(" 0", " ")


def format_range(starts_at: Any, ends_at: Any, tz: tzinfo | None = None) -> str:
    """Render an event's start/end pair for display."""
    if not starts_at and not ends_at:
        return DATE_NOT_SET
    if starts_at and not ends_at:
        return format_datetime(starts_at, tz)
    if ends_at and not starts_at:
        return format_datetime(ends_at, tz)
    return f"{format_datetime(starts_at, tz)} – {format_datetime(ends_at, tz)}"


# ---------------------------------------------------------------------------
# Annual-occurrence resolver
# ---------------------------------------------------------------------------


def _on_month_day(year: int, month: int, day: int, anchor: datetime) -> datetime:
    # relativedelta clamps Feb 29 to Feb 28 in non-leap years
    return anchor.replace(year=year, month=1, day=1) + relativedelta(month=month, day=day)


def next_occurrence(birthdate: Any, now: datetime) -> datetime | None:
    """Return midnight of the next month/day of *birthdate* at or after today.

    The year of *birthdate* is ignored. Returns ``None`` for an absent or
    unparseable birthdate. Month and day are read as written, without
    converting between zones.
    """
    parsed = parse_instant(birthdate)
    if parsed is None:
        return None
    today = start_of_day(now)
    candidate = _on_month_day(today.year, parsed.month, parsed.day, today)
    if candidate < today:
        candidate = _on_month_day(today.year + 1, parsed.month, parsed.day, today)
    return candidate


def next_occurrence_key(birthdate: Any, now: datetime) -> float:
    """Sort key for the next birthday; invalid dates sort last."""
    occurrence = next_occurrence(birthdate, now)
    if occurrence is None:
        return math.inf
    return occurrence.timestamp()


def days_until(birthdate: Any, now: datetime) -> int | None:
    occurrence = next_occurrence(birthdate, now)
    if occurrence is None:
        return None
    return (occurrence.date() - now.date()).days


def countdown_label(birthdate: Any, now: datetime) -> str | None:
    """Return "Today", "Tomorrow" or "In N days" for the next birthday."""
    days = days_until(birthdate, now)
    if days is None:
        return None
    if days <= 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    return f"In {days} days"


def sort_by_next_occurrence(people: Iterable[T], now: datetime) -> list[T]:
    """Stable ascending sort of birthday records by their next occurrence.

    Records are expected to carry a ``birthdate`` attribute. Ties keep input
    order.
    """
    return sorted(people, key=lambda person: next_occurrence_key(person.birthdate, now))


# ---------------------------------------------------------------------------
# Reminder-offset resolver
# ---------------------------------------------------------------------------


def format_remaining(total_minutes: int) -> str:
    """Compact remaining-time label, largest band first."""
    if total_minutes >= _MINUTES_PER_DAY:
        days, remainder = divmod(total_minutes, _MINUTES_PER_DAY)
        hours = remainder // _MINUTES_PER_HOUR
        return f"{days}d {hours}h" if hours > 0 else f"{days}d"
    if total_minutes >= _MINUTES_PER_HOUR:
        hours, minutes = divmod(total_minutes, _MINUTES_PER_HOUR)
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    return f"{total_minutes}m"


def reminder_label(
    starts_at: Any,
    remind_minutes_before: int | None,
    now: Any,
) -> str | None:
    """Return the reminder countdown for an event, or ``None``.

    ``None`` when the event has no start, no lead time, unparseable
    instants, or has already started. Once the reminder instant has passed
    the label is ``"due"``; before that it is the remaining time rounded up
    to the next whole minute.
    """
    if not starts_at or not remind_minutes_before:
        return None
    current = parse_instant(now)
    if current is None:
        return None
    start = align(starts_at, current)
    if start is None or current >= start:
        return None

    reminder_at = start - timedelta(minutes=remind_minutes_before)
    if current >= reminder_at:
        return REMINDER_DUE_LABEL

    remaining = math.ceil((reminder_at - current).total_seconds() / 60)
    return format_remaining(remaining)


# ---------------------------------------------------------------------------
# View partitioner
# ---------------------------------------------------------------------------


def matches_query(event: Any, query: str | None) -> bool:
    needle = (query or "").strip().lower()
    if not needle:
        return True
    haystack = f"{event.title or ''} {event.description or ''}".lower()
    return needle in haystack


def overlaps_today(event: Any, now: datetime) -> bool:
    """True when *event* overlaps today's ``[midnight, next midnight)`` window.

    Point events must start inside the window; ranged events only need to
    still be running at midnight.
    """
    window_start, window_end = day_window(now)
    start = align(event.starts_at, now)
    if start is None or start >= window_end:
        return False
    end = align(event.ends_at, now)
    if end is not None:
        return end >= window_start
    return start >= window_start


def is_muted(event: Any, now: datetime) -> bool:
    """True when the event's effective end is already behind *now*."""
    start = align(event.starts_at, now)
    if start is None:
        return False
    end = align(event.ends_at, now)
    return (end or start) < now


def _start_key(event: Any, now: datetime, missing: float) -> float:
    start = align(event.starts_at, now)
    return start.timestamp() if start is not None else missing


def partition_events(
    events: Sequence[T],
    now: datetime,
    view: EventView | str,
    query: str | None = None,
) -> list[T]:
    """Filter and order *events* for a view.

    ``upcoming`` and ``past`` assume the store already applied the matching
    ``starts_at`` predicate; here they are only ordered. ``all`` keeps the
    received order.
    """
    view = EventView(view)
    selected = [event for event in events if matches_query(event, query)]

    if view is EventView.TODAY:
        selected = [event for event in selected if overlaps_today(event, now)]
        return sorted(selected, key=lambda e: _start_key(e, now, math.inf))
    if view is EventView.UPCOMING:
        return sorted(selected, key=lambda e: _start_key(e, now, math.inf))
    if view is EventView.PAST:
        # missing starts count as oldest, so they land last when descending
        return sorted(selected, key=lambda e: _start_key(e, now, -math.inf), reverse=True)
    return selected
