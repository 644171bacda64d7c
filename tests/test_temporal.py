"""Tests for the temporal helpers: parsing, birthdays, reminders and views."""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone

from kyndra.domain.models import Event, Person
from kyndra.services.temporal import (
    DATE_NOT_SET,
    EventView,
    countdown_label,
    day_window,
    format_range,
    format_remaining,
    is_muted,
    next_occurrence,
    next_occurrence_key,
    overlaps_today,
    parse_instant,
    partition_events,
    reminder_label,
    sort_by_next_occurrence,
    start_of_day,
)

_NOW = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


def _at(day: int, hour: int = 0, minute: int = 0, month: int = 3) -> str:
    return datetime(2024, month, day, hour, minute, tzinfo=timezone.utc).isoformat()


def _event(title: str, starts_at: str | None, ends_at: str | None = None, **extra) -> Event:
    return Event(id=title, space_id="space-1", title=title, starts_at=starts_at, ends_at=ends_at, **extra)


def _person(person_id: str, birthdate: str | None) -> Person:
    return Person(id=person_id, name=f"Person {person_id}", birthdate=birthdate)


# ---------------------------------------------------------------------------
# parse_instant
# ---------------------------------------------------------------------------


def test_parse_rejects_missing_and_garbage():
    for value in (None, "", "   ", "garbage", 12345, ["2024-01-01"]):
        assert parse_instant(value) is None


def test_partial_values_are_not_completed_from_the_clock():
    for value in ("23:00", "15:30", "17", "Friday", "March 5"):
        assert parse_instant(value) is None
        assert parse_instant(value, timezone.utc) is None
    assert next_occurrence("17", _NOW) is None
    assert countdown_label("Friday", _NOW) is None
    assert reminder_label("23:00", 30, _NOW) is None
    assert not overlaps_today(_event("time-only", "23:00"), _NOW)


def test_parse_iso_with_offset():
    parsed = parse_instant("2024-03-10T10:00:00Z")
    assert parsed == datetime(2024, 3, 10, 10, 0, tzinfo=timezone.utc)


def test_parse_date_only_takes_caller_zone():
    parsed = parse_instant("1990-05-17", timezone.utc)
    assert parsed == datetime(1990, 5, 17, tzinfo=timezone.utc)


def test_parse_converts_aware_values_into_caller_zone():
    plus_two = timezone(timedelta(hours=2))
    parsed = parse_instant("2024-03-10T10:00:00Z", plus_two)
    assert parsed.hour == 12
    assert parsed.utcoffset() == timedelta(hours=2)


def test_parse_accepts_date_and_datetime_objects():
    assert parse_instant(date(2024, 3, 10)) == datetime(2024, 3, 10)
    assert parse_instant(_NOW) is _NOW


def test_format_range_handles_missing_values():
    assert format_range(None, None) == DATE_NOT_SET
    assert format_range("garbage", None) == DATE_NOT_SET
    single = format_range(_at(10, 9), None)
    assert "2024" in single and "–" not in single
    assert "–" in format_range(_at(10, 9), _at(10, 11))


def test_day_window_is_half_open_day():
    start, end = day_window(_NOW)
    assert start == datetime(2024, 3, 10, tzinfo=timezone.utc)
    assert end == datetime(2024, 3, 11, tzinfo=timezone.utc)
    assert start_of_day(_NOW) == start


# ---------------------------------------------------------------------------
# Annual-occurrence resolver
# ---------------------------------------------------------------------------


def test_next_occurrence_later_this_year():
    assert next_occurrence("1990-05-17", _NOW) == datetime(2024, 5, 17, tzinfo=timezone.utc)


def test_birthday_today_stays_this_year_even_after_midnight():
    assert next_occurrence("1985-03-10", _NOW) == datetime(2024, 3, 10, tzinfo=timezone.utc)
    assert countdown_label("1985-03-10", _NOW) == "Today"


def test_birthday_already_passed_moves_to_next_year():
    assert next_occurrence("1990-03-09", _NOW) == datetime(2025, 3, 9, tzinfo=timezone.utc)
    assert countdown_label("1990-03-09", _NOW) == "In 364 days"


def test_countdown_labels():
    assert countdown_label("2001-03-11", _NOW) == "Tomorrow"
    assert countdown_label("2001-03-12", _NOW) == "In 2 days"
    assert countdown_label("2001-03-15", _NOW) == "In 5 days"


def test_countdown_uses_calendar_days_not_time_of_day():
    late = datetime(2024, 3, 10, 23, 59, tzinfo=timezone.utc)
    assert countdown_label("2001-03-11", late) == "Tomorrow"


def test_invalid_birthdate_has_no_label_and_sorts_last():
    assert countdown_label(None, _NOW) is None
    assert countdown_label("garbage", _NOW) is None
    assert next_occurrence_key(None, _NOW) == math.inf
    assert next_occurrence_key("garbage", _NOW) == math.inf


def test_leap_day_birthday_falls_on_feb_28_in_common_years():
    now = datetime(2025, 1, 10, tzinfo=timezone.utc)
    assert next_occurrence("1992-02-29", now) == datetime(2025, 2, 28, tzinfo=timezone.utc)

    after = datetime(2025, 3, 1, tzinfo=timezone.utc)
    assert next_occurrence("1992-02-29", after) == datetime(2026, 2, 28, tzinfo=timezone.utc)


def test_sort_by_next_occurrence_orders_and_keeps_ties_stable():
    people = [
        _person("missing", None),
        _person("june", "1980-06-01"),
        _person("april-a", "1999-04-02"),
        _person("broken", "garbage"),
        _person("april-b", "1970-04-02"),
        _person("march", "2010-03-20"),
    ]
    ordered = [p.id for p in sort_by_next_occurrence(people, _NOW)]
    assert ordered == ["march", "april-a", "april-b", "june", "missing", "broken"]


def test_next_occurrence_is_never_before_today_and_at_most_a_year_out():
    now = datetime(2023, 7, 15, 13, 45, tzinfo=timezone.utc)
    today = start_of_day(now)
    day = date(2001, 1, 1)
    while day.year == 2001:
        occurrence = next_occurrence(day.isoformat(), now)
        assert occurrence >= today
        assert occurrence.year in (now.year, now.year + 1)
        assert (occurrence.month, occurrence.day) == (day.month, day.day)
        assert occurrence - today < timedelta(days=366)
        day += timedelta(days=1)


def test_occurrence_fed_back_a_year_later_advances_one_year():
    first = next_occurrence("1990-05-17", _NOW)
    later = next_occurrence(first, _NOW.replace(year=2025))
    assert (later.month, later.day) == (first.month, first.day)
    assert later.year == first.year + 1


# ---------------------------------------------------------------------------
# Reminder-offset resolver
# ---------------------------------------------------------------------------


def test_reminder_already_due():
    assert reminder_label("2024-03-10T10:00:00Z", 90, _NOW) == "due"


def test_reminder_days_and_hours():
    assert reminder_label("2024-03-12T09:00:00Z", 60, _NOW) == "1d 23h"


def test_reminder_accepts_string_now():
    assert reminder_label("2024-03-10T10:00:00", 90, "2024-03-10T09:00:00") == "due"


def test_reminder_none_once_event_started():
    for lead in (0, 15, 60, 10_000):
        assert reminder_label(_at(10, 9), lead, _NOW) is None
        assert reminder_label(_at(10, 8), lead, _NOW) is None


def test_reminder_none_without_lead_or_start():
    assert reminder_label(_at(12, 9), 0, _NOW) is None
    assert reminder_label(_at(12, 9), None, _NOW) is None
    assert reminder_label(None, 30, _NOW) is None
    assert reminder_label("garbage", 30, _NOW) is None
    assert reminder_label(_at(12, 9), 30, "garbage") is None


def test_reminder_rounds_remaining_minutes_up():
    start = _NOW + timedelta(minutes=40, seconds=6)
    assert reminder_label(start.isoformat(), 10, _NOW) == "31m"


def test_format_remaining_bands():
    assert format_remaining(1) == "1m"
    assert format_remaining(59) == "59m"
    assert format_remaining(60) == "1h"
    assert format_remaining(61) == "1h 1m"
    assert format_remaining(1439) == "23h 59m"
    assert format_remaining(1440) == "1d"
    assert format_remaining(1441) == "1d"
    assert format_remaining(1500) == "1d 1h"
    assert format_remaining(3 * 1440 + 125) == "3d 2h"


def _label_minutes(label: str) -> int:
    parts = dict((unit, int(n)) for n, unit in re.findall(r"(\d+)([dhm])", label))
    return parts.get("d", 0) * 1440 + parts.get("h", 0) * 60 + parts.get("m", 0)


def test_reminder_label_never_grows_as_time_passes():
    start = datetime(2024, 3, 13, 18, 0, tzinfo=timezone.utc)
    lead = 45
    now = start - timedelta(days=3)
    previous = math.inf
    while True:
        label = reminder_label(start.isoformat(), lead, now)
        if label == "due":
            break
        current = _label_minutes(label)
        assert current <= previous
        previous = current
        now += timedelta(seconds=37)
    assert now >= start - timedelta(minutes=lead)


# ---------------------------------------------------------------------------
# View partitioner
# ---------------------------------------------------------------------------


def test_today_includes_overnight_event_still_running():
    overnight = _event("overnight", _at(9, 23), _at(10, 1))
    assert overlaps_today(overnight, _NOW)
    assert partition_events([overnight], _NOW, EventView.TODAY) == [overnight]


def test_today_includes_point_event_late_tonight():
    late = _event("late", _at(10, 23, 59))
    assert partition_events([late], _NOW, "today") == [late]


def test_today_excludes_point_event_from_yesterday():
    yesterday = _event("yesterday", _at(9, 10))
    assert partition_events([yesterday], _NOW, EventView.TODAY) == []


def test_today_window_boundaries():
    ended_at_midnight = _event("ended-at-midnight", _at(9, 20), _at(10, 0))
    tomorrow = _event("tomorrow", _at(11, 0))
    no_start = _event("no-start", None, _at(10, 12))
    kept = partition_events([tomorrow, no_start, ended_at_midnight], _NOW, EventView.TODAY)
    assert kept == [ended_at_midnight]


def test_today_orders_by_start():
    evening = _event("evening", _at(10, 19))
    morning = _event("morning", _at(10, 7))
    assert partition_events([evening, morning], _NOW, EventView.TODAY) == [morning, evening]


def test_upcoming_sorts_ascending_with_missing_start_last():
    events = [_event("b", _at(12)), _event("none", None), _event("a", _at(11))]
    ordered = [e.id for e in partition_events(events, _NOW, EventView.UPCOMING)]
    assert ordered == ["a", "b", "none"]


def test_past_sorts_descending_with_missing_start_last():
    events = [_event("old", _at(1)), _event("none", None), _event("recent", _at(5))]
    ordered = [e.id for e in partition_events(events, _NOW, EventView.PAST)]
    assert ordered == ["recent", "old", "none"]


def test_all_keeps_received_order():
    events = [_event("z", _at(20)), _event("none", "garbage"), _event("a", _at(1))]
    assert partition_events(events, _NOW, EventView.ALL) == events


def test_search_matches_title_or_description_case_insensitively():
    brunch = _event("Family brunch", _at(10, 11))
    picnic = _event("Picnic", _at(10, 13), description="At the PARK")
    other = _event("Dentist", _at(10, 15))
    assert partition_events([brunch, picnic, other], _NOW, EventView.ALL, "BRUNCH") == [brunch]
    assert partition_events([brunch, picnic, other], _NOW, EventView.ALL, " park ") == [picnic]
    assert partition_events([brunch, picnic, other], _NOW, EventView.ALL, "") == [brunch, picnic, other]


def test_search_applies_before_today_filter():
    picnic = _event("Picnic", _at(10, 13))
    old_picnic = _event("Picnic 2", _at(2, 13))
    assert partition_events([old_picnic, picnic], _NOW, EventView.TODAY, "picnic") == [picnic]


def test_muted_flag_uses_effective_end():
    finished = _event("finished", _at(10, 6), _at(10, 8))
    running = _event("running", _at(10, 8), _at(10, 10))
    started_point = _event("point", _at(10, 8))
    broken_end = _event("broken-end", _at(10, 8), "garbage")
    no_start = _event("no-start", None, _at(10, 1))
    assert is_muted(finished, _NOW)
    assert not is_muted(running, _NOW)
    assert is_muted(started_point, _NOW)
    assert is_muted(broken_end, _NOW)
    assert not is_muted(no_start, _NOW)


def test_muted_events_stay_in_today_view():
    finished = _event("finished", _at(10, 6), _at(10, 8))
    assert partition_events([finished], _NOW, EventView.TODAY) == [finished]
    assert is_muted(finished, _NOW)
