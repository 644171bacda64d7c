"""Tests for the events service: rows, reminders, writes and the delete cascade."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from kyndra.domain.bus import EventBus
from kyndra.domain.errors import NotFound, StoreError, StoreFailure, ValidationFailed
from kyndra.domain.events import EventDeleted
from kyndra.domain.handlers import HandlerRegistry
from kyndra.domain.models import Event, EventForm
from kyndra.repos.memory import MemoryRowStore
from kyndra.repos.tables import EventReminderRepository, EventRepository, ProfileRepository
from kyndra.services.events import EventsService, build_rows, normalize_instant
from kyndra.services.temporal import EventView

_NOW = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)
_SPACE = "space-1"


@pytest.fixture()
def env():
    """Fresh store, bus, handlers and service for each test."""
    bus = EventBus()
    store = MemoryRowStore()
    reminder_repo = EventReminderRepository(store)
    registry = HandlerRegistry(bus=bus, profile_repo=ProfileRepository(store), reminder_repo=reminder_repo)
    service = EventsService(EventRepository(store), reminder_repo, bus, timezone.utc)

    class Env:
        pass

    e = Env()
    e.bus = bus
    e.store = store
    e.registry = registry
    e.service = service
    return e


def _iso(delta: timedelta) -> str:
    return (_NOW + delta).isoformat()


def _create(env, title: str, starts: timedelta, ends: timedelta | None = None, minutes: int | None = None):
    form = EventForm(
        title=title,
        starts_at=_iso(starts),
        ends_at=_iso(ends) if ends is not None else None,
        remind_minutes_before=minutes,
    )
    return env.service.create(_SPACE, form, _NOW)


def _event(event_id: str, starts_at: str | None, ends_at: str | None = None) -> Event:
    return Event(id=event_id, space_id=_SPACE, title=event_id, starts_at=starts_at, ends_at=ends_at)


# ---------------------------------------------------------------------------
# normalize_instant
# ---------------------------------------------------------------------------


def test_normalize_iso_input_to_utc():
    plus_two = timezone(timedelta(hours=2))
    assert normalize_instant("2024-03-10T12:00", _NOW, plus_two) == "2024-03-10T10:00:00+00:00"
    assert normalize_instant("2024-03-10T12:00:00Z", _NOW, plus_two) == "2024-03-10T12:00:00+00:00"


def test_normalize_blank_and_unparseable():
    assert normalize_instant(None, _NOW, timezone.utc) is None
    assert normalize_instant("  ", _NOW, timezone.utc) is None
    assert normalize_instant("qwertyuiop", _NOW, timezone.utc) is None


def test_normalize_natural_language_relative_to_now():
    result = normalize_instant("tomorrow", _NOW, timezone.utc)
    assert result is not None
    assert result.startswith("2024-03-11")


# ---------------------------------------------------------------------------
# build_rows
# ---------------------------------------------------------------------------


def test_past_rows_are_always_muted_and_unlabelled():
    rows = build_rows([_event("old", _iso(timedelta(days=-1)))], {"old": 30}, EventView.PAST, _NOW)
    assert rows[0].muted is True
    assert rows[0].reminder_label is None
    assert rows[0].expired is False


def test_upcoming_rows_carry_reminder_labels():
    event = _event("soon", _iso(timedelta(hours=2)))
    rows = build_rows([event], {"soon": 60}, EventView.UPCOMING, _NOW)
    assert rows[0].muted is False
    assert rows[0].remind_minutes_before == 60
    assert rows[0].reminder_label == "1h"


def test_today_marks_finished_events_expired_without_label():
    finished = _event("finished", _iso(timedelta(hours=-3)), _iso(timedelta(hours=-1)))
    later = _event("later", _iso(timedelta(hours=3)))
    rows = build_rows([later, finished], {"finished": 30, "later": 30}, EventView.TODAY, _NOW)
    assert [row.event.id for row in rows] == ["finished", "later"]
    assert rows[0].expired and rows[0].muted and rows[0].reminder_label is None
    assert not rows[1].expired and rows[1].reminder_label == "2h 30m"


def test_all_view_mutes_finished_events_but_shows_no_labels():
    finished = _event("finished", _iso(timedelta(days=-2)))
    later = _event("later", _iso(timedelta(days=2)))
    rows = build_rows([later, finished], {"later": 30}, EventView.ALL, _NOW)
    assert [row.event.id for row in rows] == ["later", "finished"]
    assert [row.muted for row in rows] == [False, True]
    assert all(row.reminder_label is None for row in rows)


def test_refreshing_with_later_now_updates_labels():
    event = _event("soon", _iso(timedelta(hours=2)))
    first = build_rows([event], {"soon": 60}, EventView.UPCOMING, _NOW)
    later = build_rows([event], {"soon": 60}, EventView.UPCOMING, _NOW + timedelta(minutes=61))
    assert first[0].reminder_label == "1h"
    assert later[0].reminder_label == "due"


# ---------------------------------------------------------------------------
# Service reads
# ---------------------------------------------------------------------------


def test_list_views_split_by_start(env):
    _create(env, "Tomorrow", timedelta(days=1), minutes=30)
    _create(env, "Yesterday", timedelta(days=-1))
    _create(env, "Earlier today", timedelta(hours=-2), timedelta(hours=-1))

    upcoming = env.service.list_view(_SPACE, EventView.UPCOMING, _NOW)
    past = env.service.list_view(_SPACE, EventView.PAST, _NOW)
    today = env.service.list_view(_SPACE, EventView.TODAY, _NOW)
    everything = env.service.list_view(_SPACE, EventView.ALL, _NOW)

    assert [r.event.title for r in upcoming.items] == ["Tomorrow"]
    assert upcoming.items[0].reminder_label == "23h 30m"
    assert [r.event.title for r in past.items] == ["Earlier today", "Yesterday"]
    assert [r.event.title for r in today.items] == ["Earlier today"]
    assert len(everything.items) == 3


def test_list_view_applies_search(env):
    _create(env, "Family brunch", timedelta(days=1))
    _create(env, "Dentist", timedelta(days=2))
    page = env.service.list_view(_SPACE, EventView.UPCOMING, _NOW, "brunch")
    assert page.query == "brunch"
    assert [r.event.title for r in page.items] == ["Family brunch"]


def test_failed_reminder_lookup_only_hides_labels(env):
    _create(env, "Tomorrow", timedelta(days=1), minutes=30)
    env.store.inject_error("event_reminders", StoreError(message="boom"))
    page = env.service.list_view(_SPACE, EventView.UPCOMING, _NOW)
    assert page.items[0].reminder_label is None


def test_failed_event_query_raises(env):
    env.store.inject_error("events", StoreError(message="network down"))
    with pytest.raises(StoreFailure, match="network down"):
        env.service.list_view(_SPACE, EventView.UPCOMING, _NOW)


def test_get_missing_event(env):
    with pytest.raises(NotFound):
        env.service.get(_SPACE, "nope")


# ---------------------------------------------------------------------------
# Service writes
# ---------------------------------------------------------------------------


def test_create_validates_before_touching_store(env):
    with pytest.raises(ValidationFailed, match="Title is required."):
        env.service.create(_SPACE, EventForm(title=" ", starts_at=_iso(timedelta(days=1))), _NOW)
    with pytest.raises(ValidationFailed, match="Start date/time is required."):
        env.service.create(_SPACE, EventForm(title="Party"), _NOW)
    with pytest.raises(ValidationFailed, match="Select a space"):
        env.service.create(None, EventForm(title="Party", starts_at=_iso(timedelta(days=1))), _NOW)
    assert env.store.rows("events") == []


def test_create_with_reminder(env):
    detail = _create(env, "Party", timedelta(days=1), minutes=60)
    assert detail.remind_minutes_before == 60
    assert env.service.get(_SPACE, detail.event.id).remind_minutes_before == 60


def test_update_reminder_none_keeps_zero_removes(env):
    detail = _create(env, "Party", timedelta(days=1), minutes=60)
    event_id = detail.event.id
    starts_at = detail.event.starts_at

    kept = env.service.update(_SPACE, event_id, EventForm(title="Party!", starts_at=starts_at), _NOW)
    assert kept.event.title == "Party!"
    assert kept.remind_minutes_before == 60

    changed = env.service.update(
        _SPACE, event_id, EventForm(title="Party!", starts_at=starts_at, remind_minutes_before=15), _NOW
    )
    assert changed.remind_minutes_before == 15
    assert len(env.store.rows("event_reminders")) == 1

    removed = env.service.update(
        _SPACE, event_id, EventForm(title="Party!", starts_at=starts_at, remind_minutes_before=0), _NOW
    )
    assert removed.remind_minutes_before is None
    assert env.store.rows("event_reminders") == []


def test_update_missing_event(env):
    form = EventForm(title="Party", starts_at=_iso(timedelta(days=1)))
    with pytest.raises(NotFound):
        env.service.update(_SPACE, "nope", form, _NOW)


def test_delete_publishes_and_cascades_reminder(env):
    detail = _create(env, "Party", timedelta(days=1), minutes=60)
    seen = []
    env.bus.subscribe(EventDeleted, seen.append)

    env.service.delete(_SPACE, detail.event.id)

    assert env.store.rows("events") == []
    assert env.store.rows("event_reminders") == []
    assert seen == [EventDeleted(event_id=detail.event.id, space_id=_SPACE)]


def test_delete_requires_space_and_existing_event(env):
    with pytest.raises(ValidationFailed):
        env.service.delete(None, "x")
    with pytest.raises(NotFound):
        env.service.delete(_SPACE, "x")
