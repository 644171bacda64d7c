"""Service for listing, editing and deleting a space's events."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Mapping, Sequence

import dateparser
from dateutil.parser import isoparse

from kyndra.domain.bus import EventBus
from kyndra.domain.errors import NotFound, StoreFailure, ValidationFailed
from kyndra.domain.events import EventDeleted
from kyndra.domain.models import Event, EventDetail, EventForm, EventRow, EventsPage
from kyndra.repos.memory import NO_SINGLE_ROW, Result
from kyndra.repos.tables import EventReminderRepository, EventRepository
from kyndra.services.temporal import (
    EventView,
    format_range,
    is_muted,
    partition_events,
    reminder_label,
)

logger = logging.getLogger(__name__)

# Lead times offered by the edit form; 0 removes the reminder
REMINDER_CHOICES = (0, 15, 30, 60, 120)


def normalize_instant(value: str | None, now: datetime, tz: tzinfo) -> str | None:
    """Turn a form value into a UTC ISO string, or ``None`` if it won't parse.

    ISO input (as sent by ``datetime-local`` fields) is read directly; other
    text such as "tomorrow 6pm" goes through ``dateparser`` relative to *now*.
    Naive values are read in *tz*.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    try:
        parsed = isoparse(text)
    except ValueError:
        settings = {
            "PREFER_DATES_FROM": "future",
            "RELATIVE_BASE": now.astimezone(tz).replace(tzinfo=None),
            "RETURN_AS_TIMEZONE_AWARE": False,
        }
        parsed = dateparser.parse(text, settings=settings)
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc).isoformat()


def validate_event_form(form: EventForm, space_id: str | None) -> str:
    """Check required fields before touching the store; returns the trimmed title."""
    title = form.title.strip()
    if not title:
        raise ValidationFailed("Title is required.")
    if not (form.starts_at or "").strip():
        raise ValidationFailed("Start date/time is required.")
    if not space_id:
        raise ValidationFailed("Select a space before saving events.")
    return title


def build_rows(
    events: Sequence[Event],
    reminder_minutes: Mapping[str, int],
    view: EventView,
    now: datetime,
    query: str | None = None,
    tz: tzinfo | None = None,
) -> list[EventRow]:
    """Filter, order and decorate events for display.

    Pure: recomputing with a later *now* refreshes muted flags and reminder
    labels without another fetch.
    """
    view = EventView(view)
    rows = []
    for event in partition_events(events, now, view, query):
        ended = is_muted(event, now)
        expired = view is EventView.TODAY and ended
        if view is EventView.PAST:
            muted = True
        elif view in (EventView.TODAY, EventView.ALL):
            muted = ended
        else:
            muted = False

        minutes = reminder_minutes.get(event.id)
        label = None
        if view is EventView.UPCOMING or (view is EventView.TODAY and not expired):
            label = reminder_label(event.starts_at, minutes, now)

        rows.append(
            EventRow(
                event=event,
                when=format_range(event.starts_at, event.ends_at, tz),
                muted=muted,
                expired=expired,
                remind_minutes_before=minutes,
                reminder_label=label,
            )
        )
    return rows


def _events_from(result: Result) -> list[Event]:
    if result.error is not None:
        raise StoreFailure(result.error)
    return [Event.model_validate(row) for row in result.data or []]


class EventsService:
    def __init__(
        self,
        events: EventRepository,
        reminders: EventReminderRepository,
        bus: EventBus,
        tz: tzinfo,
    ) -> None:
        self.events = events
        self.reminders = reminders
        self.bus = bus
        self.tz = tz

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch_view(
        self, space_id: str, view: EventView, now: datetime
    ) -> tuple[list[Event], dict[str, int]]:
        """Load the raw events and reminder lead times behind a view."""
        view = EventView(view)
        if view is EventView.UPCOMING:
            events = _events_from(self.events.list_upcoming(space_id, now))
        elif view is EventView.PAST:
            events = _events_from(self.events.list_past(space_id, now))
        else:
            events = _events_from(self.events.list_all(space_id))

        if view is EventView.PAST:
            return events, {}
        return events, self.reminder_minutes(space_id)

    def reminder_minutes(self, space_id: str) -> dict[str, int]:
        """Map event id to lead time; a failed lookup only hides labels."""
        result = self.reminders.list_by_space(space_id)
        if result.error is not None:
            logger.warning("Reminders unavailable for space %s: %s", space_id, result.error.message)
            return {}
        return {
            row["event_id"]: row["remind_minutes_before"]
            for row in result.data or []
            if row.get("event_id")
        }

    def list_view(
        self,
        space_id: str,
        view: EventView,
        now: datetime,
        query: str | None = None,
    ) -> EventsPage:
        events, minutes = self.fetch_view(space_id, view, now)
        return EventsPage(
            view=view,
            space_id=space_id,
            query=query or None,
            items=build_rows(events, minutes, view, now, query, self.tz),
        )

    def get(self, space_id: str, event_id: str) -> EventDetail:
        result = self.events.get(space_id, event_id)
        if result.error is not None:
            if result.error.code == NO_SINGLE_ROW:
                raise NotFound("Event not found.")
            raise StoreFailure(result.error)
        event = Event.model_validate(result.data)

        reminder = self.reminders.get_by_event(space_id, event_id)
        minutes = None
        if reminder.error is None and reminder.data:
            minutes = reminder.data.get("remind_minutes_before") or None
        return EventDetail(event=event, remind_minutes_before=minutes)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _payload(self, form: EventForm, title: str, now: datetime) -> dict:
        description = (form.description or "").strip()
        return {
            "title": title,
            "description": description or None,
            "starts_at": normalize_instant(form.starts_at, now, self.tz),
            "ends_at": normalize_instant(form.ends_at, now, self.tz),
        }

    def create(self, space_id: str | None, form: EventForm, now: datetime) -> EventDetail:
        title = validate_event_form(form, space_id)
        result = self.events.create({"space_id": space_id, **self._payload(form, title, now)})
        if result.error is not None:
            raise StoreFailure(result.error)
        event = Event.model_validate(result.data)
        logger.info("Created event %s in space %s", event.id, space_id)

        if form.remind_minutes_before:
            self._save_reminder(space_id, event.id, form.remind_minutes_before)
        return EventDetail(event=event, remind_minutes_before=form.remind_minutes_before or None)

    def update(
        self, space_id: str | None, event_id: str, form: EventForm, now: datetime
    ) -> EventDetail:
        """Save the event, then its reminder (``0`` removes it, ``None`` leaves it)."""
        title = validate_event_form(form, space_id)
        result = self.events.update(space_id, event_id, self._payload(form, title, now))
        if result.error is not None:
            raise StoreFailure(result.error)
        if not result.data:
            raise NotFound("Event not found.")

        if form.remind_minutes_before is not None:
            self._save_reminder(space_id, event_id, form.remind_minutes_before)
        return self.get(space_id, event_id)

    def _save_reminder(self, space_id: str, event_id: str, minutes: int) -> None:
        if minutes == 0:
            result = self.reminders.delete_by_event(space_id, event_id)
        else:
            result = self.reminders.upsert(space_id, event_id, minutes)
        if result.error is not None:
            raise StoreFailure(result.error)

    def delete(self, space_id: str | None, event_id: str) -> None:
        if not space_id:
            raise ValidationFailed("Select a space to delete events.")
        result = self.events.delete(space_id, event_id)
        if result.error is not None:
            raise StoreFailure(result.error)
        if not result.data:
            raise NotFound("Event not found.")
        logger.info("Deleted event %s from space %s", event_id, space_id)
        self.bus.publish(EventDeleted(event_id=event_id, space_id=space_id))
