"""Service assembling the home screen summary."""

from __future__ import annotations

from datetime import datetime

from kyndra.domain.errors import StoreFailure
from kyndra.domain.models import HomeSummary
from kyndra.services.events import EventsService, build_rows
from kyndra.services.people import PeopleService, person_rows
from kyndra.services.temporal import EventView


class HomeService:
    def __init__(
        self,
        people: PeopleService,
        events: EventsService,
        birthday_limit: int = 6,
        event_limit: int = 3,
    ) -> None:
        self.people = people
        self.events = events
        self.birthday_limit = birthday_limit
        self.event_limit = event_limit

    def summary(self, user_id: str, space_id: str | None, now: datetime) -> HomeSummary:
        """Next birthdays, upcoming events and today's events.

        Each section reports its own error so one failing query does not
        blank the whole screen.
        """
        summary = HomeSummary(status="Connected. Session: Active")

        try:
            people, _ = self.people.fetch(user_id)
            summary.birthdays = person_rows(people, now)[: self.birthday_limit]
        except StoreFailure as exc:
            summary.birthdays_status = f"Birthdays error: {exc.message}"

        if not space_id:
            summary.events_status = "Select a space to view events."
            return summary

        try:
            upcoming, minutes = self.events.fetch_view(space_id, EventView.UPCOMING, now)
            everything, _ = self.events.fetch_view(space_id, EventView.ALL, now)
        except StoreFailure as exc:
            summary.events_status = f"Events error: {exc.message}"
            return summary

        tz = self.events.tz
        summary.upcoming_events = build_rows(
            upcoming, minutes, EventView.UPCOMING, now, tz=tz
        )[: self.event_limit]
        summary.today_events = build_rows(
            everything, minutes, EventView.TODAY, now, tz=tz
        )[: self.event_limit]
        return summary
