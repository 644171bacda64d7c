"""Async screen controllers for long-lived clients.

This is the layer a client that keeps a view open (a dashboard process, a
websocket session) drives; the request/response routes do not use it.

A controller owns the state a screen renders (rows, error, loading flag) and
loads it through an injected coroutine. Every load records a generation; a
response that arrives after a newer load started, or after the screen was
disposed, is dropped instead of overwriting fresher state. Between loads,
``refresh`` recomputes time-dependent labels without fetching.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Awaitable, Callable, Protocol

from kyndra.config import get_settings
from kyndra.domain.errors import KyndraError
from kyndra.domain.models import Event, EventRow, Person, PersonRow
from kyndra.services.events import EventsService, build_rows
from kyndra.services.people import PeopleService, person_rows
from kyndra.services.temporal import EventView

logger = logging.getLogger(__name__)

EventsFetch = Callable[[str, EventView], Awaitable[tuple[list[Event], dict[str, int]]]]
PeopleFetch = Callable[[str], Awaitable[tuple[list[Person], str | None]]]
Clock = Callable[[], datetime]


class LoadGeneration:
    """Generation counter deciding whether a finished load may still apply."""

    def __init__(self) -> None:
        self._current = 0
        self.disposed = False

    def begin(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, generation: int) -> bool:
        return not self.disposed and generation == self._current

    def dispose(self) -> None:
        self.disposed = True


class Refreshable(Protocol):
    @property
    def disposed(self) -> bool: ...

    def refresh(self, now: datetime | None = None) -> None: ...


class EventsScreen:
    def __init__(self, fetch: EventsFetch, clock: Clock, tz: tzinfo | None = None) -> None:
        self._fetch = fetch
        self._clock = clock
        self._tz = tz
        self._generation = LoadGeneration()
        self._events: list[Event] = []
        self._minutes: dict[str, int] = {}

        self.space_id: str | None = None
        self.view = EventView.UPCOMING
        self.query: str | None = None
        self.rows: list[EventRow] = []
        self.error: str | None = None
        self.loading = False

    @property
    def disposed(self) -> bool:
        return self._generation.disposed

    async def load(self, space_id: str | None, view: EventView | str | None = None) -> bool:
        """Fetch events for *space_id*; returns False if the result was dropped."""
        generation = self._generation.begin()
        if view is not None:
            self.view = EventView(view)
        self.loading = True
        self.error = None

        if not space_id:
            self.space_id = None
            self._events, self._minutes = [], {}
            self.rows = []
            self.loading = False
            return True

        try:
            events, minutes = await self._fetch(space_id, self.view)
        except KyndraError as exc:
            if not self._generation.is_current(generation):
                return False
            # keep the last good rows on screen
            self.error = exc.message
            self.loading = False
            return False

        if not self._generation.is_current(generation):
            logger.debug("Dropping stale events load %d", generation)
            return False

        self.space_id = space_id
        self._events, self._minutes = events, minutes
        self.loading = False
        self.refresh()
        return True

    def search(self, query: str | None) -> None:
        self.query = query
        self.refresh()

    def refresh(self, now: datetime | None = None) -> None:
        if self.disposed:
            return
        now = now or self._clock()
        self.rows = build_rows(self._events, self._minutes, self.view, now, self.query, self._tz)

    def dispose(self) -> None:
        self._generation.dispose()


class PeopleScreen:
    def __init__(self, fetch: PeopleFetch, clock: Clock) -> None:
        self._fetch = fetch
        self._clock = clock
        self._generation = LoadGeneration()
        self._people: list[Person] = []

        self.rows: list[PersonRow] = []
        self.error: str | None = None
        self.warning: str | None = None
        self.loading = False

    @property
    def disposed(self) -> bool:
        return self._generation.disposed

    async def load(self, user_id: str) -> bool:
        generation = self._generation.begin()
        self.loading = True
        self.error = None

        try:
            people, warning = await self._fetch(user_id)
        except KyndraError as exc:
            if not self._generation.is_current(generation):
                return False
            self.error = exc.message
            self.loading = False
            return False

        if not self._generation.is_current(generation):
            logger.debug("Dropping stale people load %d", generation)
            return False

        self._people = people
        self.warning = warning
        self.loading = False
        self.refresh()
        return True

    def refresh(self, now: datetime | None = None) -> None:
        if self.disposed:
            return
        self.rows = person_rows(self._people, now or self._clock())

    def dispose(self) -> None:
        self._generation.dispose()


def events_fetcher(service: EventsService, clock: Clock) -> EventsFetch:
    """Run the blocking service call in a worker thread."""

    async def fetch(space_id: str, view: EventView) -> tuple[list[Event], dict[str, int]]:
        return await asyncio.to_thread(service.fetch_view, space_id, view, clock())

    return fetch


def people_fetcher(service: PeopleService) -> PeopleFetch:
    async def fetch(user_id: str) -> tuple[list[Person], str | None]:
        return await asyncio.to_thread(service.fetch, user_id)

    return fetch


async def run_label_clock(
    screen: Refreshable,
    interval: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Refresh *screen* every *interval* seconds until it is disposed.

    Only labels are recomputed; nothing is fetched. The interval defaults to
    ``label_refresh_seconds`` from the settings.
    """
    if interval is None:
        interval = get_settings().label_refresh_seconds
    while not screen.disposed:
        await sleep(interval)
        if screen.disposed:
            break
        screen.refresh()
