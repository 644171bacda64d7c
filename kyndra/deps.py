"""Application singletons and the FastAPI dependencies built on them."""

from __future__ import annotations

from datetime import datetime

from fastapi import Depends, Query, Request

from kyndra.config import get_settings
from kyndra.domain.bus import EventBus
from kyndra.domain.handlers import HandlerRegistry
from kyndra.domain.models import User
from kyndra.repos.memory import MemoryRowStore
from kyndra.repos.tables import (
    EventReminderRepository,
    EventRepository,
    PersonRepository,
    ProfileRepository,
    SpaceRepository,
)
from kyndra.services.auth import IdentityProvider
from kyndra.services.calendar import CalendarService
from kyndra.services.events import EventsService
from kyndra.services.home import HomeService
from kyndra.services.people import PeopleService
from kyndra.services.preferences import PreferenceStore
from kyndra.services.profile import ProfileService
from kyndra.services.spaces import SpacesService

settings = get_settings()

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
store = MemoryRowStore()
identity = IdentityProvider(event_bus)
preferences = PreferenceStore(event_bus)

event_repo = EventRepository(store)
reminder_repo = EventReminderRepository(store)
person_repo = PersonRepository(store)
profile_repo = ProfileRepository(store)
space_repo = SpaceRepository(store)

handler_registry = HandlerRegistry(
    bus=event_bus,
    profile_repo=profile_repo,
    reminder_repo=reminder_repo,
)

events_service = EventsService(event_repo, reminder_repo, event_bus, settings.tzinfo)
people_service = PeopleService(person_repo, profile_repo, settings.link_backfill_batch)
spaces_service = SpacesService(space_repo, preferences)
profile_service = ProfileService(profile_repo)
home_service = HomeService(
    people_service,
    events_service,
    birthday_limit=settings.home_birthday_limit,
    event_limit=settings.home_event_limit,
)
calendar_service = CalendarService(
    people_service,
    fetch_limit=settings.calendar_birthday_fetch_limit,
    upcoming_limit=settings.calendar_birthday_limit,
)


# ── Dependencies ──────────────────────────────────────────────────────


def current_time(now: datetime | None = Query(None)) -> datetime:
    """Resolve "now" in the configured zone; ``?now=`` pins it for a request."""
    tz = settings.tzinfo
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def access_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return request.cookies.get(settings.session_cookie)


def current_user(token: str | None = Depends(access_token)) -> User:
    return identity.get_user(token)


def active_space_id(
    space_id: str | None = Query(None),
    user: User = Depends(current_user),
) -> str | None:
    """Explicit ``?space_id=`` wins; otherwise the user's stored current space."""
    if space_id:
        return space_id
    return spaces_service.current(user.id).space_id
