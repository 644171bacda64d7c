"""Domain models for Kyndra: stored records, form payloads and screen rows."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from kyndra.services.temporal import EventView


class SessionEventType(StrEnum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------
#
# Instants stay as the strings the row store hands back, so a malformed
# stored value reaches the temporal helpers instead of failing validation.


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Person(Record):
    id: str
    user_id: str | None = None
    space_id: str | None = None
    name: str
    birthdate: str | None = None
    notes: str | None = None
    email: str | None = None
    relationship: str | None = None
    linked_profile_id: str | None = None


class Event(Record):
    id: str
    space_id: str
    title: str
    description: str | None = None
    starts_at: str | None = None
    ends_at: str | None = None
    created_at: str | None = None


class EventReminder(Record):
    id: str
    event_id: str
    space_id: str
    remind_minutes_before: int = Field(ge=0)
    created_at: str | None = None


class Space(Record):
    id: str
    name: str
    owner_id: str | None = None
    created_at: str | None = None


class Profile(Record):
    id: str
    email: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    email: str
    user_metadata: dict = Field(default_factory=dict)


class Session(BaseModel):
    access_token: str = Field(default_factory=_new_id)
    user: User
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Request DTOs
# ---------------------------------------------------------------------------
#
# Required fields default to "" so the services can report the missing
# value with the same message a form would show.


class MagicLinkRequest(BaseModel):
    email: str


class OAuthSignInRequest(BaseModel):
    email: str
    full_name: str | None = None
    avatar_url: str | None = None


class PersonForm(BaseModel):
    name: str = ""
    birthdate: str | None = None
    notes: str | None = None
    email: str | None = None
    relationship: str | None = None


class EventForm(BaseModel):
    title: str = ""
    description: str | None = None
    starts_at: str | None = None
    ends_at: str | None = None
    remind_minutes_before: int | None = Field(default=None, ge=0)


class SpaceCreateRequest(BaseModel):
    name: str = ""


class SpaceSelection(BaseModel):
    space_id: str


class ProfileUpdate(BaseModel):
    display_name: str = ""


# ---------------------------------------------------------------------------
# Response DTOs
# ---------------------------------------------------------------------------


class SessionInfo(BaseModel):
    active: bool
    user: User | None = None


class PersonRow(BaseModel):
    person: Person
    birthdate_display: str
    next_occurrence: datetime | None = None
    countdown: str | None = None


class PeoplePage(BaseModel):
    items: list[PersonRow] = Field(default_factory=list)
    warning: str | None = None


class EventRow(BaseModel):
    event: Event
    when: str
    muted: bool = False
    expired: bool = False
    remind_minutes_before: int | None = None
    reminder_label: str | None = None


class EventsPage(BaseModel):
    view: EventView
    space_id: str
    query: str | None = None
    items: list[EventRow] = Field(default_factory=list)


class EventDetail(BaseModel):
    event: Event
    remind_minutes_before: int | None = None


class CurrentSpace(BaseModel):
    space_id: str | None = None
    space_name: str | None = None


class ProfileView(BaseModel):
    email: str
    display_name: str | None = None


class HomeSummary(BaseModel):
    status: str
    birthdays: list[PersonRow] = Field(default_factory=list)
    birthdays_status: str | None = None
    upcoming_events: list[EventRow] = Field(default_factory=list)
    today_events: list[EventRow] = Field(default_factory=list)
    events_status: str | None = None


class CalendarCell(BaseModel):
    day: int | None = None
    is_today: bool = False
    birthdays: list[str] = Field(default_factory=list)


class CalendarMonth(BaseModel):
    year: int
    month: int
    label: str
    cells: list[CalendarCell]
    upcoming_birthdays: list[PersonRow] = Field(default_factory=list)


class FeedbackLinks(BaseModel):
    form_url: str
    email_url: str
