"""Notifications published on the in-process bus."""

from __future__ import annotations

from pydantic import BaseModel

from kyndra.domain.models import SessionEventType, User


class SessionChanged(BaseModel):
    """Fired when a user signs in or out."""

    type: SessionEventType
    user: User


class SpacePreferenceChanged(BaseModel):
    """Fired when a stored "current space" key changes, for other listeners to mirror."""

    user_id: str
    key: str
    new_value: str | None


class EventDeleted(BaseModel):
    event_id: str
    space_id: str
