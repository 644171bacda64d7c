"""Event routes for the active space."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response

from kyndra.deps import active_space_id, current_time, events_service
from kyndra.domain.errors import ValidationFailed
from kyndra.domain.models import EventDetail, EventForm, EventsPage
from kyndra.services.temporal import EventView

router = APIRouter(prefix="/events", tags=["events"])


def _require_space(space_id: str | None) -> str:
    if not space_id:
        raise ValidationFailed("Select a space to continue.")
    return space_id


@router.get("", response_model=EventsPage)
def list_events(
    view: EventView = Query(EventView.UPCOMING),
    q: str | None = Query(None),
    space_id: str | None = Depends(active_space_id),
    now: datetime = Depends(current_time),
) -> EventsPage:
    """Return the events for a view, with muted flags and reminder labels."""
    return events_service.list_view(_require_space(space_id), view, now, q)


@router.post("", response_model=EventDetail, status_code=201)
def create_event(
    form: EventForm,
    space_id: str | None = Depends(active_space_id),
    now: datetime = Depends(current_time),
) -> EventDetail:
    return events_service.create(space_id, form, now)


@router.get("/{event_id}", response_model=EventDetail)
def get_event(event_id: str, space_id: str | None = Depends(active_space_id)) -> EventDetail:
    return events_service.get(_require_space(space_id), event_id)


@router.put("/{event_id}", response_model=EventDetail)
def update_event(
    event_id: str,
    form: EventForm,
    space_id: str | None = Depends(active_space_id),
    now: datetime = Depends(current_time),
) -> EventDetail:
    """Save an event; ``remind_minutes_before`` of 0 removes its reminder."""
    return events_service.update(space_id, event_id, form, now)


@router.delete("/{event_id}", status_code=204)
def delete_event(
    event_id: str,
    space_id: str | None = Depends(active_space_id),
) -> Response:
    events_service.delete(space_id, event_id)
    return Response(status_code=204)
