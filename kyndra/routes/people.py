"""Birthday routes. Every mutation answers with a full reload of the list."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Response

from kyndra.deps import current_time, current_user, people_service
from kyndra.domain.models import PeoplePage, PersonForm, User

router = APIRouter(prefix="/people", tags=["people"])


def _reload(user: User, now: datetime, warning: str | None) -> PeoplePage:
    page = people_service.load(user.id, now, backfill=warning is None)
    page.warning = warning or page.warning
    return page


@router.get("", response_model=PeoplePage)
def list_people(
    user: User = Depends(current_user), now: datetime = Depends(current_time)
) -> PeoplePage:
    """Return the user's people ordered by next birthday."""
    return people_service.load(user.id, now)


@router.post("", response_model=PeoplePage, status_code=201)
def add_person(
    form: PersonForm,
    user: User = Depends(current_user),
    now: datetime = Depends(current_time),
) -> PeoplePage:
    warning = people_service.create(user.id, form)
    return _reload(user, now, warning)


@router.put("/{person_id}", response_model=PeoplePage)
def edit_person(
    person_id: str,
    form: PersonForm,
    user: User = Depends(current_user),
    now: datetime = Depends(current_time),
) -> PeoplePage:
    warning = people_service.update(user.id, person_id, form)
    return _reload(user, now, warning)


@router.delete("/{person_id}", status_code=204)
def delete_person(person_id: str, user: User = Depends(current_user)) -> Response:
    people_service.delete(user.id, person_id)
    return Response(status_code=204)


@router.post("/link-backfill")
def link_backfill(user: User = Depends(current_user)) -> dict:
    """Link people to registered profiles by email."""
    people, warning = people_service.fetch(user.id)
    if warning:
        return {"linked": 0, "warning": warning}
    return {"linked": people_service.link_backfill(people, user.id)}
