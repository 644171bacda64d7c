"""Home summary, month calendar and feedback links."""

from __future__ import annotations

from datetime import datetime
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query

from kyndra.deps import (
    active_space_id,
    calendar_service,
    current_time,
    current_user,
    home_service,
    settings,
)
from kyndra.domain.models import CalendarMonth, FeedbackLinks, HomeSummary, User

router = APIRouter(tags=["home"])


@router.get("/home", response_model=HomeSummary)
def home(
    user: User = Depends(current_user),
    space_id: str | None = Depends(active_space_id),
    now: datetime = Depends(current_time),
) -> HomeSummary:
    return home_service.summary(user.id, space_id, now)


@router.get("/calendar", response_model=CalendarMonth)
def month_calendar(
    year: int | None = Query(None),
    month: int | None = Query(None),
    user: User = Depends(current_user),
    now: datetime = Depends(current_time),
) -> CalendarMonth:
    return calendar_service.month(user.id, now, year, month)


@router.get("/feedback", response_model=FeedbackLinks)
def feedback() -> FeedbackLinks:
    subject = quote(f"{settings.app_name} Beta Feedback")
    return FeedbackLinks(
        form_url=settings.feedback_form_url,
        email_url=f"mailto:{settings.feedback_email}?subject={subject}",
    )
