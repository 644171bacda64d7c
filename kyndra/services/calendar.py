"""Service for the month calendar: a fixed grid plus the next birthdays."""

from __future__ import annotations

import calendar
from datetime import date, datetime

from kyndra.domain.errors import ValidationFailed
from kyndra.domain.models import CalendarCell, CalendarMonth, Person
from kyndra.services.people import PeopleService, person_rows
from kyndra.services.temporal import parse_instant

GRID_CELLS = 42
MIN_YEAR, MAX_YEAR = date.min.year, date.max.year


def _birthday_day(person: Person, year: int, month: int) -> int | None:
    """Day of *month* on which the person's birthday falls, if any."""
    parsed = parse_instant(person.birthdate)
    if parsed is None or parsed.month != month:
        return None
    # Feb 29 birthdays are shown on the 28th in common years
    return min(parsed.day, calendar.monthrange(year, month)[1])


def month_grid(year: int, month: int, today: date, people: list[Person]) -> list[CalendarCell]:
    """Lay out a Sunday-first grid of six weeks for *year*/*month*."""
    first_weekday, days_in_month = calendar.monthrange(year, month)
    # calendar counts Monday as 0; the grid starts on Sunday
    offset = (first_weekday + 1) % 7

    names_by_day: dict[int, list[str]] = {}
    for person in people:
        day = _birthday_day(person, year, month)
        if day is not None:
            names_by_day.setdefault(day, []).append(person.name)

    cells = []
    for index in range(GRID_CELLS):
        day = index - offset + 1
        if day < 1 or day > days_in_month:
            cells.append(CalendarCell())
            continue
        cells.append(
            CalendarCell(
                day=day,
                is_today=(today.year, today.month, today.day) == (year, month, day),
                birthdays=names_by_day.get(day, []),
            )
        )
    return cells


class CalendarService:
    def __init__(
        self,
        people: PeopleService,
        fetch_limit: int = 50,
        upcoming_limit: int = 10,
    ) -> None:
        self.people = people
        self.fetch_limit = fetch_limit
        self.upcoming_limit = upcoming_limit

    def month(
        self,
        user_id: str,
        now: datetime,
        year: int | None = None,
        month: int | None = None,
    ) -> CalendarMonth:
        if year is None:
            year = now.year
        if month is None:
            month = now.month
        if not MIN_YEAR <= year <= MAX_YEAR:
            raise ValidationFailed(f"Year must be between {MIN_YEAR} and {MAX_YEAR}.")
        if not 1 <= month <= 12:
            raise ValidationFailed("Month must be between 1 and 12.")

        people, _ = self.people.fetch(user_id, limit=self.fetch_limit)
        return CalendarMonth(
            year=year,
            month=month,
            label=date(year, month, 1).strftime("%B %Y"),
            cells=month_grid(year, month, now.date(), people),
            upcoming_birthdays=person_rows(people, now)[: self.upcoming_limit],
        )
