"""Service for the birthdays list: load, add, edit, delete and profile linking.

When the store's schema lags behind (the contact columns are missing), every
operation retries with the reduced legacy field set and reports
``SCHEMA_WARNING`` instead of failing.
"""

from __future__ import annotations

import logging
from datetime import datetime

from kyndra.domain.errors import StoreFailure, ValidationFailed, is_schema_mismatch
from kyndra.domain.models import PeoplePage, Person, PersonForm, PersonRow
from kyndra.repos.memory import Result
from kyndra.repos.tables import PERSON_SELECT_LEGACY, PersonRepository, ProfileRepository
from kyndra.services.temporal import (
    countdown_label,
    format_date,
    next_occurrence,
    sort_by_next_occurrence,
)

logger = logging.getLogger(__name__)

SCHEMA_WARNING = "Database schema not refreshed yet. Run reload_schema_cache.sql and refresh."


def _clean(value: str | None) -> str | None:
    text = (value or "").strip()
    return text or None


def person_rows(people: list[Person], now: datetime) -> list[PersonRow]:
    """Sort people by upcoming birthday and attach countdowns."""
    return [
        PersonRow(
            person=person,
            birthdate_display=format_date(person.birthdate),
            next_occurrence=next_occurrence(person.birthdate, now),
            countdown=countdown_label(person.birthdate, now),
        )
        for person in sort_by_next_occurrence(people, now)
    ]


def _people_from(result: Result) -> list[Person]:
    return [Person.model_validate(row) for row in result.data or []]


class PeopleService:
    def __init__(
        self,
        people: PersonRepository,
        profiles: ProfileRepository,
        backfill_batch: int = 20,
    ) -> None:
        self.people = people
        self.profiles = profiles
        self.backfill_batch = backfill_batch
        # (person id, email) pairs already looked up, so each is tried once
        self._backfill_attempted: set[tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch(self, user_id: str, limit: int | None = None) -> tuple[list[Person], str | None]:
        """Load the user's people, falling back to legacy columns if needed."""
        result = self.people.list_for_user(user_id, limit=limit)
        if result.error is None:
            return _people_from(result), None
        if not is_schema_mismatch(result.error):
            raise StoreFailure(result.error)

        logger.warning("Birthdays schema mismatch, loading legacy columns: %s", result.error.message)
        fallback = self.people.list_for_user(user_id, columns=PERSON_SELECT_LEGACY, limit=limit)
        if fallback.error is not None:
            raise StoreFailure(fallback.error)
        return _people_from(fallback), SCHEMA_WARNING

    def load(self, user_id: str, now: datetime, backfill: bool = True) -> PeoplePage:
        people, warning = self.fetch(user_id)
        if backfill and warning is None:
            self.link_backfill(people, user_id)
        return PeoplePage(items=person_rows(people, now), warning=warning)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _linked_profile(self, email: str | None, current: str | None = None) -> str | None:
        if current:
            return current
        if email and "@" in email:
            return self.profiles.find_id_by_email(email)
        return None

    def create(self, user_id: str, form: PersonForm) -> str | None:
        """Insert a person; returns the schema warning if the fallback was used."""
        name = form.name.strip()
        if not name:
            raise ValidationFailed("Name is required.")

        email = _clean(form.email)
        base = {
            "user_id": user_id,
            "name": name,
            "birthdate": _clean(form.birthdate),
            "notes": _clean(form.notes),
        }
        result = self.people.create(
            {
                **base,
                "email": email,
                "relationship": _clean(form.relationship),
                "linked_profile_id": self._linked_profile(email),
            }
        )
        if result.error is None:
            return None
        if not is_schema_mismatch(result.error):
            raise StoreFailure(result.error)

        logger.warning("Birthdays schema mismatch, inserting legacy columns only")
        fallback = self.people.create(base)
        if fallback.error is not None:
            raise StoreFailure(fallback.error)
        return SCHEMA_WARNING

    def _current_link(self, user_id: str, person_id: str) -> str | None:
        result = self.people.get(user_id, person_id)
        if result.error is not None or not result.data:
            return None
        return result.data.get("linked_profile_id")

    def update(self, user_id: str, person_id: str, form: PersonForm) -> str | None:
        """Save edits; an existing profile link is kept rather than re-resolved."""
        name = form.name.strip()
        if not name:
            raise ValidationFailed("Name is required.")

        email = _clean(form.email)
        base = {"name": name, "birthdate": _clean(form.birthdate)}
        linked_profile_id = self._linked_profile(email, self._current_link(user_id, person_id))
        result = self.people.update(
            user_id,
            person_id,
            {
                **base,
                "email": email,
                "relationship": _clean(form.relationship),
                "linked_profile_id": linked_profile_id,
            },
        )
        if result.error is None:
            return None
        if not is_schema_mismatch(result.error):
            raise StoreFailure(result.error)

        logger.warning("Birthdays schema mismatch, updating legacy columns only")
        fallback = self.people.update(user_id, person_id, base)
        if fallback.error is not None:
            raise StoreFailure(fallback.error)
        return SCHEMA_WARNING

    def delete(self, user_id: str, person_id: str) -> None:
        result = self.people.delete(user_id, person_id)
        if result.error is not None:
            raise StoreFailure(result.error)

    def link_backfill(self, people: list[Person], user_id: str) -> int:
        """Link people whose email matches a registered profile.

        Looks at most ``backfill_batch`` unlinked rows per call and never
        retries a row whose email has not changed. Returns how many rows were
        linked.
        """
        candidates = [
            person
            for person in people
            if person.email
            and not person.linked_profile_id
            and (person.id, person.email) not in self._backfill_attempted
        ][: self.backfill_batch]

        linked = 0
        for person in candidates:
            self._backfill_attempted.add((person.id, person.email))
            profile_id = self.profiles.find_id_by_email(person.email)
            if not profile_id:
                continue
            result = self.people.update(user_id, person.id, {"linked_profile_id": profile_id})
            if result.error is not None:
                logger.warning("Link backfill failed for %s: %s", person.id, result.error.message)
                continue
            person.linked_profile_id = profile_id
            linked += 1
        if linked:
            logger.info("Linked %d people to profiles for user %s", linked, user_id)
        return linked
