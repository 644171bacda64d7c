"""Repositories wrapping the row-store client, one per table.

Each method builds one request and returns the store's ``Result`` untouched;
deciding what an error means is left to the services.
"""

from __future__ import annotations

from datetime import datetime

from kyndra.repos.memory import MemoryRowStore, Result

EVENT_SELECT = "id,space_id,title,description,starts_at,ends_at,created_at"
REMINDER_SELECT = "id,event_id,space_id,remind_minutes_before,created_at"
SPACE_SELECT = "id,name,created_at,owner_id"
PERSON_SELECT = "id,name,birthdate,notes,email,relationship,linked_profile_id"
PERSON_SELECT_LEGACY = "id,name,birthdate,notes"
PROFILE_SELECT = "id,email,full_name,avatar_url"


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class EventRepository:
    def __init__(self, store: MemoryRowStore) -> None:
        self.store = store

    def list_upcoming(self, space_id: str, now: datetime) -> Result:
        return (
            self.store.table("events")
            .select(EVENT_SELECT)
            .eq("space_id", space_id)
            .gte("starts_at", now.isoformat())
            .order("starts_at", ascending=True)
            .execute()
        )

    def list_past(self, space_id: str, now: datetime) -> Result:
        return (
            self.store.table("events")
            .select(EVENT_SELECT)
            .eq("space_id", space_id)
            .lt("starts_at", now.isoformat())
            .order("starts_at", ascending=False)
            .execute()
        )

    def list_all(self, space_id: str) -> Result:
        return self.store.table("events").select(EVENT_SELECT).eq("space_id", space_id).execute()

    def get(self, space_id: str, event_id: str) -> Result:
        return (
            self.store.table("events")
            .select(EVENT_SELECT)
            .eq("space_id", space_id)
            .eq("id", event_id)
            .single()
            .execute()
        )

    def create(self, payload: dict) -> Result:
        return self.store.table("events").insert(payload).select(EVENT_SELECT).single().execute()

    def update(self, space_id: str, event_id: str, payload: dict) -> Result:
        return (
            self.store.table("events")
            .update(payload)
            .eq("space_id", space_id)
            .eq("id", event_id)
            .execute()
        )

    def delete(self, space_id: str, event_id: str) -> Result:
        return (
            self.store.table("events")
            .delete()
            .eq("space_id", space_id)
            .eq("id", event_id)
            .execute()
        )


class EventReminderRepository:
    """At most one reminder per event, keyed on ``event_id``."""

    def __init__(self, store: MemoryRowStore) -> None:
        self.store = store

    def list_by_space(self, space_id: str) -> Result:
        return (
            self.store.table("event_reminders")
            .select(REMINDER_SELECT)
            .eq("space_id", space_id)
            .execute()
        )

    def get_by_event(self, space_id: str, event_id: str) -> Result:
        return (
            self.store.table("event_reminders")
            .select(REMINDER_SELECT)
            .eq("space_id", space_id)
            .eq("event_id", event_id)
            .maybe_single()
            .execute()
        )

    def upsert(self, space_id: str, event_id: str, remind_minutes_before: int) -> Result:
        payload = {
            "event_id": event_id,
            "space_id": space_id,
            "remind_minutes_before": remind_minutes_before,
        }
        return (
            self.store.table("event_reminders")
            .upsert(payload, on_conflict="event_id")
            .execute()
        )

    def delete_by_event(self, space_id: str, event_id: str) -> Result:
        return (
            self.store.table("event_reminders")
            .delete()
            .eq("space_id", space_id)
            .eq("event_id", event_id)
            .execute()
        )


class PersonRepository:
    """Birthday rows, scoped to the owning user."""

    def __init__(self, store: MemoryRowStore) -> None:
        self.store = store

    def list_for_user(
        self, user_id: str, columns: str = PERSON_SELECT, limit: int | None = None
    ) -> Result:
        query = (
            self.store.table("birthdays")
            .select(columns)
            .eq("user_id", user_id)
            .order("birthdate", ascending=True)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.execute()

    def get(self, user_id: str, person_id: str) -> Result:
        return (
            self.store.table("birthdays")
            .select(PERSON_SELECT)
            .eq("id", person_id)
            .eq("user_id", user_id)
            .maybe_single()
            .execute()
        )

    def create(self, payload: dict) -> Result:
        return self.store.table("birthdays").insert(payload).execute()

    def update(self, user_id: str, person_id: str, payload: dict) -> Result:
        return (
            self.store.table("birthdays")
            .update(payload)
            .eq("id", person_id)
            .eq("user_id", user_id)
            .execute()
        )

    def delete(self, user_id: str, person_id: str) -> Result:
        return (
            self.store.table("birthdays")
            .delete()
            .eq("id", person_id)
            .eq("user_id", user_id)
            .execute()
        )


class ProfileRepository:
    def __init__(self, store: MemoryRowStore) -> None:
        self.store = store

    def get(self, user_id: str) -> Result:
        return (
            self.store.table("profiles")
            .select(PROFILE_SELECT)
            .eq("id", user_id)
            .maybe_single()
            .execute()
        )

    def upsert(self, payload: dict) -> Result:
        return self.store.table("profiles").upsert(payload, on_conflict="id").execute()

    def find_id_by_email(self, email: str) -> str | None:
        """Return the profile id registered under *email*, or ``None``.

        Lookup failures are treated as "no match".
        """
        normalized = email.strip().lower()
        if not normalized or "@" not in normalized:
            return None
        result = (
            self.store.table("profiles")
            .select("id,email")
            .ilike("email", escape_like(normalized))
            .limit(1)
            .maybe_single()
            .execute()
        )
        if result.error is not None or not result.data:
            return None
        found = result.data.get("email")
        if not found or found.lower() != normalized:
            return None
        return result.data.get("id")


class SpaceRepository:
    def __init__(self, store: MemoryRowStore) -> None:
        self.store = store

    def list_all(self) -> Result:
        return self.store.table("spaces").select(SPACE_SELECT).order("created_at").execute()

    def create(self, name: str, owner_id: str) -> Result:
        return (
            self.store.table("spaces")
            .insert({"name": name, "owner_id": owner_id})
            .select(SPACE_SELECT)
            .single()
            .execute()
        )
