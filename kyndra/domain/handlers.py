"""Bus handlers, wired up at application startup."""

from __future__ import annotations

import logging

from kyndra.domain.bus import EventBus
from kyndra.domain.events import EventDeleted, SessionChanged, SpacePreferenceChanged
from kyndra.domain.models import SessionEventType
from kyndra.repos.tables import EventReminderRepository, ProfileRepository

logger = logging.getLogger(__name__)


def profile_fields(metadata: dict) -> dict:
    """Pick display name and avatar from provider metadata, when present."""
    fields = {}
    full_name = metadata.get("full_name") or metadata.get("name")
    avatar_url = metadata.get("avatar_url") or metadata.get("picture")
    if full_name:
        fields["full_name"] = full_name
    if avatar_url:
        fields["avatar_url"] = avatar_url
    return fields


class HandlerRegistry:
    """Wires bus handlers with access to the repositories they write to."""

    def __init__(
        self,
        bus: EventBus,
        profile_repo: ProfileRepository,
        reminder_repo: EventReminderRepository,
    ) -> None:
        self.bus = bus
        self.profile_repo = profile_repo
        self.reminder_repo = reminder_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(SessionChanged, self.on_session_changed)
        self.bus.subscribe(EventDeleted, self.on_event_deleted)
        self.bus.subscribe(SpacePreferenceChanged, self.on_space_preference_changed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_session_changed(self, event: SessionChanged) -> None:
        if event.type != SessionEventType.SIGNED_IN:
            return

        user = event.user
        payload = {"id": user.id, "email": user.email, **profile_fields(user.user_metadata)}
        result = self.profile_repo.upsert(payload)
        # A failed profile write must not block the sign-in itself
        if result.error is not None:
            logger.error("Profile upsert error for %s: %s", user.id, result.error.message)

    def on_event_deleted(self, event: EventDeleted) -> None:
        result = self.reminder_repo.delete_by_event(event.space_id, event.event_id)
        if result.error is not None:
            logger.error(
                "Could not remove reminder for event %s: %s",
                event.event_id,
                result.error.message,
            )

    def on_space_preference_changed(self, event: SpacePreferenceChanged) -> None:
        logger.debug("Preference %s for %s is now %r", event.key, event.user_id, event.new_value)
