"""Per-user "current space" preference with change broadcast."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Sequence

from kyndra.domain.bus import EventBus
from kyndra.domain.events import SpacePreferenceChanged
from kyndra.domain.models import CurrentSpace, Space

logger = logging.getLogger(__name__)

CURRENT_SPACE_ID_KEY = "kyndra_current_space_id"
CURRENT_SPACE_NAME_KEY = "kyndra_current_space_name"


class PreferenceStore:
    """Synchronous key/value storage per user.

    Every write that changes a value publishes ``SpacePreferenceChanged`` so
    other open views can mirror it.
    """

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self._values: dict[str, dict[str, str]] = defaultdict(dict)

    def get(self, user_id: str, key: str) -> str | None:
        return self._values[user_id].get(key)

    def set(self, user_id: str, key: str, value: str) -> None:
        if self._values[user_id].get(key) == value:
            return
        self._values[user_id][key] = value
        self.bus.publish(SpacePreferenceChanged(user_id=user_id, key=key, new_value=value))

    def current_space(self, user_id: str) -> CurrentSpace:
        return CurrentSpace(
            space_id=self.get(user_id, CURRENT_SPACE_ID_KEY) or None,
            space_name=self.get(user_id, CURRENT_SPACE_NAME_KEY) or None,
        )

    def set_current_space(self, user_id: str, space_id: str, space_name: str) -> None:
        self.set(user_id, CURRENT_SPACE_ID_KEY, space_id)
        self.set(user_id, CURRENT_SPACE_NAME_KEY, space_name)
        logger.info("User %s switched to space %s", user_id, space_id)

    def clear(self) -> None:
        self._values.clear()


def resolve_active_space(spaces: Sequence[Space], saved_id: str | None) -> Space | None:
    """Keep *saved_id* if it still names a space, else fall back to the first one."""
    for space in spaces:
        if space.id == saved_id:
            return space
    return spaces[0] if spaces else None
