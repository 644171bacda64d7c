"""Service for listing, creating and switching between spaces."""

from __future__ import annotations

import logging

from kyndra.domain.errors import NotFound, StoreFailure, ValidationFailed
from kyndra.domain.models import CurrentSpace, Space
from kyndra.repos.tables import SpaceRepository
from kyndra.services.preferences import PreferenceStore, resolve_active_space

logger = logging.getLogger(__name__)


class SpacesService:
    def __init__(self, spaces: SpaceRepository, preferences: PreferenceStore) -> None:
        self.spaces = spaces
        self.preferences = preferences

    def list_all(self) -> list[Space]:
        result = self.spaces.list_all()
        if result.error is not None:
            raise StoreFailure(result.error)
        return [Space.model_validate(row) for row in result.data or []]

    def create(self, user_id: str, name: str) -> Space:
        """Create a space owned by *user_id* and make it the current one."""
        name = name.strip()
        if not name:
            raise ValidationFailed("Space name is required.")
        result = self.spaces.create(name, user_id)
        if result.error is not None:
            raise StoreFailure(result.error)
        space = Space.model_validate(result.data)
        logger.info("Space %s created by %s", space.id, user_id)
        self.preferences.set_current_space(user_id, space.id, space.name)
        return space

    def current(self, user_id: str) -> CurrentSpace:
        """Return the stored current space, repairing it if the space is gone."""
        saved = self.preferences.current_space(user_id)
        active = resolve_active_space(self.list_all(), saved.space_id)
        if active is None:
            return CurrentSpace()
        if active.id != saved.space_id or active.name != saved.space_name:
            self.preferences.set_current_space(user_id, active.id, active.name)
        return CurrentSpace(space_id=active.id, space_name=active.name)

    def select(self, user_id: str, space_id: str) -> CurrentSpace:
        space = next((s for s in self.list_all() if s.id == space_id), None)
        if space is None:
            raise NotFound("Space not found.")
        self.preferences.set_current_space(user_id, space.id, space.name)
        return CurrentSpace(space_id=space.id, space_name=space.name)
