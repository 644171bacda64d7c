"""Service for reading and renaming the signed-in user's profile."""

from __future__ import annotations

from kyndra.domain.errors import StoreFailure
from kyndra.domain.models import Profile, ProfileView, User
from kyndra.repos.tables import ProfileRepository

DISPLAY_NAME_MAX = 80


class ProfileService:
    def __init__(self, profiles: ProfileRepository) -> None:
        self.profiles = profiles

    def get(self, user: User) -> ProfileView:
        result = self.profiles.get(user.id)
        profile = Profile.model_validate(result.data) if result.data else None
        email = (profile.email if profile else None) or user.email or "Unknown"
        return ProfileView(email=email, display_name=profile.full_name if profile else None)

    def update_display_name(self, user: User, display_name: str) -> ProfileView:
        # Upsert so a missing profile row gets created
        name = display_name.strip()[:DISPLAY_NAME_MAX]
        result = self.profiles.upsert(
            {"id": user.id, "email": user.email, "full_name": name or None}
        )
        if result.error is not None:
            raise StoreFailure(result.error)
        return self.get(user)
