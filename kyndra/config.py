"""Runtime configuration resolved from the environment and ``.env``."""

from __future__ import annotations

from datetime import tzinfo
from functools import lru_cache

from dateutil import tz
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Kyndra"
    version: str = "0.1.0"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    # Local zone used for "today", form input and display formatting
    timezone: str = "UTC"

    session_cookie: str = "kyndra_session"
    label_refresh_seconds: int = 30

    home_birthday_limit: int = 6
    home_event_limit: int = 3
    calendar_birthday_fetch_limit: int = 50
    calendar_birthday_limit: int = 10
    link_backfill_batch: int = 20

    feedback_form_url: str = "https://docs.google.com/forms/d/e/EXAMPLE_FORM_ID/viewform"
    feedback_email: str = "feedback@kyndra.app"

    model_config = SettingsConfigDict(
        env_prefix="KYNDRA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def tzinfo(self) -> tzinfo:
        """Resolve the configured zone name, falling back to UTC."""
        return tz.gettz(self.timezone) or tz.UTC


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()
