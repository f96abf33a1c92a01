"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    google_access_token: str = ""
    google_calendar_id: str = "primary"
    google_calendar_base_url: str = "https://www.googleapis.com/calendar/v3"
    app_base_url: str = "http://localhost:3000"
    timezone: str = "UTC"
    household_members: str = "Kit,Jess"
    sync_enabled: bool = True
    sync_interval_minutes: int = 10
    sync_initial_delay_seconds: float = 5.0
    sync_past_days: int = 7
    sync_future_days: int = 14
    fuzzy_threshold: float = 0.8
    acceptance_threshold: float = 0.85
    suggestion_min_score: float = 0.5
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_household_members(raw: str | None) -> tuple[str, ...]:
    """Parse the default people assigned to imported meals."""
    if raw is None:
        return ()
    members: list[str] = []
    for chunk in raw.split(","):
        name = chunk.strip()
        if name and name not in members:
            members.append(name)
    return tuple(members)
