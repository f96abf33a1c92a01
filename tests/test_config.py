"""Tests for configuration helpers."""

from meal_planner.config import Settings, parse_household_members


def test_parse_household_members() -> None:
    assert parse_household_members("Kit, Jess ,,Kit") == ("Kit", "Jess")
    assert parse_household_members("") == ()
    assert parse_household_members(None) == ()


def test_settings_defaults() -> None:
    settings = Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
    )

    assert settings.google_calendar_id == "primary"
    assert settings.sync_interval_minutes == 10
    assert settings.sync_past_days == 7
    assert settings.sync_future_days == 14
