"""Tests for environment-driven settings."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from staybook.config import Settings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults_for_environment():
    with patch.dict("os.environ", {"ENVIRONMENT": "staging"}, clear=True):
        settings = Settings()

    assert settings.table_prefix == "staybook-staging"
    assert settings.allow_group_booking is True
    assert settings.currency == "eur"
    assert settings.checkout_session_ttl_minutes == 30
    assert settings.cors_origins == ["http://localhost:3000"]


def test_reads_overrides():
    env = {
        "ENVIRONMENT": "prod",
        "DYNAMODB_TABLE_PREFIX": "bookings",
        "FRONTEND_URL": "https://staybook.example",
        "ALLOW_GROUP_BOOKING": "false",
        "CURRENCY": "EUR",
        "CHECKOUT_SESSION_TTL_MINUTES": "60",
        "CORS_ORIGINS": "https://staybook.example, https://admin.staybook.example",
    }
    with patch.dict("os.environ", env, clear=True):
        settings = Settings()

    assert settings.table_prefix == "bookings"
    assert settings.allow_group_booking is False
    assert settings.currency == "eur"
    assert settings.checkout_session_ttl_minutes == 60
    assert settings.cors_origins == ["https://staybook.example", "https://admin.staybook.example"]


def test_cors_defaults_to_frontend_url():
    with patch.dict("os.environ", {"FRONTEND_URL": "https://staybook.example"}, clear=True):
        assert Settings().cors_origins == ["https://staybook.example"]


@pytest.mark.parametrize("raw", ["1", "yes", "ON", "True"])
def test_group_booking_flag_truthy_values(raw):
    with patch.dict("os.environ", {"ALLOW_GROUP_BOOKING": raw}, clear=True):
        assert Settings().allow_group_booking is True


def test_session_ttl_has_processor_minimum():
    with patch.dict("os.environ", {"CHECKOUT_SESSION_TTL_MINUTES": "5"}, clear=True):
        with pytest.raises(ValidationError):
            Settings()


def test_keyword_arguments_use_field_names():
    with patch.dict("os.environ", {}, clear=True):
        settings = Settings(environment="test", table_prefix="test-staybook")

    assert settings.table_prefix == "test-staybook"


def test_settings_are_cached():
    assert get_settings() is get_settings()
