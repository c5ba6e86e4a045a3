from __future__ import annotations

import pytest

from academy.core.config import Settings, load_settings

_ENV_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "PORT",
    "DATABASE_URL",
    "REDIS_URL",
    "JWT_PUBLIC_KEY",
    "ANALYTICS_CACHE_TTL",
    "TREND_WINDOW_MONTHS",
    "TOP_COURSES_LIMIT",
    "ENGAGEMENT_WINDOW_DAYS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---- defaults ----


def test_defaults() -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.database_url is None
    assert settings.redis_url is None
    assert settings.analytics_cache_ttl == 300
    assert settings.trend_window_months == 12
    assert settings.top_courses_limit == 10
    assert settings.engagement_window_days == 30


def test_values_are_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  TEST ")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_JSON", "1")
    monkeypatch.setenv("ANALYTICS_CACHE_TTL", " 60 ")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.log_level == "debug"
    assert settings.log_json is True
    assert settings.analytics_cache_ttl == 60


def test_empty_urls_mean_in_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "")
    monkeypatch.setenv("REDIS_URL", "  ")
    settings = load_settings()
    assert settings.database_url is None
    assert settings.redis_url is None


# ---- rejected values ----


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("APP_ENV", "staging", "APP_ENV must be"),
        ("LOG_LEVEL", "verbose", "LOG_LEVEL must be"),
        ("LOG_JSON", "yes", "LOG_JSON must be"),
        ("PORT", "http", "PORT must be an integer"),
        ("ANALYTICS_CACHE_TTL", "-1", "ANALYTICS_CACHE_TTL must be >= 0"),
        ("TREND_WINDOW_MONTHS", "0", "TREND_WINDOW_MONTHS must be >= 1"),
        ("ENGAGEMENT_WINDOW_DAYS", "0", "ENGAGEMENT_WINDOW_DAYS must be >= 1"),
    ],
)
def test_invalid_values_are_rejected(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=message):
        load_settings()


def test_prod_requires_jwt_public_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    with pytest.raises(ValueError, match="JWT_PUBLIC_KEY is required"):
        load_settings()

    monkeypatch.setenv("JWT_PUBLIC_KEY", "-----BEGIN PUBLIC KEY-----")
    assert load_settings().is_prod is True


# ---- Settings ----


def test_settings_is_frozen() -> None:
    settings = Settings(  # type: ignore[arg-type]
        app_env="test",
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )
    assert settings.is_test is True
    assert settings.is_dev is False
    with pytest.raises(AttributeError):
        settings.analytics_cache_ttl = 0  # type: ignore[misc]
