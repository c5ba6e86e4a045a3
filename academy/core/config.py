from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so casting and validation live in one place
    return os.environ.get(name, default).strip()


def _getint(name: str, default: str, *, minimum: int = 0) -> int:
    raw = _getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    jwt_public_key: str | None = None
    jwt_issuer: str = "auth-service"
    jwt_audience: str = "academy"
    analytics_cache_ttl: int = 300
    trend_window_months: int = 12
    top_courses_limit: int = 10
    engagement_window_days: int = 30

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    jwt_public_key = _getenv("JWT_PUBLIC_KEY", "") or None
    if app_env_raw == "prod" and jwt_public_key is None:
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=_getint("PORT", "8000", minimum=1),
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        jwt_public_key=jwt_public_key,
        jwt_issuer=_getenv("JWT_ISSUER", "auth-service"),
        jwt_audience=_getenv("JWT_AUDIENCE", "academy"),
        analytics_cache_ttl=_getint("ANALYTICS_CACHE_TTL", "300"),
        trend_window_months=_getint("TREND_WINDOW_MONTHS", "12", minimum=1),
        top_courses_limit=_getint("TOP_COURSES_LIMIT", "10", minimum=1),
        engagement_window_days=_getint("ENGAGEMENT_WINDOW_DAYS", "30", minimum=1),
    )


SETTINGS = load_settings()
