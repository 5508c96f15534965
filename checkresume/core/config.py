from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, TypeVar

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUTHY = {"1", "true", "yes", "y", "on"}


def _env_str(name: str, default: str) -> str:
    value = (os.getenv(name) or "").strip()
    return value or default


def _env_typed(name: str, cast: Callable[[str], T], default: T, minimum: T | None = None) -> T:
    """Parse ``name`` with ``cast``; malformed or below-minimum values fall back to ``default``."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("config_invalid_value name=%s value=%s default=%s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        logger.warning("config_below_minimum name=%s value=%s minimum=%s", name, value, minimum)
        return default
    return value


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    return raw in _TRUTHY if raw else default


def _env_csv(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    items = tuple(part.strip() for part in (os.getenv(name) or "").split(",") if part.strip())
    return items or default


@dataclass(frozen=True)
class Settings:
    log_level: str
    sentry_dsn: str | None
    rate_limit: str
    rate_limit_enabled: bool
    cors_allowed_origins: tuple[str, ...]
    analytics_db_path: str
    telemetry_retention_days: int
    max_upload_bytes: int
    min_content_words: int
    ai_providers: tuple[str, ...]
    ai_max_retries: int
    ai_base_delay_ms: int
    ai_call_timeout_s: float
    ai_pipeline_deadline_s: float
    course_catalog_path: str


def load_settings() -> Settings:
    return Settings(
        log_level=_env_str("LOG_LEVEL", "INFO"),
        sentry_dsn=_env_str("SENTRY_DSN", "") or None,
        rate_limit=_env_str("RATE_LIMIT", "30/minute"),
        rate_limit_enabled=_env_flag("RATE_LIMIT_ENABLED", True),
        cors_allowed_origins=_env_csv(
            "CORS_ALLOWED_ORIGINS",
            ("http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"),
        ),
        analytics_db_path=_env_str("ANALYTICS_DB_PATH", "data/analytics.db"),
        telemetry_retention_days=_env_typed("TELEMETRY_RETENTION_DAYS", int, 30, minimum=1),
        max_upload_bytes=_env_typed("MAX_UPLOAD_BYTES", int, 10 * 1024 * 1024, minimum=1),
        min_content_words=_env_typed("MIN_CONTENT_WORDS", int, 50, minimum=0),
        ai_providers=_env_csv("AI_PROVIDERS", ("openai", "groq", "together")),
        ai_max_retries=_env_typed("AI_MAX_RETRIES", int, 3, minimum=1),
        ai_base_delay_ms=_env_typed("AI_BASE_DELAY_MS", int, 1000, minimum=0),
        ai_call_timeout_s=_env_typed("AI_CALL_TIMEOUT_S", float, 30.0, minimum=0.1),
        ai_pipeline_deadline_s=_env_typed("AI_PIPELINE_DEADLINE_S", float, 120.0, minimum=0.1),
        course_catalog_path=_env_str("COURSE_CATALOG_PATH", "config/courses.yaml"),
    )


settings = load_settings()

if settings.ai_call_timeout_s > settings.ai_pipeline_deadline_s:
    raise RuntimeError("AI_CALL_TIMEOUT_S must not exceed AI_PIPELINE_DEADLINE_S.")
