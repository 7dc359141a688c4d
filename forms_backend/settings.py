from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppSettings:
    database_url: str | None = None
    host: str = "0.0.0.0"
    port: int = 8000
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5
    db_command_timeout_seconds: int = 10
    submit_timeout_seconds: int = 15
    log_level: str = "INFO"


def settings_from_env() -> AppSettings:
    return AppSettings(
        database_url=os.getenv("DATABASE_URL") or None,
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=_env_int("APP_PORT", 8000),
        db_pool_min_size=_env_int("DB_POOL_MIN_SIZE", 1),
        db_pool_max_size=_env_int("DB_POOL_MAX_SIZE", 5),
        db_command_timeout_seconds=_env_int("DB_COMMAND_TIMEOUT_SECONDS", 10),
        submit_timeout_seconds=_env_int("SUBMIT_TIMEOUT_SECONDS", 15),
        log_level=_env_log_level("LOG_LEVEL", "INFO"),
    )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default

    try:
        parsed = int(value)
    except ValueError:
        return default

    return parsed if parsed > 0 else default


def _env_log_level(name: str, default: str) -> str:
    value = os.getenv(name, default).upper()
    if value not in logging.getLevelNamesMapping():
        return default
    return value
