from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_TASKS_FILE = "data/tasks.json"
DEFAULT_CORS_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _env_or_default(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    trimmed = value.strip()
    return trimmed if trimmed else default


def _parse_csv_env(name: str, default: str = "") -> list[str]:
    value = _env_or_default(name, default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool_env(name: str) -> bool:
    return _env_or_default(name, "").lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    tasks_file: str = DEFAULT_TASKS_FILE
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000
    cors_allow_origins: list[str] = field(default_factory=lambda: ["null"])
    cors_allow_origin_regex: str = DEFAULT_CORS_ORIGIN_REGEX

    @classmethod
    def from_env(cls) -> "Settings":
        log_level = "DEBUG" if _parse_bool_env("DEBUG") else _env_or_default("ORCHESTRATOR_LOG_LEVEL", "INFO")
        port = _env_or_default("ORCHESTRATOR_PORT", "8000")
        if not port.isdigit():
            raise ValueError(f"ORCHESTRATOR_PORT must be an integer, got {port!r}")
        return cls(
            tasks_file=_env_or_default("ORCHESTRATOR_TASKS_FILE", DEFAULT_TASKS_FILE),
            log_level=log_level.upper(),
            host=_env_or_default("ORCHESTRATOR_HOST", "127.0.0.1"),
            port=int(port),
            cors_allow_origins=_parse_csv_env("API_CORS_ALLOW_ORIGINS", default="null"),
            cors_allow_origin_regex=_env_or_default("API_CORS_ALLOW_ORIGIN_REGEX", DEFAULT_CORS_ORIGIN_REGEX),
        )
