"""Environment-specific configuration loader."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .body import BodyOptions
from .utils import parse_size

ALLOWED_ENVS = {"dev", "test", "prod"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
BODY_LIMIT_KEYS = ("json", "urlencoded", "multipart", "text", "raw")


@dataclass
class Settings:
    """Runtime settings populated from the environment."""

    environment: str = "dev"
    debug: bool = False
    log_level: str = "INFO"
    body_limits: dict[str, str | None] = field(default_factory=dict)
    max_file_size: str | None = None

    def body_options(self) -> BodyOptions:
        """Return the body size limits as :class:`BodyOptions`."""

        return BodyOptions(max_file_size=self.max_file_size, **self.body_limits)


def validate_settings(settings: Settings) -> None:
    """Validate *settings* for safe operation.

    Raises
    ------
    ValueError
        If the environment, log level or a size limit is unsupported, or if
        production settings are insecure.
    """

    env = settings.environment
    if env not in ALLOWED_ENVS:
        raise ValueError(f"Unsupported environment: {env}")
    if env == "prod" and settings.debug:
        raise ValueError("Debug must be disabled in production")
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(f"Unsupported log level: {settings.log_level}")
    for key, limit in settings.body_limits.items():
        if key not in BODY_LIMIT_KEYS:
            raise ValueError(f"Unsupported body type: {key}")
        parse_size(limit)
    parse_size(settings.max_file_size)


def load_settings() -> Settings:
    """Return configuration derived from `WEBLIMO_*` variables.

    ``WEBLIMO_BODY_LIMIT_JSON=100kb`` and the like set per body type limits.
    """

    env = os.getenv("WEBLIMO_ENV", "dev").lower()
    debug = os.getenv("WEBLIMO_DEBUG", "0").lower() in {"1", "true", "yes"}
    log_level = os.getenv("WEBLIMO_LOG_LEVEL", "INFO").upper()
    limits: dict[str, str | None] = {}
    for key in BODY_LIMIT_KEYS:
        value = os.getenv(f"WEBLIMO_BODY_LIMIT_{key.upper()}")
        if value:
            limits[key] = value
    settings = Settings(
        environment=env,
        debug=debug,
        log_level=log_level,
        body_limits=limits,
        max_file_size=os.getenv("WEBLIMO_MAX_FILE_SIZE") or None,
    )
    validate_settings(settings)
    return settings


def configure_logging(settings: Settings) -> None:
    """Apply the configured level to the ``weblimo`` loggers."""

    level = "DEBUG" if settings.debug else settings.log_level
    logging.getLogger("weblimo").setLevel(level)


__all__ = [
    "ALLOWED_ENVS",
    "BODY_LIMIT_KEYS",
    "LOG_LEVELS",
    "Settings",
    "configure_logging",
    "load_settings",
    "validate_settings",
]
