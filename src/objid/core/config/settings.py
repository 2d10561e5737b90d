"""
Tool settings.

Settings control how objid talks to the remote allocator and how long range
configuration is cached. They are read from environment variables (after
layering in `.env` files, see `objid.core.config.env`) and passed explicitly
to the components that need them.

Supported env vars:
    OBJID_BACKEND_URL      - allocator base URL
    OBJID_BACKEND_API_KEY  - API key sent as `x-api-key`
    OBJID_AUTH_KEY         - per-app authorization key sent in request bodies
    OBJID_CACHE_ENABLED    - "false"/"0" disables the config read cache
    OBJID_CACHE_TTL        - config cache lifetime in seconds
    OBJID_TIMEOUT          - HTTP timeout in seconds
    OBJID_LOG_LEVEL        - logging level name (DEBUG, INFO, WARNING, ...)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "https://vjekocom-alext-weu.azurewebsites.net"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseModel):
    """Process-wide tool settings."""

    backend_url: str = Field(
        default=DEFAULT_BACKEND_URL,
        description="Base URL of the remote ID allocator",
    )
    api_key: str | None = Field(
        default=None,
        description="API key for the allocator (sent as x-api-key header)",
    )
    auth_key: str | None = Field(
        default=None,
        description="App authorization key included in allocator requests",
    )
    cache_enabled: bool = Field(
        default=True,
        description="Cache parsed .objidconfig files between reads",
    )
    cache_ttl: float = Field(
        default=300.0,
        ge=0.0,
        description="Seconds a cached .objidconfig stays valid",
    )
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="HTTP timeout for allocator calls, in seconds",
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level name",
    )

    @field_validator("backend_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level


def _parse_float(name: str, raw: str, minimum: float) -> float | None:
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s value '%s', ignoring", name, raw)
        return None
    if value < minimum:
        logger.warning("%s must be >= %s, got %s, ignoring", name, minimum, value)
        return None
    return value


def settings_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Collect settings overrides from environment variables.

    Invalid numeric values are logged and skipped so a typo in one variable
    does not prevent the tool from starting.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if url := env.get("OBJID_BACKEND_URL"):
        values["backend_url"] = url
    if api_key := env.get("OBJID_BACKEND_API_KEY"):
        values["api_key"] = api_key
    if auth_key := env.get("OBJID_AUTH_KEY"):
        values["auth_key"] = auth_key

    if enabled := env.get("OBJID_CACHE_ENABLED"):
        values["cache_enabled"] = enabled.lower() not in ("false", "0", "no")

    if ttl := env.get("OBJID_CACHE_TTL"):
        parsed = _parse_float("OBJID_CACHE_TTL", ttl, 0.0)
        if parsed is not None:
            values["cache_ttl"] = parsed

    if timeout := env.get("OBJID_TIMEOUT"):
        parsed = _parse_float("OBJID_TIMEOUT", timeout, 0.001)
        if parsed is not None:
            values["timeout"] = parsed

    if level := env.get("OBJID_LOG_LEVEL"):
        if level.upper() in LOG_LEVELS:
            values["log_level"] = level
        else:
            logger.warning("Invalid OBJID_LOG_LEVEL value '%s', ignoring", level)

    return values


def load_settings(
    environ: Mapping[str, str] | None = None, **overrides: Any
) -> Settings:
    """
    Build Settings from the environment plus explicit overrides.

    Explicit keyword overrides (e.g. from CLI flags) win over the environment;
    None values are ignored.

    Example:
        >>> settings = load_settings({"OBJID_CACHE_TTL": "60"})
        >>> settings.cache_ttl
        60.0
    """
    values = settings_from_env(environ)
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
