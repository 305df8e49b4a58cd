"""Connection and schema-lock settings.

``DbSettings`` holds the handful of named properties a database handle is
built from: the connection URL, credentials, the process reference used to
attribute the schema lock, pool sizing and the lock retry budget.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not at first query
    - **Environment-driven:** ``SQLSPINE_URL``, ``SQLSPINE_PROCESS_REF``, ...
    - **Sensible defaults:** An in-memory SQLite database out of the box

Features:
    - **DbSettings:** url, user, password, process_ref, pool and lock settings
    - **from_properties():** Accepts ``jdbcUrl`` / ``process.ref`` style keys
    - **get_settings():** Cached process-wide instance

Examples:
    >>> from sqlspine.settings import DbSettings
    >>> settings = DbSettings(url="sqlite:///app.db", process_ref="worker-1")
    >>> settings.lock_max_attempts
    5

Tags:
    settings, configuration, pydantic, environment, sqlspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROPERTY_ALIASES = {
    "jdbcUrl": "url",
    "jdbc.url": "url",
    "process.ref": "process_ref",
    "processRef": "process_ref",
}


class DbSettings(BaseSettings):
    """Settings for a :class:`~sqlspine.db.Db`.

    Fields
    ──────
    url                : Connection URL (``sqlite://``, ``postgresql://...``, ``jdbc:...``)
    user / password    : Credentials merged into the URL
    process_ref        : Identifier written into the schema lock row
    dialect            : Dialect name overriding the one derived from ``url``
    pool_*             : SQLAlchemy pool sizing
    lock_max_attempts  : Attempts to acquire the schema upgrade lock
    lock_retry_delay   : Seconds between lock attempts
    lock_timeout       : Optional cap on the total lock wait, in seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Connection ───────────────────────────────────────────────
    url: str = "sqlite://"
    user: str | None = None
    password: str | None = None
    dialect: str | None = None
    process_ref: str | None = Field(
        default=None,
        description="Node identifier for schema lock attribution (default: pid@host)",
    )

    # ── Pool ─────────────────────────────────────────────────────
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: float = Field(default=30.0, gt=0)
    echo: bool = False

    # ── Schema lock ──────────────────────────────────────────────
    lock_max_attempts: int = Field(default=5, ge=1)
    lock_retry_delay: float = Field(default=1.0, ge=0)
    lock_timeout: float | None = Field(default=None, gt=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("url must not be blank")
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any]) -> DbSettings:
        """Build settings from a flat property mapping.

        Accepts both field names and the dotted/camel-case property names of
        older configuration files (``jdbcUrl``, ``process.ref``).
        """
        values: dict[str, Any] = {}
        for key, value in properties.items():
            values[_PROPERTY_ALIASES.get(key, key)] = value
        return cls(**values)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, DbSettings] = {}


def get_settings(*, env_file: str | None = None, _force_reload: bool = False) -> DbSettings:
    """Load, validate, and cache a :class:`DbSettings` instance.

    Parameters
    ----------
    env_file:
        Explicit ``.env`` file to read instead of the default.
    _force_reload:
        Bypass cache and reload from the environment.
    """
    cache_key = env_file or ""
    if not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    if env_file:
        settings = DbSettings(_env_file=env_file)  # type: ignore[call-arg]
    else:
        settings = DbSettings()
    _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "DbSettings",
    "get_settings",
    "clear_settings_cache",
]
