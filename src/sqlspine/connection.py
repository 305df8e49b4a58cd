"""Connection source: pooled DB-API connections from a URL.

Every ``Db`` gets its connections here. The pool is SQLAlchemy's: an
``Engine`` is created for the URL and each transaction checks out one
DB-API connection with ``engine.raw_connection()`` and returns it by
closing it.

Supported URLs
--------------
==========================  ==========================================  ==========
Form                        Example                                     Backend
==========================  ==========================================  ==========
in-memory                   ``sqlite://`` or ``memory``                 SQLite RAM
SQLite file                 ``sqlite:///path/to/file.db``               SQLite
PostgreSQL                  ``postgresql://user:pw@host:5432/db``       psycopg2
MySQL / MariaDB             ``mysql://user:pw@host:3306/db``            PyMySQL
JDBC style                  ``jdbc:postgresql://host/db``               as above
==========================  ==========================================  ==========

``jdbc:h2:...`` URLs select the H2 dialect but have no Python driver; pass
a ``connection_factory`` to :class:`~sqlspine.db.Db` to use them.

Design
------
- SQLite connections get ``PRAGMA foreign_keys = ON`` on connect
- Pool sizing applies to server backends only
- Drivers are imported by SQLAlchemy when the engine is created; a missing
  driver is reported as a ``ConfigError`` naming the package to install
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError

from sqlspine.errors import ConfigError
from sqlspine.logging import get_logger

logger = get_logger(__name__)

_DRIVER_PACKAGES = {
    "postgresql": "psycopg2-binary",
    "mysql": "PyMySQL",
}


# ── ConnectionInfo ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a connection URL."""

    backend: str
    """Backend identifier: ``"sqlite"``, ``"postgresql"``, ``"mysql"``."""

    persistent: bool
    """Whether data survives process exit."""

    url: str
    """The SQLAlchemy URL, password masked."""

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"


# ── URL handling ─────────────────────────────────────────────────────────


def normalize_url(url: str | None) -> str:
    """Turn a configured URL into a SQLAlchemy URL string.

    Raises:
        ConfigError: For H2 URLs, which have no Python driver.
    """
    text = (url or "").strip()
    if text.lower().startswith("jdbc:"):
        text = text[len("jdbc:"):]

    if text in ("", "memory", ":memory:"):
        return "sqlite://"
    if text.startswith("h2:"):
        raise ConfigError(
            f"No Python driver for H2 URL {url!r}; supply a connection_factory"
        )
    if text.startswith("sqlite:") and not text.startswith("sqlite://"):
        # jdbc:sqlite:/path/to/file.db
        path = text[len("sqlite:"):]
        return "sqlite://" if path in ("", ":memory:") else f"sqlite:///{path}"
    if text.startswith("postgres://"):
        return "postgresql://" + text[len("postgres://"):]
    if text.startswith(("mysql://", "mariadb://")):
        return "mysql+pymysql://" + text.split("://", 1)[1]
    return text


def connection_info(url: str) -> ConnectionInfo:
    sa_url = make_url(normalize_url(url))
    backend = sa_url.get_backend_name()
    persistent = not (backend == "sqlite" and sa_url.database in (None, "", ":memory:"))
    return ConnectionInfo(
        backend=backend,
        persistent=persistent,
        url=sa_url.render_as_string(hide_password=True),
    )


def default_process_ref() -> str:
    """``<pid>@<hostname>``, identifying this process in the schema lock."""
    try:
        host = socket.gethostname()
    except OSError:
        host = ""
    return f"{os.getpid()}@{host}" if host else "unnamed node"


# ── Engine factory ───────────────────────────────────────────────────────


def create_db_engine(
    url: str,
    *,
    user: str | None = None,
    password: str | None = None,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_timeout: float | None = None,
    echo: bool = False,
    **kwargs: Any,
) -> Engine:
    """Create the SQLAlchemy engine whose pool hands out DB-API connections.

    ``user`` and ``password`` override credentials embedded in ``url``.
    """
    try:
        sa_url = make_url(normalize_url(url))
    except ArgumentError as e:
        raise ConfigError(f"Invalid database URL {url!r}", cause=e) from e
    if user is not None:
        sa_url = sa_url.set(username=user)
    if password is not None:
        sa_url = sa_url.set(password=password)

    backend = sa_url.get_backend_name()
    try:
        if backend == "sqlite":
            engine = create_engine(sa_url, echo=echo, **kwargs)

            @event.listens_for(engine, "connect")
            def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys = ON")
                cursor.close()

            return engine

        pool_kwargs: dict[str, Any] = {}
        if pool_size is not None:
            pool_kwargs["pool_size"] = pool_size
        if max_overflow is not None:
            pool_kwargs["max_overflow"] = max_overflow
        if pool_timeout is not None:
            pool_kwargs["pool_timeout"] = pool_timeout
        return create_engine(sa_url, echo=echo, **pool_kwargs, **kwargs)
    except ImportError as e:
        package = _DRIVER_PACKAGES.get(backend, f"a DB-API driver for {backend}")
        raise ConfigError(
            f"Driver for {backend} is not installed. Install it with: pip install {package}",
            cause=e,
        ) from e


__all__ = [
    "ConnectionInfo",
    "normalize_url",
    "connection_info",
    "default_process_ref",
    "create_db_engine",
]
