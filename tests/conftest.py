"""
Shared pytest fixtures for sqlspine tests.

This module provides:
- In-memory and file-backed SQLite databases
- Fresh schema descriptors per test (see ``tests._support``)
- Render-only transactions for the H2, PostgreSQL and MySQL dialects
- A zero-delay retry policy for schema lock tests

Usage:
    def test_something(db, shop):
        SchemaManager(db, tables=shop.tables).create_schema()
"""

from __future__ import annotations

import os
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Generator

import pytest

from sqlspine import Db, Dialect, RetryPolicy, SchemaManager, get_dialect
from sqlspine.settings import clear_settings_cache
from tests._support import (
    AllTypesSchema,
    ShopSchema,
    TeamSchema,
    all_types_schema,
    shop_schema,
    team_schema,
)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep SQLSPINE_* variables and cached settings from leaking between tests."""
    for key in list(os.environ):
        if key.startswith("SQLSPINE_"):
            monkeypatch.delenv(key)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Databases
# =============================================================================


@pytest.fixture
def db() -> Generator[Db, None, None]:
    """In-memory SQLite database, private to the test."""
    database = Db("sqlite://", process_ref="test-process")
    yield database
    database.close()


@pytest.fixture
def db_file(tmp_path: Path) -> str:
    """URL of a SQLite file that several ``Db`` instances can share."""
    return f"sqlite:///{tmp_path / 'shared.db'}"


@pytest.fixture
def no_wait() -> RetryPolicy:
    """Three lock attempts without sleeping."""
    return RetryPolicy.constant(3, 0.0, sleep=lambda _delay: None)


# =============================================================================
# Schemas
# =============================================================================


@pytest.fixture
def shop() -> ShopSchema:
    return shop_schema()


@pytest.fixture
def teams() -> TeamSchema:
    return team_schema()


@pytest.fixture
def all_types() -> AllTypesSchema:
    return all_types_schema()


# =============================================================================
# Rendering
# =============================================================================


@pytest.fixture
def render_tx() -> Callable[[str | Dialect], SimpleNamespace]:
    """Factory for a stand-in transaction that only carries a dialect.

    Statements need nothing else from their transaction to render SQL.
    """

    def make(dialect: str | Dialect = "h2") -> SimpleNamespace:
        if isinstance(dialect, str):
            dialect = get_dialect(dialect)
        return SimpleNamespace(dialect=dialect)

    return make


@pytest.fixture
def h2_tx(render_tx) -> SimpleNamespace:
    return render_tx("h2")


@pytest.fixture(params=["h2", "postgresql", "mysql", "sqlite"])
def any_dialect(request: pytest.FixtureRequest) -> Dialect:
    """Parametric fixture: run each test against every dialect."""
    return get_dialect(request.param)


@pytest.fixture
def shop_db(db: Db, shop: ShopSchema, no_wait: RetryPolicy) -> Db:
    """``db`` with the shop tables created and two users, two orders loaded.

    u1 (a@b.com) placed o1 (12.5) and o2 (7.0); u2 (c@d.com) placed nothing.
    """
    SchemaManager(db, tables=shop.tables, retry_policy=no_wait).create_schema()
    with db.tx() as tx:
        tx.new_insert(shop.users).set(shop.user_id, "u1").set(shop.user_email, "a@b.com").execute()
        tx.new_insert(shop.users).set(shop.user_id, "u2").set(shop.user_email, "c@d.com").execute()
        for order_id, total in (("o1", 12.5), ("o2", 7.0)):
            (tx.new_insert(shop.orders)
                .set(shop.order_id, order_id)
                .set(shop.order_user_id, "u1")
                .set(shop.order_total, total)
                .execute())
    return db
