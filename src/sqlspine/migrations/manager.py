"""
Schema manager: brings a live database to the declared tables and updates.

The declared schema is a list of ``Table`` descriptors plus an ordered list
of named ``SchemaUpdate`` procedures. ``ensure_current_schema()`` compares
it with what the database actually holds and closes the gap, while a lock
row in the ``schemaHistory`` ledger keeps other processes from doing the
same at the same time.

Manifesto:
    - **Additive only:** Missing tables are created and missing columns are
      added; nothing is ever dropped or altered in place
    - **Recorded once:** An update runs in the same transaction as its ledger
      row, so it is either applied and recorded or neither
    - **One upgrader at a time:** The lock is a conditional UPDATE on a single
      ledger row; exactly one process can see an affected-row count of 1
    - **Released on every exit path:** A failing upgrade still frees the lock;
      a lock left behind by a crashed process needs an operator

Architecture:
    ::

        NoHistory ──create ledger + lock row──► HistoryCreated
            │                                       │
            └───────────────────────────────────────┤
                                                    ▼
                                   acquire (retry policy) ──fail──► SchemaLockError
                                                    │
                                                    ▼
                                                LockHeld
                                                    │  add columns, create tables,
                                                    │  deferred foreign keys,
                                                    │  pending updates
                                                    ▼
                                             SchemaUpgraded
                                                    │  release (finally)
                                                    ▼
                                              LockReleased

Features:
    - **Forward references and cycles:** Foreign keys to tables not yet
      created are taken off their columns, the tables are created, then the
      keys are added with ALTER TABLE
    - **Case-insensitive diff:** Table and column names are compared
      lower-cased against live metadata
    - **Configurable lock wait:** ``RetryPolicy`` with attempt budget, delay,
      optional timeout and cancel event

Examples:
    >>> manager = SchemaManager(db, tables=[USERS, ORDERS], updates=[
    ...     SchemaUpdate("seed-admin", lambda tx: tx.new_insert(USERS)
    ...         .set(USER_ID, "admin").execute()),
    ... ])
    >>> result = manager.ensure_current_schema()
    >>> result.created_tables
    ['users', 'orders']
    >>> manager.ensure_current_schema().changed
    False

Guardrails:
    ❌ DON'T: Change what a released SchemaUpdate does
    ✅ DO: Append a new update with a new id

    ❌ DON'T: Clear a stuck lock row by hand while a process may be upgrading
    ✅ DO: Confirm the owner is gone, then call force_release_schema_lock()

    ❌ DON'T: Run two upgrades concurrently in the same process
    ✅ DO: Let one process per deployment call ensure_current_schema()

Tags:
    schema, migrations, ddl, lock, ledger, sqlspine

Doc-Types:
    - API Reference
    - Operations Guide
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlspine.conditions import and_, equal, is_null
from sqlspine.errors import (
    LedgerConsistencyError,
    SchemaLockError,
    SqlSpineError,
    StatementExecutionError,
)
from sqlspine.logging import get_logger
from sqlspine.migrations.history import (
    ID_LOCK,
    TABLE_NAME,
    TYPE_LOCK,
    TYPE_UPDATE,
    SchemaHistoryTable,
)
from sqlspine.model import Column, ForeignKey, Table
from sqlspine.retry import RetryPolicy
from sqlspine.settings import get_settings

if TYPE_CHECKING:
    from sqlspine.db import Db
    from sqlspine.tx import Tx

logger = get_logger(__name__)


# =============================================================================
# VALUE TYPES
# =============================================================================


@dataclass
class SchemaUpdate:
    """A named, run-once schema change.

    Attributes:
        id: Stable identifier recorded in the ledger; never reuse one
        procedure: Called with the transaction the ledger row is written in
        description: Ledger text (default ``"Executed update <id>"``)
    """

    id: str
    procedure: Callable[[Tx], Any]
    description: str | None = None

    @property
    def ledger_description(self) -> str:
        return self.description or f"Executed update {self.id}"


@dataclass
class UpgradeResult:
    """What one upgrade changed."""

    created_tables: list[str] = field(default_factory=list)
    added_columns: list[str] = field(default_factory=list)
    deferred_foreign_keys: list[str] = field(default_factory=list)
    applied_updates: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created_tables or self.added_columns or self.applied_updates)


def extract_forward_foreign_keys(table: Table, created_tables: set[Table]) -> list[ForeignKey]:
    """Take foreign keys to tables not in ``created_tables`` off ``table``'s columns.

    Returns the removed keys in column order. A key to ``table`` itself counts
    as a forward reference, since the table does not exist yet either.
    """
    extracted: list[ForeignKey] = []
    for column in table:
        extracted.extend(_extract_column_forward_keys(column, created_tables))
    return extracted


def _extract_column_forward_keys(column: Column, created_tables: set[Table]) -> list[ForeignKey]:
    extracted = [fk for fk in column.foreign_keys if fk.to_column.require_table() not in created_tables]
    for foreign_key in extracted:
        column.remove_constraint(foreign_key)
    return extracted


# =============================================================================
# SCHEMA MANAGER
# =============================================================================


class SchemaManager:
    """Creates, upgrades and drops the declared tables of one database."""

    def __init__(
        self,
        db: Db,
        tables: Iterable[Table] = (),
        updates: Iterable[SchemaUpdate] = (),
        retry_policy: RetryPolicy | None = None,
    ):
        self.db = db
        self.history = db.dialect.initialize_table(SchemaHistoryTable())
        self.tables: list[Table] = []
        self.updates: list[SchemaUpdate] = []
        self.retry_policy = retry_policy or _default_retry_policy()
        self.add_tables(*tables)
        self.add_updates(*updates)

    def add_tables(self, *tables: Table | None) -> SchemaManager:
        for table in tables:
            if table is not None:
                self.tables.append(self.db.dialect.initialize_table(table))
        return self

    def add_updates(self, *updates: SchemaUpdate | None) -> SchemaManager:
        for update in updates:
            if update is not None:
                self.updates.append(update)
        return self

    @property
    def process_ref(self) -> str:
        return self.db.process_ref

    # -- Unconditional create / drop -----------------------------------------

    def create_schema(self) -> list[str]:
        """Create every declared table, in order, without any checks.

        Returns the names of the created tables.
        """
        with self.db.tx() as tx:
            self._create_tables(tx, self.tables, set())
        return [table.name for table in self.tables]

    def drop_schema(self, include_history: bool = False) -> None:
        """Drop the declared tables in reverse declaration order, if they exist."""
        tables = list(reversed(self.tables))
        if include_history:
            tables.append(self.history)
        self.drop_tables(tables)

    def drop_tables(self, tables: Iterable[Table]) -> None:
        """Drop ``tables`` in the given order, skipping the missing ones."""
        with self.db.tx() as tx:
            for table in tables:
                tx.new_drop_table(table).set_if_exists().set_cascade().execute()

    def _create_tables(
        self,
        tx: Tx,
        tables: Iterable[Table],
        created_tables: set[Table],
        added_columns: Iterable[tuple[Table, Column]] = (),
    ) -> list[ForeignKey]:
        """Create ``tables`` then add ``added_columns``; forward keys go last."""
        deferred: list[ForeignKey] = []
        defer = self.db.dialect.supports_alter_table_add_foreign_key
        try:
            for table in tables:
                if defer:
                    deferred.extend(extract_forward_foreign_keys(table, created_tables))
                tx.new_create_table(table).execute()
                created_tables.add(table)
            for table, column in added_columns:
                if defer:
                    deferred.extend(_extract_column_forward_keys(column, created_tables))
                tx.new_alter_table_add_column(table, column).execute()
            for foreign_key in deferred:
                tx.new_alter_table_add_foreign_key(foreign_key).execute()
        finally:
            # the table model keeps every foreign key, also when creation fails
            for foreign_key in deferred:
                foreign_key.from_column.add_constraint(foreign_key)
        return deferred

    # -- Upgrade -------------------------------------------------------------

    def ensure_current_schema(self) -> UpgradeResult:
        """Create the ledger if needed, then upgrade under the schema lock.

        Raises:
            SchemaLockError: The lock was not acquired within the retry policy
            StatementExecutionError: A DDL statement or update failed
        """
        if not self._history_exists(self._live_tables_by_name()):
            self._create_schema_history()
        with self.schema_lock():
            result = self.upgrade_schema()
        logger.info(
            "schema.current",
            process=self.process_ref,
            created_tables=len(result.created_tables),
            added_columns=len(result.added_columns),
            applied_updates=len(result.applied_updates),
        )
        return result

    def upgrade_schema(self) -> UpgradeResult:
        """Create missing tables, add missing columns, then apply pending updates.

        Tables are created before columns are added, so an added column may
        reference a table that is new in this upgrade. Call only while
        holding the schema lock.
        """
        result = UpgradeResult()
        live_tables = self._live_tables_by_name()
        missing_tables: list[Table] = []
        missing_columns: list[tuple[Table, Column]] = []
        for table in self.tables:
            live_table = live_tables.get(table.name.lower())
            if live_table is None:
                missing_tables.append(table)
                continue
            live_columns = {name.lower() for name in live_table.column_names}
            missing_columns.extend((table, c) for c in table if c.name.lower() not in live_columns)

        created_tables = {t for t in self.tables if t.name.lower() in live_tables}
        with self.db.tx() as tx:
            deferred = self._create_tables(tx, missing_tables, created_tables, missing_columns)
        result.created_tables = [table.name for table in missing_tables]
        result.added_columns = [column.qualified_name for _, column in missing_columns]
        result.deferred_foreign_keys = [repr(fk) for fk in deferred]

        applied = set(self.get_db_schema_updates())
        for update in self.updates:
            if update.id not in applied:
                self._apply_update(update)
                result.applied_updates.append(update.id)
        return result

    def _apply_update(self, update: SchemaUpdate) -> None:
        h = self.history
        logger.info("schema.update_applying", update=update.id, process=self.process_ref)
        with self.db.tx() as tx:
            update.procedure(tx)
            count = (
                tx.new_insert(h)
                .set(h.id, update.id)
                .set(h.time, datetime.now(UTC))
                .set(h.process, self.process_ref)
                .set(h.type, TYPE_UPDATE)
                .set(h.description, update.ledger_description)
                .execute()
            )
            if count != 1:
                raise LedgerConsistencyError(
                    f"Expected 1 ledger insert for update {update.id}, got {count}",
                    affected=count,
                )

    def get_db_schema_updates(self) -> list[str]:
        """Ids of the updates already applied to the database."""
        h = self.history
        with self.db.tx() as tx:
            return (
                tx.new_select(h.id)
                .where(equal(h.type, TYPE_UPDATE))
                .execute()
                .get_all(lambda results: results.get(h.id))
            )

    def _live_tables_by_name(self) -> dict[str, Table]:
        tables = self.db.run_in_tx(lambda tx: tx.get_meta_data_tables())
        return {table.name.lower(): table for table in tables}

    def _history_exists(self, live_tables: dict[str, Table]) -> bool:
        return TABLE_NAME.lower() in live_tables

    def _create_schema_history(self) -> None:
        h = self.history
        try:
            with self.db.tx() as tx:
                tx.new_create_table(h).execute()
                tx.new_insert(h).set(h.id, ID_LOCK).set(h.type, TYPE_LOCK).execute()
        except StatementExecutionError:
            # another process may have created it first
            if not self._history_exists(self._live_tables_by_name()):
                raise
            logger.debug("schema.history_created_elsewhere", process=self.process_ref)
        else:
            logger.info("schema.history_created", table=TABLE_NAME)

    # -- Lock ----------------------------------------------------------------

    def acquire_schema_lock(self) -> bool:
        """Try to take the lock row, retrying per the retry policy."""
        attempt = 0
        for attempt in self.retry_policy.attempts():
            logger.debug("schema.lock_attempt", attempt=attempt, process=self.process_ref)
            if self.db.run_in_tx(self._try_acquire_schema_lock):
                logger.info("schema.lock_acquired", attempt=attempt, process=self.process_ref)
                return True
            logger.debug("schema.lock_busy", attempt=attempt, process=self.process_ref)
        logger.warning(
            "schema.lock_not_acquired",
            attempts=attempt,
            process=self.process_ref,
            owner=self.get_schema_lock_owner(),
        )
        return False

    def _try_acquire_schema_lock(self, tx: Tx) -> bool:
        h = self.history
        count = (
            tx.new_update(h)
            .set(h.description, f"{self.process_ref} is upgrading schema")
            .set(h.process, self.process_ref)
            .where(and_(is_null(h.description), is_null(h.process), equal(h.type, TYPE_LOCK)))
            .execute()
        )
        if count > 1:
            raise LedgerConsistencyError(
                f"Inconsistent database state: {count} lock rows in {TABLE_NAME}",
                affected=count,
            )
        return count == 1

    def release_schema_lock(self) -> None:
        """Free the lock row held by this process.

        Raises:
            LedgerConsistencyError: This process did not hold exactly one lock row
        """
        h = self.history

        def release(tx: Tx) -> None:
            count = (
                tx.new_update(h)
                .set(h.description, None)
                .set(h.process, None)
                .where(and_(equal(h.process, self.process_ref), equal(h.type, TYPE_LOCK)))
                .execute()
            )
            if count != 1:
                raise LedgerConsistencyError(
                    f"Schema lock could not be released by {self.process_ref}: {count} rows updated",
                    affected=count,
                ).with_context(process=self.process_ref)

        self.db.run_in_tx(release)
        logger.info("schema.lock_released", process=self.process_ref)

    @contextmanager
    def schema_lock(self) -> Iterator[None]:
        """Hold the schema lock for the block; released on every exit path."""
        if not self.acquire_schema_lock():
            raise SchemaLockError().with_context(
                process=self.process_ref, owner=self.get_schema_lock_owner()
            )
        try:
            yield
        except BaseException:
            try:
                self.release_schema_lock()
            except SqlSpineError:
                logger.error("schema.lock_release_failed", process=self.process_ref, exc_info=True)
            raise
        self.release_schema_lock()

    def get_schema_lock_owner(self) -> str | None:
        """The process holding the lock, or None when it is free."""
        h = self.history
        with self.db.tx() as tx:
            return (
                tx.new_select(h.process)
                .where(and_(equal(h.id, ID_LOCK), equal(h.type, TYPE_LOCK)))
                .execute()
                .get_first(lambda results: results.get(h.process))
            )

    def force_release_schema_lock(self) -> str | None:
        """Clear the lock row whoever holds it; for operators only.

        Use after confirming the owning process crashed. Returns the previous
        owner.
        """
        h = self.history
        owner = self.get_schema_lock_owner()
        with self.db.tx() as tx:
            tx.new_update(h).set(h.description, None).set(h.process, None).where(
                equal(h.type, TYPE_LOCK)
            ).execute()
        logger.warning("schema.lock_force_released", previous_owner=owner, process=self.process_ref)
        return owner


def _default_retry_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy.constant(
        settings.lock_max_attempts,
        settings.lock_retry_delay,
        timeout=settings.lock_timeout,
    )


__all__ = [
    "SchemaUpdate",
    "UpgradeResult",
    "SchemaManager",
    "extract_forward_foreign_keys",
]
