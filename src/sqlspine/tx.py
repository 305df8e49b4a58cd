"""Transactions and prepared statements.

A ``Tx`` owns one pooled DB-API connection for the span of a unit of work
and is the factory for every statement run inside it. It is created and
ended by :meth:`sqlspine.db.Db.tx`; while it is open it is also the
*current transaction* of the calling context, available from
:func:`current_tx` without being passed around.

Manifesto:
    - **One connection per transaction:** Statements never see another
      transaction's connection
    - **Rollback-only, not rollback-now:** Anything may mark the transaction
      for rollback; the decision is taken once, when it ends
    - **SQL is always logged with its values:** Every executed statement is
      logged at debug level with the bound values filled in

Features:
    - **Statement factories:** ``new_select``, ``new_insert``, ``new_update``,
      ``new_delete``, ``new_create_table``, ``new_drop_table``,
      ``new_alter_table_add_column``, ``new_alter_table_add_foreign_key``
    - **Introspection:** ``get_meta_data_tables()`` lists the live tables and
      their columns
    - **Scripts:** ``execute_script()`` runs semicolon-separated SQL text

Examples:
    >>> with db.tx() as tx:
    ...     tx.new_insert(USERS).set(USER_ID, "u1").execute()
    ...     assert current_tx() is tx
    >>> current_tx() is None
    True

Guardrails:
    ❌ DON'T: Keep a Tx (or its statements) after the ``with`` block ends
    ✅ DO: Return plain values out of the transaction

    ❌ DON'T: Call commit/rollback on ``tx.connection`` yourself
    ✅ DO: Raise, or call ``set_rollback_only()``

Tags:
    transaction, prepared-statement, dbapi, sqlspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import itertools
import re
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Iterable

from sqlspine.errors import DataBindingError, StatementExecutionError
from sqlspine.expressions import Expression
from sqlspine.logging import get_logger, log_lines
from sqlspine.model import Column, ForeignKey, Table
from sqlspine.sql_builder import SqlBuilder
from sqlspine.statements.ddl import (
    AlterTableAddColumn,
    AlterTableAddForeignKey,
    CreateTable,
    DropTable,
)
from sqlspine.statements.dml import Delete, Insert, Update
from sqlspine.statements.select import Select
from sqlspine.types import SqlTypeCode

if TYPE_CHECKING:
    from sqlspine.db import Db
    from sqlspine.dialect import Dialect

logger = get_logger(__name__)

_current_tx: ContextVar[Tx | None] = ContextVar("sqlspine_current_tx", default=None)

_STATEMENT_END = re.compile(r";[ \t]*(?:\r?\n|$)")


def current_tx() -> Tx | None:
    """The transaction open in the calling context, or None."""
    return _current_tx.get()


# =============================================================================
# PREPARED STATEMENT
# =============================================================================


class PreparedStatement:
    """Rendered SQL plus its bound values, executed on the transaction's connection."""

    def __init__(self, tx: Tx, sql: SqlBuilder):
        self.tx = tx
        self.sql = sql
        self.values: list[Any] = [None] * len(sql.parameters)
        self.type_codes: list[SqlTypeCode | None] = [None] * len(sql.parameters)
        self._cursor: Any = None
        self._bind()

    def set_parameter(self, position: int, value: Any, type_code: SqlTypeCode) -> None:
        self.values[position] = value
        self.type_codes[position] = type_code

    def _bind(self) -> None:
        dialect = self.tx.dialect
        for position, parameter in enumerate(self.sql.parameters):
            data_type = dialect.resolve_type(parameter.type)
            try:
                data_type.bind(self, position, parameter.value)
            except DataBindingError as e:
                column = parameter.column.qualified_name if parameter.column is not None else None
                raise e.with_context(column=column, sql=self.sql.sql, tx=str(self.tx))

    def _execute(self) -> Any:
        self.tx.log_sql(self.sql.sql_log)
        cursor = self.tx.connection.cursor()
        try:
            if self.values:
                cursor.execute(self.sql.sql, tuple(self.values))
            else:
                cursor.execute(self.sql.sql)
        except Exception as e:
            _close_quietly(cursor, self.tx)
            raise StatementExecutionError(
                f"Couldn't execute statement in {self.tx}: {e}\n{self.sql.debug_info()}",
                sql=self.sql.sql,
                sql_log=self.sql.sql_log,
                cause=e,
            ).with_context(tx=str(self.tx)) from e
        self._cursor = cursor
        return cursor

    def execute_update(self) -> int:
        """Execute and return the driver's affected-row count."""
        return self._execute().rowcount

    def execute_query(self) -> None:
        self._execute()

    def fetchone(self) -> tuple[Any, ...] | None:
        if self._cursor is None:
            return None
        try:
            return self._cursor.fetchone()
        except Exception as e:
            raise StatementExecutionError(
                f"Couldn't fetch row in {self.tx}: {e}\n{self.sql.debug_info()}",
                sql=self.sql.sql,
                sql_log=self.sql.sql_log,
                cause=e,
            ) from e

    def close(self) -> None:
        if self._cursor is not None:
            cursor, self._cursor = self._cursor, None
            _close_quietly(cursor, self.tx)


def _close_quietly(resource: Any, tx: Tx) -> None:
    try:
        resource.close()
    except Exception:
        logger.warning("tx.close_failed", tx=str(tx), exc_info=True)


# =============================================================================
# TRANSACTION
# =============================================================================


class Tx:
    """A unit of work on one connection, committed or rolled back by ``end()``."""

    _ids = itertools.count(1)

    def __init__(self, db: Db, connection: Any):
        self.id = next(Tx._ids)
        self.db = db
        self.connection = connection
        self.rollback_only = False
        self.rollback_reason: BaseException | str | None = None
        self.result: Any = None
        self.ended = False

    @property
    def dialect(self) -> Dialect:
        return self.db.dialect

    def __str__(self) -> str:
        return f"Tx{self.id}"

    def __repr__(self) -> str:
        return f"<Tx id={self.id} rollback_only={self.rollback_only}>"

    # -- Outcome -------------------------------------------------------------

    def set_rollback_only(self, reason: BaseException | str | None = None) -> None:
        self.rollback_only = True
        if reason is not None:
            self.rollback_reason = reason

    def set_result(self, result: Any) -> None:
        self.result = result

    def end(self) -> None:
        """Commit, or roll back when marked rollback-only. Failures are logged."""
        if self.ended:
            return
        self.ended = True
        if self.rollback_only:
            logger.warning("tx.rolling_back", tx=str(self), reason=_reason_text(self.rollback_reason))
            try:
                self.connection.rollback()
            except Exception:
                logger.error("tx.rollback_failed", tx=str(self), exc_info=True)
        else:
            logger.debug("tx.committing", tx=str(self))
            try:
                self.connection.commit()
            except Exception:
                logger.error("tx.commit_failed", tx=str(self), exc_info=True)

    # -- Statement factories -------------------------------------------------

    def new_create_table(self, table: Table) -> CreateTable:
        return CreateTable(self, table)

    def new_drop_table(self, table: Table) -> DropTable:
        return DropTable(self, table)

    def new_alter_table_add_column(self, table: Table, column: Column | None = None) -> AlterTableAddColumn:
        return AlterTableAddColumn(self, table, column)

    def new_alter_table_add_foreign_key(self, foreign_key: ForeignKey) -> AlterTableAddForeignKey:
        return AlterTableAddForeignKey(self, foreign_key)

    def new_select(self, *items: Expression | Table) -> Select:
        return Select(self, *items)

    def new_insert(self, table: Table) -> Insert:
        return Insert(self, table)

    def new_update(self, table: Table, alias: str | None = None) -> Update:
        return Update(self, table, alias)

    def new_delete(self, table: Table, alias: str | None = None) -> Delete:
        return Delete(self, table, alias)

    # -- Execution -----------------------------------------------------------

    def create_prepared_statement(self, sql: SqlBuilder) -> PreparedStatement:
        return PreparedStatement(self, sql)

    def log_sql(self, text: str) -> None:
        log_lines(logger, text, prefix=f"{self} ")

    def query_rows(self, sql: str, parameters: Iterable[Any] = ()) -> list[tuple[Any, ...]]:
        """Run raw SQL and return all rows."""
        values = tuple(parameters)
        self.log_sql(sql)
        cursor = self.connection.cursor()
        try:
            if values:
                cursor.execute(sql, values)
            else:
                cursor.execute(sql)
            return [tuple(row) for row in cursor.fetchall()]
        except Exception as e:
            raise StatementExecutionError(
                f"Couldn't execute query in {self}: {e}\n{sql}", sql=sql, sql_log=sql, cause=e
            ) from e
        finally:
            _close_quietly(cursor, self)

    def execute_script(self, script: str) -> int:
        """Run semicolon-terminated statements; ``--`` comment lines are ignored.

        Returns the number of statements executed.
        """
        count = 0
        for chunk in _STATEMENT_END.split(script):
            lines = [line for line in chunk.splitlines() if not line.strip().startswith("--")]
            statement = "\n".join(lines).strip().rstrip(";").strip()
            if not statement:
                continue
            self.log_sql(statement)
            cursor = self.connection.cursor()
            try:
                cursor.execute(statement)
            except Exception as e:
                raise StatementExecutionError(
                    f"Couldn't execute script statement in {self}: {e}\n{statement}",
                    sql=statement,
                    sql_log=statement,
                    cause=e,
                ) from e
            finally:
                _close_quietly(cursor, self)
            count += 1
        return count

    # -- Introspection -------------------------------------------------------

    def get_meta_data_tables(self) -> list[Table]:
        """Tables and columns as they exist in the database right now.

        Columns carry names only; types and constraints are not read back.
        """
        dialect = self.dialect
        tables_sql, tables_params = dialect.tables_query()
        tables = []
        for (name, *_rest) in self.query_rows(tables_sql, tables_params):
            table = Table(name)
            columns_sql, columns_params = dialect.columns_query(name)
            for row in self.query_rows(columns_sql, columns_params):
                table.add_column(Column(row[dialect.column_name_position]))
            tables.append(table)
        return tables


def _reason_text(reason: BaseException | str | None) -> str | None:
    if reason is None or isinstance(reason, str):
        return reason
    return f"{type(reason).__name__}: {reason}"


__all__ = ["Tx", "PreparedStatement", "current_tx"]
