"""INSERT, UPDATE and DELETE statements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlspine.errors import ColumnNotInTableError
from sqlspine.model import Column, Table
from sqlspine.sql_builder import SqlBuilder
from sqlspine.statements.base import Statement

if TYPE_CHECKING:
    from sqlspine.tx import Tx


def _check_column(table: Table, column: Column) -> None:
    if column.table is not table:
        owner = column.table.name if column.table is not None else "no table"
        raise ColumnNotInTableError(
            f"Column {column.name} belongs to {owner}, not to {table.name}"
        ).with_context(table=table.name, column=column.name)


class Insert(Statement):
    """``INSERT INTO t (c1, c2) VALUES (?, ?);`` in the order columns were set."""

    def __init__(self, tx: Tx, table: Table):
        super().__init__(tx)
        self.table = table
        self.values: dict[Column, Any] = {}

    def set(self, column: Column, value: Any) -> Insert:
        _check_column(self.table, column)
        self.values[column] = value
        return self

    def collect_parameters(self) -> None:
        for column, value in self.values.items():
            self.add_parameter(value, column.type, column)

    def build_sql(self, sql: SqlBuilder) -> None:
        self.dialect.build_insert_sql(sql, self)

    def execute(self) -> int:
        return self.execute_update()


@dataclass(eq=False)
class UpdateSet:
    column: Column
    value: Any


class Update(Statement):
    def __init__(self, tx: Tx, table: Table, alias: str | None = None):
        super().__init__(tx)
        self.table = table
        self.table_alias(table, alias)
        self.sets: list[UpdateSet] = []

    def set(self, column: Column, value: Any) -> Update:
        _check_column(self.table, column)
        self.sets.append(UpdateSet(column, value))
        return self

    def collect_parameters(self) -> None:
        for update_set in self.sets:
            self.add_parameter(update_set.value, update_set.column.type, update_set.column)
        super().collect_parameters()

    def build_sql(self, sql: SqlBuilder) -> None:
        self.dialect.build_update_sql(sql, self)

    def execute(self) -> int:
        """Return the number of updated rows."""
        return self.execute_update()


class Delete(Statement):
    def __init__(self, tx: Tx, table: Table, alias: str | None = None):
        super().__init__(tx)
        self.table = table
        self.table_alias(table, alias)

    def build_sql(self, sql: SqlBuilder) -> None:
        self.dialect.build_delete_sql(sql, self)

    def execute(self) -> int:
        """Return the number of deleted rows."""
        return self.execute_update()


__all__ = ["Insert", "Update", "UpdateSet", "Delete"]
