"""DDL statements: create, drop and alter tables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlspine.errors import ColumnNotInTableError
from sqlspine.logging import get_logger
from sqlspine.model import Column, ForeignKey, Table
from sqlspine.sql_builder import SqlBuilder
from sqlspine.statements.base import Statement

if TYPE_CHECKING:
    from sqlspine.tx import Tx

logger = get_logger(__name__)


class CreateTable(Statement):
    def __init__(self, tx: Tx, table: Table):
        super().__init__(tx)
        self.table = table

    def build_sql(self, sql: SqlBuilder) -> None:
        self.dialect.build_create_table_sql(sql, self)

    def execute(self) -> None:
        self.execute_update()
        logger.info("table.created", table=self.table.name, tx=str(self.tx))


class DropTable(Statement):
    def __init__(self, tx: Tx, table: Table):
        super().__init__(tx)
        self.table = table
        self.if_exists = False
        self.cascade = False

    def set_if_exists(self, if_exists: bool = True) -> DropTable:
        self.if_exists = if_exists
        return self

    def set_cascade(self, cascade: bool = True) -> DropTable:
        self.cascade = cascade
        return self

    def build_sql(self, sql: SqlBuilder) -> None:
        self.dialect.build_drop_table_sql(sql, self)

    def execute(self) -> None:
        self.execute_update()
        logger.info("table.dropped", table=self.table.name, tx=str(self.tx))


class AlterTableAddColumn(Statement):
    """Adds a single column; several engines only accept one per statement."""

    def __init__(self, tx: Tx, table: Table, column: Column | None = None):
        super().__init__(tx)
        self.table = table
        self.column: Column | None = None
        if column is not None:
            self.set_column(column)

    def set_column(self, column: Column) -> AlterTableAddColumn:
        if column.table is not None and column.table is not self.table:
            raise ColumnNotInTableError(
                f"Column {column.qualified_name} does not belong to table {self.table.name}"
            )
        self.column = column
        return self

    def build_sql(self, sql: SqlBuilder) -> None:
        self.dialect.build_alter_table_add_column_sql(sql, self)

    def execute(self) -> None:
        self.execute_update()
        logger.info(
            "table.column_added",
            table=self.table.name,
            column=self.column.name if self.column else None,
            tx=str(self.tx),
        )


class AlterTableAddForeignKey(Statement):
    def __init__(self, tx: Tx, foreign_key: ForeignKey):
        super().__init__(tx)
        self.foreign_key = foreign_key

    @property
    def table(self) -> Table:
        return self.foreign_key.from_column.require_table()

    def build_sql(self, sql: SqlBuilder) -> None:
        self.dialect.build_alter_table_add_foreign_key_sql(sql, self)

    def execute(self) -> None:
        self.execute_update()
        logger.info("table.foreign_key_added", foreign_key=repr(self.foreign_key), tx=str(self.tx))


__all__ = [
    "CreateTable",
    "DropTable",
    "AlterTableAddColumn",
    "AlterTableAddForeignKey",
]
