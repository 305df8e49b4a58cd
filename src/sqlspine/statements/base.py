"""Statement base class: alias map, WHERE condition and parameter list."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from sqlspine.conditions import And, Condition
from sqlspine.errors import SchemaModelError
from sqlspine.model import Column, Table
from sqlspine.sql_builder import Parameter, SqlBuilder
from sqlspine.types import DataType

if TYPE_CHECKING:
    from sqlspine.dialect import Dialect
    from sqlspine.tx import Tx


class Statement(ABC):
    """A short-lived statement bound to a transaction.

    Subclasses describe the statement's shape and delegate SQL text to the
    dialect. Rendering first collects parameters, then asks the dialect to
    build the text; the builder checks both passes line up.
    """

    def __init__(self, tx: Tx):
        self.tx = tx
        self.table_aliases: dict[Table, str | None] = {}
        self.where_condition: Condition | None = None
        self.parameters: list[Parameter] = []

    @property
    def dialect(self) -> Dialect:
        return self.tx.dialect

    # -- Tables and aliases --------------------------------------------------

    def table_alias(self, table: Table, alias: str | None = None) -> None:
        if alias is not None or table not in self.table_aliases:
            self.table_aliases[table] = alias

    def get_alias(self, table: Table) -> str | None:
        return self.table_aliases.get(table)

    def qualified_column_name(self, column: Column) -> str:
        alias = self.table_aliases.get(column.require_table())
        return f"{alias}.{column.name}" if alias else column.name

    # -- WHERE ---------------------------------------------------------------

    def where(self, condition: Condition) -> Statement:
        """AND ``condition`` onto the WHERE clause.

        Merging builds a new ``And``; conditions passed in are never modified,
        so one condition object can be shared by many statements.
        """
        if self.where_condition is None:
            self.where_condition = condition
            return self
        merged = And(_children(self.where_condition))
        merged.conditions.extend(_children(condition))
        self.where_condition = merged
        return self

    # -- Rendering -----------------------------------------------------------

    def add_parameter(self, value: Any, data_type: DataType | None, column: Column | None = None) -> None:
        if data_type is None:
            name = column.qualified_name if column is not None else "expression"
            raise SchemaModelError(f"{name} has no data type")
        self.parameters.append(Parameter(value, data_type, column))

    def collect_parameters(self) -> None:
        if self.where_condition is not None:
            self.where_condition.collect_parameters(self)

    @abstractmethod
    def build_sql(self, sql: SqlBuilder) -> None: ...

    def render(self) -> SqlBuilder:
        """Collect parameters and render SQL without executing anything."""
        self.parameters = []
        self.collect_parameters()
        sql = SqlBuilder(self.dialect, self.parameters)
        self.build_sql(sql)
        sql.verify_parameters_consumed()
        return sql

    def execute_update(self) -> int:
        sql = self.render()
        prepared = self.tx.create_prepared_statement(sql)
        try:
            return prepared.execute_update()
        finally:
            prepared.close()

    def __str__(self) -> str:
        return self.render().sql


def _children(condition: Condition) -> list[Condition]:
    return list(condition.conditions) if isinstance(condition, And) else [condition]


__all__ = ["Statement"]
