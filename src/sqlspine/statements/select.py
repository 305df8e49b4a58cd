"""SELECT statements with joins, ordering and limits.

Example:
    >>> results = (tx.new_select(USERS)
    ...     .left_outer_join(ORDERS, ORDER_USER_ID)
    ...     .where(equal(USER_EMAIL, "a@b.com"))
    ...     .order_asc(USER_EMAIL)
    ...     .execute())
    >>> emails = results.get_all(lambda r: r.get(USER_EMAIL))

Executing a select fills in what was left implicit: tables named only
through their columns become FROM tables, tables with no selected column
contribute all their columns (unless the query aggregates), and once two
or more tables take part every table gets an alias.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterator

from sqlspine.conditions import Condition, equal
from sqlspine.errors import (
    ForeignKeyNotFoundError,
    JoinTableNotFoundError,
    MissingPrimaryKeyError,
    SchemaModelError,
)
from sqlspine.expressions import Expression, ExpressionWithAlias, OrderBy
from sqlspine.model import Column, Table
from sqlspine.results import SelectResults
from sqlspine.sql_builder import SqlBuilder
from sqlspine.statements.base import Statement

if TYPE_CHECKING:
    from sqlspine.tx import Tx


class JoinType(str, Enum):
    INNER = "INNER"
    LEFT_OUTER = "LEFT OUTER"
    RIGHT_OUTER = "RIGHT OUTER"


@dataclass(eq=False)
class Join:
    type: JoinType
    table: Table
    condition: Condition


@dataclass(eq=False)
class TableWithJoins:
    """A FROM item: one table and the joins hanging off it."""

    table: Table
    joins: list[Join] = field(default_factory=list)

    def tables(self) -> Iterator[Table]:
        yield self.table
        for join in self.joins:
            yield join.table


class Select(Statement):
    def __init__(self, tx: Tx, *items: Expression | Table):
        super().__init__(tx)
        self.fields: list[ExpressionWithAlias] = []
        self.froms: list[TableWithJoins] = []
        self.order_by: list[OrderBy] = []
        self.limit_count: int | None = None
        for item in items:
            if isinstance(item, Table):
                self.from_(item)
            else:
                self.field(item)

    # -- Shape ---------------------------------------------------------------

    def field(self, expression: Expression, alias: str | None = None) -> Select:
        self.fields.append(ExpressionWithAlias(expression, alias))
        return self

    def add_fields(self, *expressions: Expression) -> Select:
        for expression in expressions:
            self.field(expression)
        return self

    def from_(self, table: Table, alias: str | None = None) -> Select:
        self.froms.append(TableWithJoins(table))
        self.table_alias(table, alias)
        return self

    def join(self, table: Table, foreign_key_column: Column, alias: str | None = None) -> Select:
        return self._join(JoinType.INNER, table, foreign_key_column, alias)

    def left_outer_join(self, table: Table, foreign_key_column: Column, alias: str | None = None) -> Select:
        return self._join(JoinType.LEFT_OUTER, table, foreign_key_column, alias)

    def right_outer_join(self, table: Table, foreign_key_column: Column, alias: str | None = None) -> Select:
        return self._join(JoinType.RIGHT_OUTER, table, foreign_key_column, alias)

    def _join(self, join_type: JoinType, table: Table, foreign_key_column: Column, alias: str | None) -> Select:
        foreign_key = foreign_key_column.find_foreign_key()
        if foreign_key is None:
            raise ForeignKeyNotFoundError(foreign_key_column.qualified_name)
        referencing_table = foreign_key.from_column.require_table()
        referenced_table = foreign_key.to_column.require_table()
        primary_key = referenced_table.primary_key_column
        if primary_key is None:
            raise MissingPrimaryKeyError(referenced_table.name)

        if table is referencing_table:
            joined_from = referenced_table
        elif table is referenced_table:
            joined_from = referencing_table
        else:
            raise SchemaModelError(
                f"Foreign key {foreign_key!r} does not involve table {table.name}"
            )

        from_ = next((f for f in self.froms if joined_from in f.tables()), None)
        if from_ is None:
            raise JoinTableNotFoundError(
                f"Table {joined_from.name} is not in the tables of this select"
            ).with_context(table=joined_from.name)

        from_.joins.append(Join(join_type, table, equal(foreign_key.from_column, primary_key)))
        self.table_alias(table, alias)
        return self

    def where(self, condition: Condition) -> Select:
        super().where(condition)
        return self

    def order_asc(self, expression: Expression) -> Select:
        self.order_by.append(OrderBy(expression, ascending=True))
        return self

    def order_desc(self, expression: Expression) -> Select:
        self.order_by.append(OrderBy(expression, ascending=False))
        return self

    def limit(self, count: int) -> Select:
        if count < 0:
            raise SchemaModelError(f"Limit must not be negative, got {count}")
        self.limit_count = count
        return self

    # -- Derived -------------------------------------------------------------

    @property
    def is_aggregate(self) -> bool:
        return any(f.expression.is_aggregate for f in self.fields)

    def tables(self) -> list[Table]:
        tables: list[Table] = []
        for from_ in self.froms:
            for table in from_.tables():
                if table not in tables:
                    tables.append(table)
        return tables

    def field_index(self, expression: Expression | str) -> int | None:
        """Position of a selected expression, or of a field by alias."""
        for i, f in enumerate(self.fields):
            if f.expression is expression or (isinstance(expression, str) and f.alias == expression):
                return i
        return None

    def complete(self) -> Select:
        """Fill in implicit tables, fields and aliases; idempotent."""
        if not self.froms:
            for f in self.fields:
                for column in f.expression.columns():
                    table = column.require_table()
                    if table not in self.tables():
                        self.from_(table)

        field_tables = {
            column.require_table() for f in self.fields for column in f.expression.columns()
        }
        tables = self.tables()
        if not self.is_aggregate:
            for table in tables:
                if table not in field_tables:
                    self.add_fields(*table)

        if len(tables) > 1:
            for table in tables:
                if self.get_alias(table) is None:
                    self.table_alias(table, self._next_alias(table))
        return self

    def _next_alias(self, table: Table) -> str:
        used = set(self.table_aliases.values())
        base = table.name.lower()
        for length in range(1, len(base) + 1):
            candidate = base[:length]
            if candidate not in used:
                return candidate
        index = 2
        while f"{base}{index}" in used:
            index += 1
        return f"{base}{index}"

    # -- Rendering / execution ------------------------------------------------

    def collect_parameters(self) -> None:
        for from_ in self.froms:
            for join in from_.joins:
                join.condition.collect_parameters(self)
        super().collect_parameters()

    def build_sql(self, sql: SqlBuilder) -> None:
        self.dialect.build_select_sql(sql, self)

    def execute(self) -> SelectResults:
        self.complete()
        sql = self.render()
        prepared = self.tx.create_prepared_statement(sql)
        try:
            prepared.execute_query()
        except BaseException:
            prepared.close()
            raise
        return SelectResults(self, prepared)


__all__ = ["JoinType", "Join", "TableWithJoins", "Select"]
