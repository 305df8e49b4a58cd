"""Value expressions used in select fields, conditions and ORDER BY."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

from sqlspine.types import DataType, LongType

if TYPE_CHECKING:
    from sqlspine.model import Column
    from sqlspine.sql_builder import SqlBuilder
    from sqlspine.statements.base import Statement


class Expression(ABC):
    """Something that renders to a SQL value expression."""

    is_aggregate: bool = False

    @abstractmethod
    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None: ...

    @property
    @abstractmethod
    def data_type(self) -> DataType | None:
        """Type used to bind values compared against, and to extract results."""

    @abstractmethod
    def columns(self) -> Iterator[Column]:
        """Columns referenced by this expression."""

    @property
    def title(self) -> str:
        """Header text for tabular logs."""
        return type(self).__name__.lower()


class Lower(Expression):
    """``lower(<expr>)``"""

    def __init__(self, expression: Expression):
        self.expression = expression

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        sql.append_text("lower(")
        self.expression.build_sql(sql, statement)
        sql.append_text(")")

    @property
    def data_type(self) -> DataType | None:
        return self.expression.data_type

    def columns(self) -> Iterator[Column]:
        return self.expression.columns()

    @property
    def title(self) -> str:
        return f"lower({self.expression.title})"


class Count(Expression):
    """``count(*)`` or ``count(<expr>)``; makes a select an aggregate query."""

    is_aggregate = True

    def __init__(self, expression: Expression | None = None):
        self.expression = expression

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        if self.expression is None:
            sql.append_text("count(*)")
            return
        sql.append_text("count(")
        self.expression.build_sql(sql, statement)
        sql.append_text(")")

    @property
    def data_type(self) -> DataType:
        return LongType()

    def columns(self) -> Iterator[Column]:
        if self.expression is None:
            return iter(())
        return self.expression.columns()

    @property
    def title(self) -> str:
        return "count(*)" if self.expression is None else f"count({self.expression.title})"


@dataclass(eq=False)
class ExpressionWithAlias:
    """A select field: an expression and an optional ``AS`` alias."""

    expression: Expression
    alias: str | None = None

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        self.expression.build_sql(sql, statement)
        if self.alias:
            sql.append_text(f" AS {self.alias}")

    @property
    def title(self) -> str:
        return self.alias or self.expression.title


@dataclass(eq=False)
class OrderBy:
    expression: Expression
    ascending: bool = True

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        self.expression.build_sql(sql, statement)
        sql.append_text(" ASC" if self.ascending else " DESC")


def lower(expression: Expression) -> Lower:
    return Lower(expression)


def count(expression: Expression | None = None) -> Count:
    return Count(expression)


__all__ = [
    "Expression",
    "Lower",
    "Count",
    "ExpressionWithAlias",
    "OrderBy",
    "lower",
    "count",
]
