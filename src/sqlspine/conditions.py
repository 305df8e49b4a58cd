"""Boolean conditions for WHERE and JOIN ... ON clauses.

Conditions form a small closed tree: ``Equal``, ``GreaterOrEqual``,
``IsNull``, ``IsNotNull``, ``Like``, ``In``, ``Not``, ``And`` and ``Or``. Each
node renders itself into a :class:`~sqlspine.sql_builder.SqlBuilder` and, in
a separate pass over the same tree, contributes its literal values to the
statement's parameter list. Both passes walk the tree depth first, left to
right, which keeps every placeholder aligned with its value.

Examples:
    >>> cond = equal(USER_EMAIL, "a@b.com").and_(is_null(USER_DELETED))
    >>> isinstance(cond, And)
    True
    >>> or_(equal(USER_NAME, "a"), like(USER_NAME, "b%"))
    Or(...)

Guardrails:
    ❌ DON'T: Interpolate values into SQL text
    ✅ DO: Let conditions contribute parameters, the driver binds them

    ❌ DON'T: Render and collect in different orders
    ✅ DO: Keep build_sql and collect_parameters walking children identically
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Sequence

from sqlspine.errors import EmptyClauseError, SchemaModelError
from sqlspine.expressions import Expression
from sqlspine.model import Column

if TYPE_CHECKING:
    from sqlspine.sql_builder import SqlBuilder
    from sqlspine.statements.base import Statement


class Condition(ABC):
    @abstractmethod
    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None: ...

    def collect_parameters(self, statement: Statement) -> None:
        """Add literal values to ``statement`` in placeholder order."""

    def and_(self, *others: Condition) -> And:
        return And([self]).and_(*others)

    def or_(self, *others: Condition) -> Or:
        return Or([self]).or_(*others)


def _add_value(statement: Statement, expression: Expression, value: Any) -> None:
    data_type = expression.data_type
    if data_type is None:
        raise SchemaModelError(f"Cannot bind a value against untyped expression {expression.title}")
    column = expression if isinstance(expression, Column) else None
    statement.add_parameter(value, data_type, column)


@dataclass(eq=False)
class _Comparison(Condition):
    expression: Expression
    value: Any
    operator = "="

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        self.expression.build_sql(sql, statement)
        sql.append_text(f" {self.operator} ")
        if isinstance(self.value, Expression):
            self.value.build_sql(sql, statement)
        else:
            sql.append_parameter()

    def collect_parameters(self, statement: Statement) -> None:
        if not isinstance(self.value, Expression):
            _add_value(statement, self.expression, self.value)


@dataclass(eq=False)
class Equal(_Comparison):
    """``expr = ?``, ``expr = other_expr``, or ``expr IS NULL`` for a None value."""

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        if self.value is None:
            self.expression.build_sql(sql, statement)
            sql.append_text(" IS NULL")
            return
        super().build_sql(sql, statement)

    def collect_parameters(self, statement: Statement) -> None:
        if self.value is not None:
            super().collect_parameters(statement)


@dataclass(eq=False)
class GreaterOrEqual(_Comparison):
    operator = ">="

    def __post_init__(self) -> None:
        if self.value is None:
            raise EmptyClauseError(f"{self.expression.title} >= needs a value")


@dataclass(eq=False)
class IsNull(Condition):
    expression: Expression

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        self.expression.build_sql(sql, statement)
        sql.append_text(" IS NULL")


@dataclass(eq=False)
class IsNotNull(Condition):
    expression: Expression

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        self.expression.build_sql(sql, statement)
        sql.append_text(" IS NOT NULL")


@dataclass(eq=False)
class Like(Condition):
    expression: Expression
    pattern: str | None = None

    def __post_init__(self) -> None:
        if self.pattern is None:
            self.pattern = "%"

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        self.expression.build_sql(sql, statement)
        sql.append_text(" LIKE ")
        sql.append_parameter()

    def collect_parameters(self, statement: Statement) -> None:
        _add_value(statement, self.expression, self.pattern)


@dataclass(eq=False)
class In(Condition):
    expression: Expression
    values: Sequence[Any]

    def __post_init__(self) -> None:
        self.values = list(self.values)
        if not self.values:
            raise EmptyClauseError(f"IN on {self.expression.title} needs at least one value")

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        self.expression.build_sql(sql, statement)
        sql.append_text(" IN (")
        for i in range(len(self.values)):
            if i:
                sql.append_text(", ")
            sql.append_parameter()
        sql.append_text(")")

    def collect_parameters(self, statement: Statement) -> None:
        for value in self.values:
            _add_value(statement, self.expression, value)


@dataclass(eq=False)
class Not(Condition):
    condition: Condition

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        sql.append_text("NOT ")
        grouped = isinstance(self.condition, And) and len(self.condition.conditions) > 1
        if grouped:
            sql.append_text("(")
        self.condition.build_sql(sql, statement)
        if grouped:
            sql.append_text(")")

    def collect_parameters(self, statement: Statement) -> None:
        self.condition.collect_parameters(statement)


@dataclass(eq=False)
class _Junction(Condition):
    conditions: list[Condition] = field(default_factory=list)
    joiner = ""

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        if not self.conditions:
            raise EmptyClauseError(f"{type(self).__name__} has no conditions")
        for i, condition in enumerate(self.conditions):
            if i:
                sql.append_text(self.joiner)
            condition.build_sql(sql, statement)

    def collect_parameters(self, statement: Statement) -> None:
        for condition in self.conditions:
            condition.collect_parameters(statement)


@dataclass(eq=False)
class And(_Junction):
    joiner = " \n   AND "

    def and_(self, *others: Condition) -> And:
        for other in others:
            if isinstance(other, And):
                self.conditions.extend(other.conditions)
            else:
                self.conditions.append(other)
        return self


@dataclass(eq=False)
class Or(_Junction):
    joiner = " \n   OR "

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        sql.append_text("(")
        super().build_sql(sql, statement)
        sql.append_text(")")

    def or_(self, *others: Condition) -> Or:
        for other in others:
            if isinstance(other, Or):
                self.conditions.extend(other.conditions)
            else:
                self.conditions.append(other)
        return self


# -- Factories -----------------------------------------------------------


def equal(expression: Expression, value: Any) -> Equal:
    return Equal(expression, value)


def greater_or_equal(expression: Expression, value: Any) -> GreaterOrEqual:
    return GreaterOrEqual(expression, value)


def is_null(expression: Expression) -> IsNull:
    return IsNull(expression)


def not_null(expression: Expression) -> IsNotNull:
    return IsNotNull(expression)


def like(expression: Expression, pattern: str | None = None) -> Like:
    return Like(expression, pattern)


def in_(expression: Expression, values: Sequence[Any]) -> In:
    return In(expression, values)


def not_(condition: Condition) -> Not:
    return Not(condition)


def and_(*conditions: Condition) -> And:
    return And([]).and_(*conditions)


def or_(*conditions: Condition) -> Or:
    return Or([]).or_(*conditions)


__all__ = [
    "Condition",
    "Equal",
    "GreaterOrEqual",
    "IsNull",
    "IsNotNull",
    "Like",
    "In",
    "Not",
    "And",
    "Or",
    "equal",
    "greater_or_equal",
    "is_null",
    "not_null",
    "like",
    "in_",
    "not_",
    "and_",
    "or_",
]
