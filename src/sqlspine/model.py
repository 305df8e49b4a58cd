"""Schema model: tables, columns and column constraints.

Tables are declared once, usually as module-level constants, and describe
the structure the application expects the database to have. Statements,
conditions and the schema manager all work from these descriptors.

Example:
    >>> USER_ID = Column("id", id_type()).primary_key()
    >>> USER_EMAIL = Column("email", VarcharType(1024)).not_null()
    >>> USERS = Table("users", USER_ID, USER_EMAIL)
    >>> USERS.primary_key_column is USER_ID
    True
    >>> USER_EMAIL.qualified_name
    'users.email'

A column belongs to exactly one table; the table sets the back-reference
and the zero-based index when the column is added. Columns compare by
identity, so two tables may both have an ``id`` column.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Union

from sqlspine.errors import ColumnNotInTableError, SchemaModelError
from sqlspine.expressions import Expression
from sqlspine.types import DataType

if TYPE_CHECKING:
    from sqlspine.sql_builder import SqlBuilder
    from sqlspine.statements.base import Statement


# -- Constraints -----------------------------------------------------------


@dataclass(frozen=True)
class PrimaryKey:
    pass


@dataclass(frozen=True)
class NotNull:
    pass


@dataclass(frozen=True, eq=False)
class ForeignKey:
    """``from_column`` references ``to_column`` (usually a primary key)."""

    from_column: Column
    to_column: Column

    def __repr__(self) -> str:
        return f"ForeignKey({self.from_column.qualified_name} -> {self.to_column.qualified_name})"


Constraint = Union[PrimaryKey, NotNull, ForeignKey]


# -- Columns and tables --------------------------------------------------------


class Column(Expression):
    def __init__(self, name: str, type: DataType | None = None, *constraints: Constraint):
        self.name = name
        self.type = type
        # as declared; `type` holds the variant resolved by the last dialect
        self.declared_type = type
        self.constraints: list[Constraint] = list(constraints)
        self.table: Table | None = None
        self.index: int | None = None

    # fluent constraint declaration

    def primary_key(self) -> Column:
        if self.is_primary_key:
            raise SchemaModelError(f"Column {self.name} already has a primary key")
        self.constraints.append(PrimaryKey())
        return self

    def not_null(self) -> Column:
        if not any(isinstance(c, NotNull) for c in self.constraints):
            self.constraints.append(NotNull())
        return self

    def foreign_key(self, to_column: Column) -> Column:
        self.constraints.append(ForeignKey(self, to_column))
        return self

    @property
    def is_primary_key(self) -> bool:
        return any(isinstance(c, PrimaryKey) for c in self.constraints)

    @property
    def foreign_keys(self) -> list[ForeignKey]:
        return [c for c in self.constraints if isinstance(c, ForeignKey)]

    def find_foreign_key(self) -> ForeignKey | None:
        keys = self.foreign_keys
        return keys[0] if keys else None

    def remove_constraint(self, constraint: Constraint) -> None:
        self.constraints = [c for c in self.constraints if c is not constraint]

    def add_constraint(self, constraint: Constraint) -> None:
        if isinstance(constraint, PrimaryKey) and self.is_primary_key:
            raise SchemaModelError(f"Column {self.name} already has a primary key")
        self.constraints.append(constraint)

    @property
    def qualified_name(self) -> str:
        return f"{self.table.name}.{self.name}" if self.table else self.name

    def require_table(self) -> Table:
        if self.table is None:
            raise ColumnNotInTableError(f"Column {self.name} is not added to a table")
        return self.table

    # expression interface

    def build_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        sql.append_text(statement.qualified_column_name(self))

    @property
    def data_type(self) -> DataType | None:
        return self.type

    def columns(self) -> Iterator[Column]:
        yield self

    @property
    def title(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Column({self.qualified_name!r}, {self.type})"


class Table:
    def __init__(self, name: str, *columns: Column):
        self.name = name
        self.columns: dict[str, Column] = {}
        for column in columns:
            self.add_column(column)

    def add_column(self, column: Column) -> Column:
        if column.table is not None and column.table is not self:
            raise ColumnNotInTableError(
                f"Column {column.name} already belongs to table {column.table.name}"
            )
        if column.name in self.columns:
            raise SchemaModelError(f"Duplicate column {column.name} in table {self.name}")
        column.table = self
        column.index = len(self.columns)
        self.columns[column.name] = column
        return column

    def get_column(self, name: str) -> Column | None:
        column = self.columns.get(name)
        if column is None:
            lowered = name.lower()
            column = next((c for c in self.columns.values() if c.name.lower() == lowered), None)
        return column

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    @property
    def primary_key_column(self) -> Column | None:
        return next((c for c in self.columns.values() if c.is_primary_key), None)

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns.values())

    def __repr__(self) -> str:
        return f"Table({self.name!r}, columns={self.column_names})"


__all__ = [
    "PrimaryKey",
    "NotNull",
    "ForeignKey",
    "Constraint",
    "Column",
    "Table",
]
