"""SQL dialects: vendor-specific rendering of statements and types.

A ``Dialect`` turns statement objects into SQL text. The clause-assembly
algorithm (CREATE/ALTER/DROP/SELECT/INSERT/UPDATE/DELETE) lives once in the
base class; each backend only overrides type rendering, the parameter
marker its DB-API driver expects, JSON/CLOB specifics and the queries used
to introspect the live schema.

Manifesto:
    Statements must render byte-identical SQL for the same model on the
    same backend, and the same model must work on every backend.

    - **One algorithm:** Clause assembly is shared, never duplicated
    - **Types resolved per backend:** JSON/CLOB/TIMESTAMP lowered by the dialect
    - **Driver paramstyle:** ``?`` for qmark drivers, ``%s`` for format drivers
    - **Registry:** Dialect chosen from the connection URL

Architecture::

    Statement ──build_sql()──▶ Dialect.build_<kind>_sql(SqlBuilder, stmt)
                                     │
                 ┌──────────┬────────┴─────┬──────────────┐
                 ▼          ▼              ▼              ▼
            ┌────────┐ ┌────────────┐ ┌─────────┐ ┌──────────┐
            │   H2   │ │ PostgreSQL │ │  MySQL  │ │  SQLite  │
            │ ?      │ │ %s         │ │ %s      │ │ ?        │
            │ JSON → │ │ to_json(   │ │ CLOB →  │ │ JSON →   │
            │  CLOB  │ │  %s::json) │ │ LONGTEXT│ │  TEXT    │
            └────────┘ └────────────┘ └─────────┘ └──────────┘

Features:
    - **H2Dialect:** JSON stored as CLOB
    - **PostgreSQLDialect:** Native JSON bound via ``to_json(%s::json)``,
      CLOB as TEXT, DOUBLE as DOUBLE PRECISION
    - **MySQLDialect:** CLOB as LONGTEXT, TIMESTAMP as DATETIME(6)
    - **SQLiteDialect:** Embedded/test backend, timestamps as ISO text
    - **dialect_for_url():** ``jdbc:<name>:...`` or ``<name>[+driver]://...``

Examples:
    >>> from sqlspine.dialect import dialect_for_url
    >>> dialect_for_url("jdbc:postgresql://localhost/app").name
    'postgresql'
    >>> dialect_for_url("sqlite:///app.db").parameter_marker
    '?'

Guardrails:
    ❌ DON'T: Subclass a data type to change how one backend stores it
    ✅ DO: Override ``resolve_type()`` / ``type_sql()`` in the dialect

    ❌ DON'T: Copy the SELECT assembly into a backend dialect
    ✅ DO: Override the smallest hook (``build_limit_sql``, ``type_sql``)

Tags:
    dialect, sql-generation, portability, database, sqlspine

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlspine.errors import EmptyClauseError, SchemaModelError, SqlSpineError, UnsupportedDialectError
from sqlspine.model import Column, Constraint, ForeignKey, NotNull, PrimaryKey, Table
from sqlspine.types import (
    ClobType,
    DataType,
    DoubleType,
    JsonType,
    TimestampType,
)

if TYPE_CHECKING:
    from sqlspine.sql_builder import SqlBuilder
    from sqlspine.statements.base import Statement
    from sqlspine.statements.ddl import (
        AlterTableAddColumn,
        AlterTableAddForeignKey,
        CreateTable,
        DropTable,
    )
    from sqlspine.statements.dml import Delete, Insert, Update
    from sqlspine.statements.select import Select, TableWithJoins


class Dialect:
    """Shared clause assembly; the defaults follow standard SQL."""

    name = "generic"
    parameter_marker = "?"
    supports_alter_table_add_foreign_key = True
    supports_drop_cascade = True
    current_schema_sql = "CURRENT_SCHEMA"
    # position of the column name in a row returned by columns_query()
    column_name_position = 0

    # -- Types ---------------------------------------------------------------

    def resolve_type(self, data_type: DataType) -> DataType:
        """Return the variant of ``data_type`` this backend binds and stores."""
        return data_type

    def type_sql(self, data_type: DataType) -> str:
        return self.resolve_type(data_type).render()

    def initialize_table(self, table: Table) -> Table:
        for column in table:
            self.initialize_column(column)
        return table

    def initialize_column(self, column: Column) -> None:
        if column.declared_type is not None:
            column.type = self.resolve_type(column.declared_type)

    def constraint_sql(self, constraint: Constraint) -> str:
        match constraint:
            case PrimaryKey():
                return " PRIMARY KEY"
            case NotNull():
                return " NOT NULL"
            case ForeignKey(to_column=to_column):
                return f" REFERENCES {to_column.require_table().name}({to_column.name})"
        raise SchemaModelError(f"Unknown constraint {constraint!r}")

    def column_definition_sql(self, column: Column) -> str:
        if column.type is None:
            raise SchemaModelError(f"Column {column.qualified_name} has no data type")
        text = f"{column.name} {self.type_sql(column.type)}"
        for constraint in column.constraints:
            text += self.constraint_sql(constraint)
        return text

    # -- DDL -----------------------------------------------------------------

    def build_create_table_sql(self, sql: SqlBuilder, statement: CreateTable) -> None:
        table = statement.table
        if not table.columns:
            raise EmptyClauseError(f"Table {table.name} has no columns")
        definitions = [self.column_definition_sql(column) for column in table]
        sql.append_text(f"CREATE TABLE {table.name} (")
        sql.append_text(",".join(f"\n  {definition}" for definition in definitions))
        sql.append_text("\n);")

    def build_drop_table_sql(self, sql: SqlBuilder, statement: DropTable) -> None:
        sql.append_text("DROP TABLE ")
        if statement.if_exists:
            sql.append_text("IF EXISTS ")
        sql.append_text(statement.table.name)
        if statement.cascade and self.supports_drop_cascade:
            sql.append_text(" CASCADE")
        sql.append_text(";")

    def build_alter_table_add_column_sql(self, sql: SqlBuilder, statement: AlterTableAddColumn) -> None:
        if statement.column is None:
            raise EmptyClauseError(f"No column to add to table {statement.table.name}")
        definition = self.column_definition_sql(statement.column)
        sql.append_text(f"ALTER TABLE {statement.table.name} ADD COLUMN {definition};")

    def build_alter_table_add_foreign_key_sql(self, sql: SqlBuilder, statement: AlterTableAddForeignKey) -> None:
        if not self.supports_alter_table_add_foreign_key:
            raise SqlSpineError(f"{self.name} cannot add a foreign key to an existing table")
        from_column = statement.foreign_key.from_column
        to_column = statement.foreign_key.to_column
        sql.append_text(
            f"ALTER TABLE {from_column.require_table().name} "
            f"ADD FOREIGN KEY ({from_column.name}) "
            f"REFERENCES {to_column.require_table().name}({to_column.name});"
        )

    # -- DML -----------------------------------------------------------------

    def build_select_sql(self, sql: SqlBuilder, select: Select) -> None:
        if not select.fields:
            raise EmptyClauseError("Select has no fields")
        if not select.froms:
            raise EmptyClauseError("Select has no tables")
        sql.append_text("SELECT ")
        for i, field in enumerate(select.fields):
            if i:
                sql.append_text(", ")
            field.build_sql(sql, select)
        sql.append_text(" \nFROM ")
        for i, from_ in enumerate(select.froms):
            if i:
                sql.append_text(", \n     ")
            self.build_from_sql(sql, select, from_)
        self.build_where_sql(sql, select)
        if select.order_by:
            sql.append_text(" \nORDER BY ")
            for i, order in enumerate(select.order_by):
                if i:
                    sql.append_text(", ")
                order.build_sql(sql, select)
        if select.limit_count is not None:
            self.build_limit_sql(sql, select.limit_count)
        sql.append_text(";")

    def build_from_sql(self, sql: SqlBuilder, select: Select, from_: TableWithJoins) -> None:
        sql.append_text(self.table_sql(select, from_.table))
        for join in from_.joins:
            sql.append_text(f" \n  {join.type.value} JOIN ")
            sql.append_text(self.table_sql(select, join.table))
            sql.append_text(" ON ")
            join.condition.build_sql(sql, select)

    def build_limit_sql(self, sql: SqlBuilder, limit: int) -> None:
        sql.append_text(f" \nLIMIT {limit}")

    def build_insert_sql(self, sql: SqlBuilder, insert: Insert) -> None:
        if not insert.values:
            raise EmptyClauseError(f"Insert into {insert.table.name} sets no columns")
        names = ", ".join(column.name for column in insert.values)
        sql.append_text(f"INSERT INTO {insert.table.name} ({names}) \nVALUES (")
        for i in range(len(insert.values)):
            if i:
                sql.append_text(", ")
            sql.append_parameter()
        sql.append_text(");")

    def build_update_sql(self, sql: SqlBuilder, update: Update) -> None:
        if not update.sets:
            raise EmptyClauseError(f"Update of {update.table.name} sets no columns")
        sql.append_text(f"UPDATE {self.table_sql(update, update.table)} \nSET ")
        for i, update_set in enumerate(update.sets):
            if i:
                sql.append_text(", \n    ")
            sql.append_text(f"{update_set.column.name} = ")
            sql.append_parameter()
        self.build_where_sql(sql, update)
        sql.append_text(";")

    def build_delete_sql(self, sql: SqlBuilder, delete: Delete) -> None:
        sql.append_text(f"DELETE FROM {self.table_sql(delete, delete.table)}")
        self.build_where_sql(sql, delete)
        sql.append_text(";")

    def build_where_sql(self, sql: SqlBuilder, statement: Statement) -> None:
        if statement.where_condition is not None:
            sql.append_text(" \nWHERE ")
            statement.where_condition.build_sql(sql, statement)

    def table_sql(self, statement: Statement, table: Table) -> str:
        alias = statement.get_alias(table)
        return f"{table.name} AS {alias}" if alias else table.name

    # -- Introspection -------------------------------------------------------

    def tables_query(self) -> tuple[str, tuple[Any, ...]]:
        return (
            "SELECT table_name FROM information_schema.tables "
            f"WHERE table_schema = {self.current_schema_sql} AND table_type = 'BASE TABLE'",
            (),
        )

    def columns_query(self, table_name: str) -> tuple[str, tuple[Any, ...]]:
        return (
            "SELECT column_name FROM information_schema.columns "
            f"WHERE table_schema = {self.current_schema_sql} "
            f"AND table_name = {self.parameter_marker} ORDER BY ordinal_position",
            (table_name,),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class H2Dialect(Dialect):
    name = "h2"
    current_schema_sql = "SCHEMA()"

    def resolve_type(self, data_type: DataType) -> DataType:
        match data_type:
            case JsonType():
                return JsonType(sql="CLOB")
        return data_type

    def tables_query(self) -> tuple[str, tuple[Any, ...]]:
        return (
            "SELECT table_name FROM information_schema.tables "
            f"WHERE table_schema = {self.current_schema_sql}",
            (),
        )


class PostgreSQLDialect(Dialect):
    name = "postgresql"
    parameter_marker = "%s"
    current_schema_sql = "current_schema()"

    def resolve_type(self, data_type: DataType) -> DataType:
        match data_type:
            case JsonType():
                return JsonType(placeholder_template="to_json({}::json)")
            case ClobType():
                return ClobType(sql="TEXT")
        return data_type

    def type_sql(self, data_type: DataType) -> str:
        match data_type:
            case DoubleType():
                return "DOUBLE PRECISION"
        return super().type_sql(data_type)


class MySQLDialect(Dialect):
    name = "mysql"
    parameter_marker = "%s"
    current_schema_sql = "DATABASE()"

    def resolve_type(self, data_type: DataType) -> DataType:
        match data_type:
            case ClobType():
                return ClobType(sql="LONGTEXT")
        return data_type

    def type_sql(self, data_type: DataType) -> str:
        match data_type:
            case TimestampType():
                return "DATETIME(6)"
        return super().type_sql(data_type)


class SQLiteDialect(Dialect):
    """SQLite, for embedded use and tests.

    SQLite accepts foreign keys that reference tables created later, but
    cannot add a foreign key to an existing table, so nothing is deferred.
    """

    name = "sqlite"
    supports_alter_table_add_foreign_key = False
    supports_drop_cascade = False
    column_name_position = 1

    def resolve_type(self, data_type: DataType) -> DataType:
        match data_type:
            case JsonType():
                return JsonType(sql="TEXT")
            case ClobType():
                return ClobType(sql="TEXT")
            case TimestampType():
                return TimestampType(iso_text=True)
        return data_type

    def tables_query(self) -> tuple[str, tuple[Any, ...]]:
        return (
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
            (),
        )

    def columns_query(self, table_name: str) -> tuple[str, tuple[Any, ...]]:
        quoted = table_name.replace('"', '""')
        return f'PRAGMA table_info("{quoted}")', ()


# =========================================================================
# Registry / Factory
# =========================================================================

# Dialects are stateless, one instance each
_DIALECTS: dict[str, Dialect] = {
    "h2": H2Dialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),
    "mysql": MySQLDialect(),
    "mariadb": MySQLDialect(),
    "sqlite": SQLiteDialect(),
}


def get_dialect(name: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        UnsupportedDialectError: If ``name`` is not registered.
    """
    key = name.lower()
    if key not in _DIALECTS:
        raise UnsupportedDialectError(name).with_context(
            supported=sorted(set(_DIALECTS) - {"postgres", "mariadb"})
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lookup key is lower-cased)."""
    _DIALECTS[name.lower()] = dialect


def dialect_name_from_url(url: str) -> str:
    """Extract the backend name from a connection URL.

    ``jdbc:<name>:...`` yields ``<name>``; ``<name>[+driver]://...`` yields
    ``<name>``; the bare in-memory forms yield ``sqlite``.
    """
    text = url.strip()
    if text.lower().startswith("jdbc:"):
        return text[len("jdbc:"):].split(":", 1)[0].lower()
    if text in ("memory", ":memory:"):
        return "sqlite"
    if ":" not in text:
        return ""
    return text.split(":", 1)[0].split("+", 1)[0].lower()


def dialect_for_url(url: str) -> Dialect:
    name = dialect_name_from_url(url)
    if name not in _DIALECTS:
        raise UnsupportedDialectError(url)
    return _DIALECTS[name]


__all__ = [
    "Dialect",
    "H2Dialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "SQLiteDialect",
    "get_dialect",
    "register_dialect",
    "dialect_name_from_url",
    "dialect_for_url",
]
