"""sqlspine -- a typed relational access layer with schema management.

Manifesto:
    Applications describe their tables once, as Python values, and build
    every statement from those descriptors. SQL text is generated per
    backend by a dialect, values always travel as bound parameters, and
    every executed statement can be logged with its values filled in.
    A schema manager keeps the live database in step with the declared
    tables across processes.

    - **Descriptors, not strings:** Tables, columns and conditions are objects
    - **Dialect-rendered SQL:** One clause-assembly algorithm, per-backend types
    - **One connection per transaction:** Commit or rollback decided once
    - **Additive schema upgrades:** Serialised by a ledger lock row

Architecture::

    Layer 1 -- Foundations
        errors.py        Structured error hierarchy (SqlSpineError, ...)
        logging.py       structlog configuration and helpers
        settings.py      DbSettings (pydantic-settings)
        retry.py         RetryPolicy for the schema lock wait

    Layer 2 -- Model & AST
        types.py         Data type variants (Integer ... Boolean)
        expressions.py   Expressions, aliases, ordering, count/lower
        model.py         Table, Column, PrimaryKey/NotNull/ForeignKey
        conditions.py    Equal, IsNull, Like, In, Not, And, Or, ...

    Layer 3 -- Rendering
        sql_builder.py   SQL text + parameters + SQL-with-values log
        dialect.py       H2, PostgreSQL, MySQL, SQLite dialects
        statements/      Create/Drop/Alter, Select, Insert, Update, Delete

    Layer 4 -- Execution
        connection.py    SQLAlchemy-pooled DB-API connections from a URL
        tx.py            Tx, PreparedStatement, current_tx()
        results.py       SelectResults cursor + tabular result log
        db.py            Db handle and transaction entry point

    Layer 5 -- Schema Management
        migrations/      SchemaManager, SchemaUpdate, schemaHistory ledger

Example::

    from sqlspine import Column, Db, SchemaManager, Table, VarcharType, equal, id_type

    USER_ID = Column("id", id_type()).primary_key()
    USER_EMAIL = Column("email", VarcharType(1024))
    USERS = Table("users", USER_ID, USER_EMAIL)

    db = Db("sqlite:///app.db")
    SchemaManager(db, tables=[USERS]).ensure_current_schema()
    with db.tx() as tx:
        tx.new_insert(USERS).set(USER_ID, "u1").set(USER_EMAIL, "a@b.com").execute()
        emails = (tx.new_select(USER_EMAIL)
                  .where(equal(USER_ID, "u1"))
                  .execute()
                  .get_all(lambda r: r.get(USER_EMAIL)))

Tags:
    sqlspine, sql, dialect, transaction, schema, migrations

Doc-Types:
    package-overview, architecture-map, module-index
"""

from sqlspine.conditions import (
    And,
    Condition,
    Equal,
    GreaterOrEqual,
    In,
    IsNotNull,
    IsNull,
    Like,
    Not,
    Or,
    and_,
    equal,
    greater_or_equal,
    in_,
    is_null,
    like,
    not_,
    not_null,
    or_,
)
from sqlspine.db import Db
from sqlspine.dialect import (
    Dialect,
    H2Dialect,
    MySQLDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    dialect_for_url,
    get_dialect,
    register_dialect,
)
from sqlspine.errors import (
    ColumnNotInTableError,
    ConfigError,
    CoordinationError,
    DatabaseConnectionError,
    DatabaseError,
    DataBindingError,
    EmptyClauseError,
    ErrorCategory,
    ErrorContext,
    ForeignKeyNotFoundError,
    JoinTableNotFoundError,
    LedgerConsistencyError,
    MissingPrimaryKeyError,
    SchemaLockError,
    SchemaModelError,
    SqlSpineError,
    StatementExecutionError,
    TransientError,
    UnsupportedDialectError,
    ValidationError,
)
from sqlspine.expressions import Count, Expression, Lower, count, lower
from sqlspine.logging import configure_logging, get_logger
from sqlspine.migrations import SchemaManager, SchemaUpdate, UpgradeResult
from sqlspine.model import Column, ForeignKey, NotNull, PrimaryKey, Table
from sqlspine.results import SelectResults
from sqlspine.retry import ConstantBackoff, LinearBackoff, RetryPolicy
from sqlspine.settings import DbSettings, get_settings
from sqlspine.sql_builder import SqlBuilder
from sqlspine.statements import (
    AlterTableAddColumn,
    AlterTableAddForeignKey,
    CreateTable,
    Delete,
    DropTable,
    Insert,
    JoinType,
    Select,
    Update,
)
from sqlspine.tx import PreparedStatement, Tx, current_tx
from sqlspine.types import (
    BooleanType,
    ClobType,
    DataType,
    DoubleType,
    FloatType,
    IntegerType,
    JsonType,
    LongType,
    TimestampType,
    VarcharType,
    id_type,
)

__version__ = "0.1.0"

__all__ = [
    # conditions
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
    # db / tx
    "Db",
    "Tx",
    "PreparedStatement",
    "current_tx",
    "SelectResults",
    "SqlBuilder",
    # dialects
    "Dialect",
    "H2Dialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "SQLiteDialect",
    "get_dialect",
    "register_dialect",
    "dialect_for_url",
    # errors
    "SqlSpineError",
    "ErrorCategory",
    "ErrorContext",
    "ValidationError",
    "EmptyClauseError",
    "SchemaModelError",
    "ForeignKeyNotFoundError",
    "MissingPrimaryKeyError",
    "ColumnNotInTableError",
    "JoinTableNotFoundError",
    "DataBindingError",
    "DatabaseError",
    "StatementExecutionError",
    "TransientError",
    "DatabaseConnectionError",
    "CoordinationError",
    "SchemaLockError",
    "LedgerConsistencyError",
    "ConfigError",
    "UnsupportedDialectError",
    # expressions / model
    "Expression",
    "Count",
    "Lower",
    "count",
    "lower",
    "Table",
    "Column",
    "PrimaryKey",
    "NotNull",
    "ForeignKey",
    # statements
    "CreateTable",
    "DropTable",
    "AlterTableAddColumn",
    "AlterTableAddForeignKey",
    "Select",
    "JoinType",
    "Insert",
    "Update",
    "Delete",
    # types
    "DataType",
    "IntegerType",
    "LongType",
    "FloatType",
    "DoubleType",
    "VarcharType",
    "ClobType",
    "JsonType",
    "TimestampType",
    "BooleanType",
    "id_type",
    # schema management
    "SchemaManager",
    "SchemaUpdate",
    "UpgradeResult",
    # infrastructure
    "DbSettings",
    "get_settings",
    "RetryPolicy",
    "ConstantBackoff",
    "LinearBackoff",
    "configure_logging",
    "get_logger",
]
