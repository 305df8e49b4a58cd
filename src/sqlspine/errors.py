"""
Structured error types for sqlspine.

Every failure the access layer raises is a ``SqlSpineError`` carrying a
category, a retryable flag, structured context and (where one exists) the
underlying driver exception as its cause.

Manifesto:
    - **Typed Error Hierarchy:** Caller, execution and coordination failures
      are different types and never masquerade as each other
    - **Rich Context:** Errors carry the SQL text, the bound values, the
      column being bound and the process holding a lock
    - **Error Chaining:** Driver exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       SqlSpineError                              │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError          DatabaseError       CoordinationError │
        │  (caller errors)          (execution)         (schema lock)     │
        │       │                        │                    │           │
        │  EmptyClauseError     StatementExecutionError  SchemaLockError  │
        │  SchemaModelError                          LedgerConsistency-   │
        │    ForeignKeyNotFound                           Error           │
        │    MissingPrimaryKey  TransientError                            │
        │    ColumnNotInTable     DatabaseConnectionError                 │
        │    JoinTableNotFound                                            │
        │  DataBindingError     ConfigError                               │
        │                         UnsupportedDialectError                 │
        └─────────────────────────────────────────────────────────────────┘

Features:
    - **ErrorCategory enum:** Classification for logging and alerting
    - **ErrorContext dataclass:** Table, column, SQL and process metadata
    - **Caller errors:** Raised before any SQL text reaches the database
    - **Execution errors:** Wrap driver failures with the attempted SQL
    - **Coordination errors:** Schema lock and ledger invariants

Examples:
    >>> error = EmptyClauseError("select has no fields")
    >>> error.retryable
    False
    >>> error.with_context(table="users").context.table
    'users'

Guardrails:
    ❌ DON'T: Catch driver exceptions and re-raise a bare Exception
    ✅ DO: Wrap them in StatementExecutionError with cause=

    ❌ DON'T: Retry caller errors, they will fail again
    ✅ DO: Fix the statement; only transient errors are retryable

Tags:
    error-handling, exception-hierarchy, sql, schema-lock, sqlspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"
    DATABASE = "DATABASE"
    COORDINATION = "COORDINATION"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover the things an access-layer failure is usually about;
    anything else lands in ``metadata``.
    """

    table: str | None = None
    column: str | None = None
    sql: str | None = None
    sql_log: str | None = None
    process: str | None = None
    tx: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "column", "sql", "sql_log", "process", "tx"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SqlSpineError(Exception):
    """
    Base exception for all sqlspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that call
    sites only pass a message and, where there is one, a ``cause``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SqlSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise EmptyClauseError("no columns").with_context(table="users")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CALLER ERRORS (detected before any SQL is sent)
# =============================================================================


class ValidationError(SqlSpineError):
    """A statement or schema model was built incorrectly."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class EmptyClauseError(ValidationError):
    """A required field, table, column, set or value list is empty."""


class SchemaModelError(ValidationError):
    """The Table/Column/Constraint graph does not support the request."""


class ForeignKeyNotFoundError(SchemaModelError):
    """The column passed to a join carries no foreign key."""

    def __init__(self, column: str, **kwargs: Any):
        self.column = column
        super().__init__(f"No foreign key found on column {column}", **kwargs)


class MissingPrimaryKeyError(SchemaModelError):
    """A foreign key references a table that has no primary key."""

    def __init__(self, table: str, **kwargs: Any):
        self.table = table
        super().__init__(f"Table {table} has no primary key", **kwargs)


class ColumnNotInTableError(SchemaModelError):
    """A column was used against a table it does not belong to."""


class JoinTableNotFoundError(SchemaModelError):
    """The table a join starts from is not part of the select."""


class DataBindingError(ValidationError):
    """
    A value could not be bound to, or extracted from, a statement.

    Carries the offending ``value`` and the data type name; statements add
    the column through :meth:`with_context` before the error propagates.
    """

    def __init__(self, message: str, *, value: Any = None, type_name: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.value = value
        self.type_name = type_name

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["value"] = repr(self.value)
        if self.type_name:
            result["type"] = self.type_name
        return result


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class DatabaseError(SqlSpineError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class StatementExecutionError(DatabaseError):
    """
    The driver rejected a statement.

    ``sql`` is the text sent to the driver and ``sql_log`` the same text with
    the bound values filled in, for diagnosis.
    """

    def __init__(self, message: str, *, sql: str | None = None, sql_log: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.sql = sql
        self.sql_log = sql_log
        self.context.sql = sql
        self.context.sql_log = sql_log


class TransientError(SqlSpineError):
    """Temporary error that may succeed on retry."""

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class DatabaseConnectionError(TransientError):
    """A connection could not be acquired from the pool."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# COORDINATION ERRORS (schema lock and ledger)
# =============================================================================


class CoordinationError(SqlSpineError):
    """Cross-process schema coordination failed."""

    default_category = ErrorCategory.COORDINATION
    default_retryable = False


class SchemaLockError(CoordinationError):
    """The schema upgrade lock could not be acquired within the attempt budget."""

    def __init__(self, message: str = "could not acquire schema upgrade lock", **kwargs: Any):
        super().__init__(message, **kwargs)


class LedgerConsistencyError(CoordinationError):
    """An update against the schema ledger affected an unexpected number of rows."""

    def __init__(self, message: str, *, affected: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.affected = affected


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(SqlSpineError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class UnsupportedDialectError(ConfigError):
    """No dialect is registered for a connection URL."""

    def __init__(self, url: str, **kwargs: Any):
        self.url = url
        super().__init__(f"Unsupported database: {url}", **kwargs)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, SqlSpineError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, SqlSpineError):
        return error.category
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SqlSpineError",
    # Caller
    "ValidationError",
    "EmptyClauseError",
    "SchemaModelError",
    "ForeignKeyNotFoundError",
    "MissingPrimaryKeyError",
    "ColumnNotInTableError",
    "JoinTableNotFoundError",
    "DataBindingError",
    # Execution
    "DatabaseError",
    "StatementExecutionError",
    "TransientError",
    "DatabaseConnectionError",
    # Coordination
    "CoordinationError",
    "SchemaLockError",
    "LedgerConsistencyError",
    # Config
    "ConfigError",
    "UnsupportedDialectError",
    # Helpers
    "is_retryable",
    "categorize_error",
]
