"""Column data types.

Each data type is a small frozen value describing one SQL scalar type and
knowing how to render its DDL, bind a Python value into a prepared
statement, extract a value from a result row and show a value in a log.

The set of variants is closed: ``IntegerType``, ``LongType``, ``FloatType``,
``DoubleType``, ``VarcharType``, ``ClobType``, ``JsonType``, ``TimestampType``
and ``BooleanType``. Dialects never subclass them; they resolve a logical
type into a configured variant (for instance a ``JsonType`` stored as
``CLOB`` or bound through ``to_json(%s::json)``).

Examples:
    >>> VarcharType(1024).render()
    'VARCHAR(1024)'
    >>> VarcharType(10).log_text("bob")
    "'bob'"
    >>> LongType().log_text(None)
    'null'
"""

from __future__ import annotations

import json
import numbers
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from enum import IntEnum
from typing import Any, ClassVar, Protocol, Sequence

from sqlspine.errors import DataBindingError


class SqlTypeCode(IntEnum):
    """Generic SQL type codes, numbered like the JDBC ``java.sql.Types`` constants."""

    BOOLEAN = 16
    INTEGER = 4
    BIGINT = -5
    REAL = 7
    DOUBLE = 8
    VARCHAR = 12
    CLOB = 2005
    TIMESTAMP = 93
    OTHER = 1111


class ParameterSink(Protocol):
    """Anything a data type can bind a value into (a prepared statement)."""

    def set_parameter(self, position: int, value: Any, type_code: SqlTypeCode) -> None: ...


class DataType(ABC):
    """Common behaviour of the data type variants."""

    right_aligned: ClassVar[bool] = False

    @abstractmethod
    def render(self) -> str:
        """SQL type text used in CREATE TABLE / ALTER TABLE."""

    @abstractmethod
    def sql_type_code(self) -> SqlTypeCode: ...

    @abstractmethod
    def to_db(self, value: Any) -> Any:
        """Convert a non-null Python value to the driver representation."""

    def from_db(self, raw: Any) -> Any:
        """Convert a non-null driver value to the Python representation."""
        return raw

    def placeholder(self, marker: str = "?") -> str:
        """Parameter text emitted into SQL for a value of this type."""
        return marker

    def bind(self, statement: ParameterSink, position: int, value: Any) -> None:
        if value is None:
            statement.set_parameter(position, None, self.sql_type_code())
            return
        statement.set_parameter(position, self.to_db(value), self.sql_type_code())

    def extract(self, row: Sequence[Any], position: int) -> Any:
        raw = row[position]
        if raw is None:
            return None
        try:
            return self.from_db(raw)
        except (TypeError, ValueError) as e:
            raise DataBindingError(
                f"Cannot extract {self.render()} from {type(raw).__name__}",
                value=raw,
                type_name=self.render(),
                cause=e,
            ) from e

    def log_text(self, value: Any) -> str:
        if value is None:
            return "null"
        return self._log_value(value)

    def _log_value(self, value: Any) -> str:
        return str(value)

    def is_right_aligned(self) -> bool:
        return self.right_aligned

    def _unsupported(self, value: Any) -> DataBindingError:
        return DataBindingError(
            f"Unsupported data type {type(value).__name__} for {self.render()}",
            value=value,
            type_name=self.render(),
        )

    def __str__(self) -> str:
        return self.render()


# -- Numeric -------------------------------------------------------------


@dataclass(frozen=True)
class IntegerType(DataType):
    right_aligned: ClassVar[bool] = True

    def render(self) -> str:
        return "INTEGER"

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.INTEGER

    def to_db(self, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise self._unsupported(value)
        return int(value)

    def from_db(self, raw: Any) -> Any:
        return int(raw)


@dataclass(frozen=True)
class LongType(IntegerType):
    def render(self) -> str:
        return "BIGINT"

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.BIGINT


@dataclass(frozen=True)
class FloatType(DataType):
    right_aligned: ClassVar[bool] = True

    def render(self) -> str:
        return "REAL"

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.REAL

    def to_db(self, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise self._unsupported(value)
        return float(value)

    def from_db(self, raw: Any) -> Any:
        return float(raw)


@dataclass(frozen=True)
class DoubleType(FloatType):
    def render(self) -> str:
        return "DOUBLE"

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.DOUBLE


# -- Text ----------------------------------------------------------------


@dataclass(frozen=True)
class VarcharType(DataType):
    length: int = 255

    def __post_init__(self) -> None:
        if self.length <= 0:
            raise ValueError(f"VARCHAR length must be positive, got {self.length}")

    def render(self) -> str:
        return f"VARCHAR({self.length})"

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.VARCHAR

    def to_db(self, value: Any) -> Any:
        return value if isinstance(value, str) else str(value)

    def from_db(self, raw: Any) -> Any:
        return raw if isinstance(raw, str) else str(raw)

    def _log_value(self, value: Any) -> str:
        return f"'{value}'"


@dataclass(frozen=True)
class ClobType(DataType):
    sql: str = "CLOB"

    def render(self) -> str:
        return self.sql

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.CLOB

    def to_db(self, value: Any) -> Any:
        if not isinstance(value, str):
            raise self._unsupported(value)
        return value

    def from_db(self, raw: Any) -> Any:
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        if hasattr(raw, "read"):
            return raw.read()
        return str(raw)

    def _log_value(self, value: Any) -> str:
        return f"'{value}'"


@dataclass(frozen=True)
class JsonType(DataType):
    """JSON document held as text on the Python side.

    ``sql`` is the column type and ``placeholder_template`` wraps the
    parameter marker (``"{}"`` leaves it bare).
    """

    sql: str = "JSON"
    placeholder_template: str = "{}"

    def render(self) -> str:
        return self.sql

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.OTHER

    def placeholder(self, marker: str = "?") -> str:
        return self.placeholder_template.format(marker)

    def to_db(self, value: Any) -> Any:
        if isinstance(value, str):
            return value
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        raise self._unsupported(value)

    def from_db(self, raw: Any) -> Any:
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        if isinstance(raw, str):
            return raw
        # drivers with native JSON support hand back decoded documents
        return json.dumps(raw)

    def _log_value(self, value: Any) -> str:
        return f"'{value if isinstance(value, str) else json.dumps(value)}'"


# -- Other ---------------------------------------------------------------


@dataclass(frozen=True)
class TimestampType(DataType):
    """Timestamp without time zone.

    With ``iso_text`` the value travels as ISO-8601 text, for engines that
    have no native timestamp storage.
    """

    iso_text: bool = False

    def render(self) -> str:
        return "TIMESTAMP"

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.TIMESTAMP

    def to_db(self, value: Any) -> Any:
        if isinstance(value, datetime):
            converted = value
        elif isinstance(value, date):
            converted = datetime(value.year, value.month, value.day)
        else:
            raise self._unsupported(value)
        return converted.isoformat(sep=" ") if self.iso_text else converted

    def from_db(self, raw: Any) -> Any:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, date):
            return datetime(raw.year, raw.month, raw.day)
        if isinstance(raw, bytes):
            raw = raw.decode("ascii")
        return datetime.fromisoformat(str(raw))

    def _log_value(self, value: Any) -> str:
        return value.isoformat() if isinstance(value, (datetime, date)) else str(value)


@dataclass(frozen=True)
class BooleanType(DataType):
    def render(self) -> str:
        return "BOOLEAN"

    def sql_type_code(self) -> SqlTypeCode:
        return SqlTypeCode.BOOLEAN

    def to_db(self, value: Any) -> Any:
        if not isinstance(value, bool):
            raise self._unsupported(value)
        return value

    def from_db(self, raw: Any) -> Any:
        return bool(raw)

    def _log_value(self, value: Any) -> str:
        return "true" if value else "false"


def id_type() -> VarcharType:
    """Type used for identifier columns."""
    return VarcharType(1024)


__all__ = [
    "SqlTypeCode",
    "ParameterSink",
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
]
