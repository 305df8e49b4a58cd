"""SQL text accumulator.

A ``SqlBuilder`` is filled by a dialect while it renders one statement. It
keeps two texts in step: the SQL sent to the driver, with parameter
placeholders, and a log rendition where every placeholder is replaced by
the human-readable value bound to it.

Parameters are collected by the statement before rendering starts;
``append_parameter`` consumes them in order, so the Nth placeholder always
carries the Nth collected value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlspine.errors import SqlSpineError
from sqlspine.types import DataType

if TYPE_CHECKING:
    from sqlspine.dialect import Dialect
    from sqlspine.model import Column


@dataclass
class Parameter:
    """A value to bind, the type that binds it and the column it belongs to."""

    value: Any
    type: DataType
    column: Column | None = None


class SqlBuilder:
    def __init__(self, dialect: Dialect, parameters: list[Parameter] | None = None):
        self.dialect = dialect
        self.parameters: list[Parameter] = parameters if parameters is not None else []
        self._sql: list[str] = []
        self._log: list[str] = []
        self._next_parameter = 0

    def append_text(self, text: str) -> SqlBuilder:
        self._sql.append(text)
        self._log.append(text)
        return self

    def append_parameter(self) -> SqlBuilder:
        if self._next_parameter >= len(self.parameters):
            raise SqlSpineError(
                f"Placeholder {self._next_parameter + 1} has no collected parameter"
            )
        parameter = self.parameters[self._next_parameter]
        self._next_parameter += 1
        data_type = self.dialect.resolve_type(parameter.type)
        self._sql.append(data_type.placeholder(self.dialect.parameter_marker))
        self._log.append(data_type.log_text(parameter.value))
        return self

    def verify_parameters_consumed(self) -> None:
        if self._next_parameter != len(self.parameters):
            raise SqlSpineError(
                f"Rendered {self._next_parameter} placeholders for {len(self.parameters)} parameters:\n"
                f"{self.sql}"
            )

    @property
    def sql(self) -> str:
        return "".join(self._sql)

    @property
    def sql_log(self) -> str:
        return "".join(self._log)

    def debug_info(self) -> str:
        return f"sql used in statement:\n{self.sql}\nsql with parameters:\n{self.sql_log}\n"

    def __str__(self) -> str:
        return self.sql


__all__ = ["Parameter", "SqlBuilder"]
