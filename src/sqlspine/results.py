"""Select result cursor and tabular result logging.

``SelectResults`` is forward-only and single-pass: rows are fetched one at
a time and values are decoded only when asked for, by the data type of the
selected expression. Every value read is also recorded by a
``SelectLogger`` which, once the rows are consumed, writes them to the
transaction's SQL log as a text table::

    +id--+email----+
    |'u1'|'a@b.com'|
    |'u2'|'c@d.com'|
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Callable, Iterator, TypeVar

from sqlspine.errors import DataBindingError, SchemaModelError
from sqlspine.expressions import Expression
from sqlspine.model import Column

if TYPE_CHECKING:
    from sqlspine.statements.select import Select
    from sqlspine.tx import PreparedStatement

T = TypeVar("T")

MAX_COLUMN_LENGTH = 20

_WHITESPACE = re.compile(r"\s+")


class SelectLogger:
    """Collects the logged text of fetched values and renders them as a table."""

    def __init__(self, select: Select):
        self.select = select
        self.titles = [f.title for f in select.fields]
        self.right_aligned = [
            f.expression.data_type is not None and f.expression.data_type.is_right_aligned()
            for f in select.fields
        ]
        self.rows: list[list[str]] = []
        self._current: list[str | None] | None = None

    def next_row(self, has_next: bool) -> None:
        if has_next:
            self._flush()
            self._current = [None] * len(self.titles)

    def set_value(self, index: int, text: str) -> None:
        if self._current is not None:
            self._current[index] = text

    def _flush(self) -> None:
        if self._current is not None:
            # values never fetched show as ?
            self.rows.append([text if text is not None else "?" for text in self._current])
            self._current = None

    def render(self) -> str:
        self._flush()
        widths = [min(len(title), MAX_COLUMN_LENGTH) for title in self.titles]
        cells = [[self._truncate(text) for text in row] for row in self.rows]
        for row in cells:
            for i, text in enumerate(row):
                widths[i] = max(widths[i], len(text))

        def line(values: list[str], edge: str, fill: str) -> str:
            parts = []
            for i, value in enumerate(values):
                if self.right_aligned[i]:
                    parts.append(value.rjust(widths[i], fill))
                else:
                    parts.append(value.ljust(widths[i], fill))
            return edge + edge.join(parts) + edge

        lines = [line([self._truncate(t) for t in self.titles], "+", "-")]
        lines.extend(line(row, "|", " ") for row in cells)
        return "\n".join(lines)

    def log_rows(self) -> None:
        text = self.render()
        self.rows = []
        self.select.tx.log_sql(text)

    @staticmethod
    def _truncate(text: str) -> str:
        text = _WHITESPACE.sub(" ", text)
        if len(text) > MAX_COLUMN_LENGTH:
            return text[: MAX_COLUMN_LENGTH - 3] + "..."
        return text


class SelectResults:
    """Forward-only cursor over the rows of an executed select."""

    def __init__(self, select: Select, prepared: PreparedStatement):
        self.select = select
        self.prepared = prepared
        self.sql = prepared.sql
        self.logger = SelectLogger(select)
        self._row: tuple[Any, ...] | None = None
        self._closed = False

    # -- Cursor --------------------------------------------------------------

    def next(self) -> bool:
        """Advance to the next row; False once the rows are exhausted."""
        if self._closed:
            return False
        row = self.prepared.fetchone()
        has_next = row is not None
        self.logger.next_row(has_next)
        if has_next:
            self._row = tuple(row)
        else:
            self._row = None
            self.close()
        return has_next

    def get(self, expression: Expression | str) -> Any:
        """Decode the value of a selected expression (or alias) in the current row."""
        if self._row is None:
            raise SchemaModelError("No current row, call next() first")
        index = self.select.field_index(expression)
        if index is None:
            title = expression if isinstance(expression, str) else expression.title
            raise SchemaModelError(
                f"{title} is not a field of this select\n{self.sql.debug_info()}"
            )
        field = self.select.fields[index]
        data_type = field.expression.data_type
        if data_type is None:
            raise SchemaModelError(f"Field {field.title} has no data type")
        data_type = self.select.dialect.resolve_type(data_type)
        try:
            value = data_type.extract(self._row, index)
        except DataBindingError as e:
            column = field.expression.qualified_name if isinstance(field.expression, Column) else field.title
            raise e.with_context(column=column, sql=self.sql.sql)
        self.logger.set_value(index, data_type.log_text(value))
        return value

    def values(self) -> list[Any]:
        """All field values of the current row, in field order."""
        return [self.get(f.expression) for f in self.select.fields]

    def __iter__(self) -> Iterator[SelectResults]:
        while self.next():
            yield self

    # -- Consumers -----------------------------------------------------------

    def get_all(self, mapper: Callable[[SelectResults], T]) -> list[T]:
        rows = [mapper(self) for _ in self]
        self.logger.log_rows()
        return rows

    def get_first(self, mapper: Callable[[SelectResults], T]) -> T | None:
        """Map the first row, or return None when there is none."""
        result = mapper(self) if self.next() else None
        self.logger.log_rows()
        self.close()
        return result

    def for_each(self, action: Callable[[SelectResults], Any]) -> None:
        for _ in self:
            action(self)
        self.logger.log_rows()

    def log_all_rows(self) -> int:
        """Fetch every field of every row, log the table and return the row count."""
        return len(self.get_all(lambda results: results.values()))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.prepared.close()

    def __enter__(self) -> SelectResults:
        return self

    def __exit__(self, *args) -> None:
        self.close()


__all__ = ["MAX_COLUMN_LENGTH", "SelectLogger", "SelectResults"]
