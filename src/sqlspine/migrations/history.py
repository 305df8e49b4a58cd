"""The ``schemaHistory`` ledger table.

One row with ``id = type = 'lock'`` is the schema upgrade lock; every other
row records an applied schema update (``type = 'update'``).
"""

from __future__ import annotations

from sqlspine.model import Column, Table
from sqlspine.types import TimestampType, VarcharType

TABLE_NAME = "schemaHistory"

ID_LOCK = "lock"
TYPE_LOCK = "lock"
TYPE_UPDATE = "update"


class SchemaHistoryTable(Table):
    """A fresh ledger table descriptor; each schema manager owns its own."""

    def __init__(self) -> None:
        self.id = Column("id", VarcharType(1024)).primary_key()
        self.description = Column("description", VarcharType(1024))
        self.time = Column("time", TimestampType())
        self.process = Column("process", VarcharType(255))
        self.type = Column("type", VarcharType(1024))
        super().__init__(
            TABLE_NAME,
            self.id,
            self.description,
            self.time,
            self.process,
            self.type,
        )


__all__ = ["TABLE_NAME", "ID_LOCK", "TYPE_LOCK", "TYPE_UPDATE", "SchemaHistoryTable"]
