"""Schema management for sqlspine.

Manifesto:
    Every process that starts against a database should find the tables it
    declares. The schema manager creates what is missing, adds missing
    columns and applies named updates exactly once, serialised across
    processes by a lock row in the ``schemaHistory`` ledger.

Modules
-------
history   The ``schemaHistory`` ledger table and its row types
manager   SchemaManager, SchemaUpdate, UpgradeResult

Tags:
    sqlspine, migrations, schema, ledger, lock, DDL

Doc-Types:
    package-overview
"""

from sqlspine.migrations.history import (
    ID_LOCK,
    TYPE_LOCK,
    TYPE_UPDATE,
    SchemaHistoryTable,
)
from sqlspine.migrations.manager import (
    SchemaManager,
    SchemaUpdate,
    UpgradeResult,
    extract_forward_foreign_keys,
)

__all__ = [
    "ID_LOCK",
    "TYPE_LOCK",
    "TYPE_UPDATE",
    "SchemaHistoryTable",
    "SchemaManager",
    "SchemaUpdate",
    "UpgradeResult",
    "extract_forward_foreign_keys",
]
