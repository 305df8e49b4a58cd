"""Statement builders.

Modules
-------
base      Statement: alias map, WHERE merging, parameter collection
ddl       CreateTable, DropTable, AlterTableAddColumn, AlterTableAddForeignKey
dml       Insert, Update, Delete
select    Select with joins, ordering and limit
"""

from sqlspine.statements.base import Statement
from sqlspine.statements.ddl import (
    AlterTableAddColumn,
    AlterTableAddForeignKey,
    CreateTable,
    DropTable,
)
from sqlspine.statements.dml import Delete, Insert, Update, UpdateSet
from sqlspine.statements.select import Join, JoinType, Select, TableWithJoins

__all__ = [
    "Statement",
    "CreateTable",
    "DropTable",
    "AlterTableAddColumn",
    "AlterTableAddForeignKey",
    "Insert",
    "Update",
    "UpdateSet",
    "Delete",
    "Select",
    "Join",
    "JoinType",
    "TableWithJoins",
]
