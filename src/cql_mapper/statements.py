"""
Statements: immutable, declarative operations targeting a single table.

Conventions
-----------
- Every statement is tied to one `keyspace` and `table_name` (unquoted).
- DDL: CreateTable, AddColumn, AlterColumn, DropColumn, CreateIndex, DropIndex, DropTable.
- DML: Insert, Update, Select, Delete. Values are carried as data and always bound
  through placeholders when rendered (see cql.py); nothing here is CQL text.
- `options` on writes already holds the effective TTL (explicit or table default).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from src.cql_mapper.identifiers import format_qualified_table_name
from src.cql_mapper.models import ColumnField
from src.cql_mapper.options import WriteOptions

# ---------- base ----------


@dataclass(frozen=True)
class Statement:
    """Base statement tied to a single table."""

    keyspace: str
    table_name: str

    @property
    def qualified_table_name(self) -> str:
        return format_qualified_table_name(self.keyspace, self.table_name)

    def describe(self) -> str:
        """One-line summary for logs and error messages."""
        return f"{type(self).__name__}({self.qualified_table_name})"


# ---------- DDL ----------


@dataclass(frozen=True)
class CreateTable(Statement):
    """Create a table with its full column list and primary key."""

    columns: tuple[ColumnField, ...]
    default_ttl: int | None = None


@dataclass(frozen=True)
class AddColumn(Statement):
    column: ColumnField

    def describe(self) -> str:
        return f"AddColumn({self.qualified_table_name}.{self.column.name})"


@dataclass(frozen=True)
class AlterColumn(Statement):
    """Change the type of a regular column."""

    column: ColumnField

    def describe(self) -> str:
        return f"AlterColumn({self.qualified_table_name}.{self.column.name})"


@dataclass(frozen=True)
class DropColumn(Statement):
    column_name: str

    def describe(self) -> str:
        return f"DropColumn({self.qualified_table_name}.{self.column_name})"


@dataclass(frozen=True)
class CreateIndex(Statement):
    column_name: str
    index_name: str

    def describe(self) -> str:
        return f"CreateIndex({self.index_name} on {self.qualified_table_name}.{self.column_name})"


@dataclass(frozen=True)
class DropIndex(Statement):
    """Drop an index if it exists; safe to emit for a missing index."""

    index_name: str

    def describe(self) -> str:
        return f"DropIndex({self.keyspace}.{self.index_name})"


@dataclass(frozen=True)
class DropTable(Statement):
    pass


DDL_STATEMENTS = (CreateTable, AddColumn, AlterColumn, DropColumn, CreateIndex, DropIndex, DropTable)


# ---------- DML ----------


class AssignmentOperation(StrEnum):
    SET = "set"  # c = ?
    APPEND = "append"  # c = c + ?
    PREPEND = "prepend"  # c = ? + c
    SET_AT_INDEX = "set_at_index"  # c[?] = ?


@dataclass(frozen=True)
class Assignment:
    """One `SET` clause item of an UPDATE."""

    column_name: str
    value: Any
    operation: AssignmentOperation = AssignmentOperation.SET
    index: int | None = None


@dataclass(frozen=True)
class Insert(Statement):
    """INSERT of the given (column, value) pairs."""

    values: tuple[tuple[str, Any], ...]
    options: WriteOptions = WriteOptions()


@dataclass(frozen=True)
class Update(Statement):
    """
    UPDATE by primary key.

    `condition` holds (column, expected value) pairs rendered as `IF c = ?`; a
    conditional update reports whether it was applied.
    """

    assignments: tuple[Assignment, ...]
    where: tuple[tuple[str, Any], ...]
    options: WriteOptions = WriteOptions()
    condition: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class Select(Statement):
    columns: tuple[str, ...]
    where: tuple[tuple[str, Any], ...]
    consistency_level: int | None = None


@dataclass(frozen=True)
class Delete(Statement):
    where: tuple[tuple[str, Any], ...]
    options: WriteOptions = WriteOptions()


def is_conditional(statement: Statement) -> bool:
    """True for lightweight-transaction statements (IF ...)."""
    return isinstance(statement, Update) and bool(statement.condition)
