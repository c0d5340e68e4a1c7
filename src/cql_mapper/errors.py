"""
Error taxonomy for the mapper.

Only genuine failures are exceptions. Expected negative outcomes are plain
return values instead:
  - a missing row is returned as ``None`` from ``MappingSession.get``
  - a lost optimistic-version race is returned as ``None`` from ``MappingSession.save``

Driver failures (``cassandra.DriverException`` and subclasses) are not wrapped;
they reach the caller unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.cql_mapper.statements import Statement


class MappingError(Exception):
    """Base class for every error raised by the mapper itself."""


class MetadataError(MappingError):
    """A record type cannot be mapped (invalid or inconsistent declaration)."""

    def __init__(self, entity_type: type, reason: str) -> None:
        self.entity_type = entity_type
        self.reason = reason
        super().__init__(f"Cannot map {entity_type.__qualname__}: {reason}")


class UnsupportedSchemaChange(MappingError):
    """An ALTER was requested for a partition key, clustering or static column."""

    def __init__(self, table_name: str, column_name: str, reason: str) -> None:
        self.table_name = table_name
        self.column_name = column_name
        super().__init__(f"Cannot alter column {column_name!r} of {table_name!r}: {reason}")


class SchemaSyncFailure(MappingError):
    """A DDL statement failed part-way through a synchronization pass."""

    def __init__(
        self,
        entity_type: type,
        keyspace: str,
        failed: Statement,
        applied: Sequence[Statement] = (),
    ) -> None:
        self.entity_type = entity_type
        self.keyspace = keyspace
        self.failed = failed
        self.applied = tuple(applied)
        super().__init__(
            f"Schema sync of {entity_type.__qualname__} in keyspace {keyspace!r} failed "
            f"after {len(self.applied)} statement(s) at: {failed.describe()}"
        )


class AmbiguousResultError(MappingError):
    """A lookup by a single-column key matched more than one row."""

    def __init__(self, entity_type: type, key: object, row_count: int) -> None:
        self.entity_type = entity_type
        self.key = key
        self.row_count = row_count
        super().__init__(
            f"Lookup of {entity_type.__qualname__} by key {key!r} matched {row_count} rows"
        )
