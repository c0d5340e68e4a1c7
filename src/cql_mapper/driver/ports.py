"""
Driver port and result types.

- Driver: protocol for anything that can run mapper statements (cassandra-driver, fakes, etc.)
- ExecutionResult: rows plus the lightweight-transaction outcome
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from src.cql_mapper.schema.live import LiveTable
from src.cql_mapper.statements import Statement


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of one execution.

    `applied` is False only when a conditional statement (IF ...) lost its
    condition; unconditional statements always report True.
    """

    rows: Sequence[Any] = field(default_factory=tuple)
    applied: bool = True


class Driver(Protocol):
    """The narrow slice of a store session the mapper relies on."""

    def execute(self, statement: Statement) -> ExecutionResult: ...

    def execute_batch(self, statements: Sequence[Statement]) -> ExecutionResult: ...

    def prepare(self, query: str) -> Any: ...

    def get_live_table(self, keyspace: str, table_name: str) -> LiveTable | None: ...

    def keyspace_exists(self, keyspace: str) -> bool: ...

    def execute_query(self, query: Any, parameters: Iterable[Any] | None = None) -> Sequence[Any]: ...
