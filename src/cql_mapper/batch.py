"""
Batch: accumulate saves and deletes, then send them as one LOGGED batch.

The store applies a logged batch all-or-nothing as seen by the client, but
statements touching different partitions are not isolated from concurrent
readers, and a coordinator failure after the batch log write can leave some
partitions updated before the replay completes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from src.cql_mapper.driver.ports import ExecutionResult
from src.cql_mapper.options import WriteOptions
from src.cql_mapper.records import generate_missing_keys, get_attribute, set_attribute
from src.cql_mapper.statements import Statement
from src.logger import LOGGER

if TYPE_CHECKING:
    from src.cql_mapper.session import MappingSession


class Batch:
    """
    Builder returned by `MappingSession.with_batch()`.

    Each operation carries its own WriteOptions. Versioned records are written
    without a condition (conditional statements cannot share a batch across
    tables); their version is bumped once the batch succeeds.
    """

    def __init__(self, session: MappingSession) -> None:
        self._session = session
        self._statements: list[Statement] = []
        self._version_bumps: list[tuple[Any, tuple[str, ...], int]] = []

    def save(self, record: Any, options: WriteOptions | None = None) -> Self:
        session = self._session
        metadata = session.metadata_for(type(record))
        generate_missing_keys(metadata, record)

        version = metadata.version_field
        if version is not None:
            current = get_attribute(record, version.attribute_path) or 0
            set_attribute(record, version.attribute_path, current + 1)
            try:
                statement = session.factory.insert(session.keyspace, metadata, record, options)
            finally:
                set_attribute(record, version.attribute_path, current)
            self._version_bumps.append((record, version.attribute_path, current + 1))
        else:
            statement = session.factory.insert(session.keyspace, metadata, record, options)

        self._statements.append(statement)
        return self

    def delete(self, record: Any, options: WriteOptions | None = None) -> Self:
        session = self._session
        metadata = session.metadata_for(type(record))
        self._statements.append(session.factory.delete(session.keyspace, metadata, record, options))
        return self

    @property
    def statements(self) -> tuple[Statement, ...]:
        return tuple(self._statements)

    def __len__(self) -> int:
        return len(self._statements)

    def execute(self) -> ExecutionResult:
        """
        Send every accumulated statement as one batch.

        A driver failure propagates unchanged and no version is bumped; see the
        module docstring for what the store guarantees across partitions.
        """
        if not self._statements:
            return ExecutionResult()
        LOGGER.debug("Executing batch of %d statement(s)", len(self._statements))
        result = self._session.driver.execute_batch(self._statements)
        for record, path, version in self._version_bumps:
            set_attribute(record, path, version)
        self._statements.clear()
        self._version_bumps.clear()
        return result
