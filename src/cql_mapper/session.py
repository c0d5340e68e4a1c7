"""
MappingSession: the record-level API over a keyspace.

Every operation first makes sure the record type's table is in sync for the
session keyspace (unless `do_not_sync` applies), then builds one statement through
`StatementFactory`, runs it through the `Driver` port and converts rows back
into records.

Expected negative outcomes are return values, not exceptions:
  - `get` returns None for a missing key
  - `save` returns None when a versioned record lost the race
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from src.cql_mapper.batch import Batch
from src.cql_mapper.driver.cassandra_session import CassandraSession
from src.cql_mapper.driver.ports import Driver
from src.cql_mapper.errors import AmbiguousResultError
from src.cql_mapper.metadata import MetadataRegistry
from src.cql_mapper.models import EntityMetadata
from src.cql_mapper.options import SyncOptions, WriteOptions
from src.cql_mapper.records import (
    build_record,
    generate_missing_keys,
    get_attribute,
    set_attribute,
)
from src.cql_mapper.schema.sync import SchemaSync, default_schema_sync
from src.cql_mapper.statement_factory import StatementFactory
from src.logger import LOGGER

R = TypeVar("R")


class MappingSession:
    """Save, load, delete and partially update mapped records in one keyspace."""

    def __init__(
        self,
        keyspace: str,
        driver: Driver,
        sync_options: SyncOptions | None = None,
        *,
        metadata_registry: MetadataRegistry | None = None,
        schema_sync: SchemaSync | None = None,
        statement_factory: StatementFactory | None = None,
    ) -> None:
        self.keyspace = keyspace
        self.driver = driver
        self._sync_options = sync_options or SyncOptions()
        self.factory = statement_factory or StatementFactory()
        if schema_sync is None:
            schema_sync = default_schema_sync(
                driver, metadata_registry=metadata_registry, factory=self.factory
            )
        self.schema_sync = schema_sync
        self.metadata_registry = metadata_registry or schema_sync.metadata_registry

    @classmethod
    def from_session(
        cls, keyspace: str, session: Any, sync_options: SyncOptions | None = None
    ) -> MappingSession:
        """Wrap a `cassandra.cluster.Session`."""
        return cls(keyspace, CassandraSession(session), sync_options)

    @property
    def sync_options(self) -> SyncOptions:
        return self._sync_options

    @sync_options.setter
    def sync_options(self, value: SyncOptions | None) -> None:
        self._sync_options = value or SyncOptions()

    # ---------- records ----------

    def save(self, record: R, options: WriteOptions | None = None) -> R | None:
        """
        Write `record` and return it.

        Versioned records: an unset (0/None) version is inserted unconditionally as
        version 1; otherwise the write only applies while the stored version still
        equals the record's, and the version is then incremented. A lost race returns
        None and leaves `record` untouched.
        """
        metadata = self.metadata_for(type(record))
        generate_missing_keys(metadata, record)

        version = metadata.version_field
        if version is None:
            self.driver.execute(self.factory.insert(self.keyspace, metadata, record, options))
            return record

        current = get_attribute(record, version.attribute_path) or 0
        if current == 0:
            set_attribute(record, version.attribute_path, 1)
            try:
                self.driver.execute(self.factory.insert(self.keyspace, metadata, record, options))
            except Exception:
                set_attribute(record, version.attribute_path, current)
                raise
            return record

        statement = self.factory.conditional_update(
            self.keyspace, metadata, record, current, current + 1, options
        )
        result = self.driver.execute(statement)
        if not result.applied:
            LOGGER.debug(
                "Version conflict saving %s at version %s",
                metadata.entity_type.__qualname__,
                current,
            )
            return None
        set_attribute(record, version.attribute_path, current + 1)
        return record

    def get(
        self, entity_type: type[R], key: Any, consistency_level: int | None = None
    ) -> R | None:
        """Load one record by key; None when no row matches."""
        metadata = self.metadata_for(entity_type)
        statement = self.factory.select(self.keyspace, metadata, key, consistency_level)
        result = self.driver.execute(statement)
        rows = list(result.rows)
        if not rows:
            return None
        if len(rows) > 1 and not metadata.has_composite_key:
            raise AmbiguousResultError(entity_type, key, len(rows))
        return build_record(metadata, rows[0])

    def delete(self, record: Any, options: WriteOptions | None = None) -> None:
        """Delete by the record's key; absent keys are a no-op."""
        metadata = self.metadata_for(type(record))
        self.driver.execute(self.factory.delete(self.keyspace, metadata, record, options))

    def delete_by_key(
        self, entity_type: type, key: Any, options: WriteOptions | None = None
    ) -> None:
        metadata = self.metadata_for(entity_type)
        self.driver.execute(self.factory.delete(self.keyspace, metadata, key, options))

    # ---------- partial updates (no read) ----------

    def append(
        self,
        key: Any,
        entity_type: type,
        attribute: str,
        value: Any,
        options: WriteOptions | None = None,
    ) -> None:
        """Add an element or a collection to a list tail, a set or a map."""
        metadata = self.metadata_for(entity_type)
        self.driver.execute(
            self.factory.append(self.keyspace, metadata, key, attribute, value, options)
        )

    def prepend(
        self,
        key: Any,
        entity_type: type,
        attribute: str,
        value: Any,
        options: WriteOptions | None = None,
    ) -> None:
        """Insert elements ahead of a list's head, keeping their given order."""
        metadata = self.metadata_for(entity_type)
        self.driver.execute(
            self.factory.prepend(self.keyspace, metadata, key, attribute, value, options)
        )

    def replace_at(
        self,
        key: Any,
        entity_type: type,
        attribute: str,
        value: Any,
        index: int,
        options: WriteOptions | None = None,
    ) -> None:
        metadata = self.metadata_for(entity_type)
        self.driver.execute(
            self.factory.replace_at(self.keyspace, metadata, key, attribute, value, index, options)
        )

    def delete_value(
        self,
        key: Any,
        entity_type: type,
        attribute: str,
        options: WriteOptions | None = None,
    ) -> None:
        """Empty a collection."""
        metadata = self.metadata_for(entity_type)
        self.driver.execute(
            self.factory.delete_value(self.keyspace, metadata, key, attribute, options)
        )

    def update_value(
        self,
        key: Any,
        entity_type: type,
        attribute: str,
        value: Any,
        options: WriteOptions | None = None,
    ) -> None:
        self.update_values(key, entity_type, [attribute], [value], options)

    def update_values(
        self,
        key: Any,
        entity_type: type,
        attributes: Sequence[str],
        values: Sequence[Any],
        options: WriteOptions | None = None,
    ) -> None:
        """Set several attributes by key in one statement."""
        if len(attributes) != len(values):
            raise ValueError(
                f"Got {len(attributes)} attribute(s) but {len(values)} value(s) to update"
            )
        metadata = self.metadata_for(entity_type)
        self.driver.execute(
            self.factory.update_values(
                self.keyspace, metadata, key, dict(zip(attributes, values)), options
            )
        )

    # ---------- batches ----------

    def with_batch(self) -> Batch:
        return Batch(self)

    # ---------- raw queries ----------

    def get_by_query(
        self, entity_type: type[R], query: Any, parameters: Iterable[Any] | None = None
    ) -> list[R]:
        """Run CQL text or a driver statement and map every returned row."""
        self.maybe_sync(entity_type)
        return self.get_from_rows(entity_type, self.driver.execute_query(query, parameters))

    def get_from_result_set(self, entity_type: type[R], result_set: Iterable[Any]) -> list[R]:
        return self.get_from_rows(entity_type, list(result_set))

    def get_from_rows(self, entity_type: type[R], rows: Iterable[Any]) -> list[R]:
        metadata = self.metadata_registry.metadata_for(entity_type)
        return [build_record(metadata, row) for row in rows]

    def get_from_row(self, entity_type: type[R], row: Any | None) -> R | None:
        if row is None:
            return None
        return build_record(self.metadata_registry.metadata_for(entity_type), row)

    # ---------- schema ----------

    def maybe_sync(self, entity_type: type) -> None:
        """Make sure the table of `entity_type` exists and matches its declaration."""
        self.schema_sync.sync(self.keyspace, entity_type, self._sync_options)

    def metadata_for(self, entity_type: type) -> EntityMetadata:
        """Metadata of `entity_type`, syncing its table first."""
        metadata = self.metadata_registry.metadata_for(entity_type)
        self.maybe_sync(entity_type)
        return metadata

