"""
Schema synchronization coordinator.

`SchemaSync` coordinates one pass per (record type, keyspace):
  1) Skip when already synced (or when `do_not_sync` applies)
  2) Read the live table through the driver
  3) Diff declared metadata against it
  4) Execute the statements in order, fail-fast
  5) Mark the pair synced

Sync state lives in `SyncRegistry`, owned by the coordinator; metadata stays immutable.
`default_schema_sync` hands out coordinators that share one registry and one lock, so
sessions in the same process never race each other into duplicate DDL.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from src.cql_mapper.cql import render_script
from src.cql_mapper.driver.ports import Driver
from src.cql_mapper.errors import SchemaSyncFailure
from src.cql_mapper.metadata import MetadataRegistry
from src.cql_mapper.models import EntityMetadata
from src.cql_mapper.options import SyncOption, SyncOptions
from src.cql_mapper.schema.differ import SchemaDiffer
from src.cql_mapper.statement_factory import StatementFactory
from src.cql_mapper.statements import Statement
from src.logger import LOGGER


class SyncRegistry:
    """Thread-safe set of (record type, keyspace) pairs known to match the live schema."""

    def __init__(self) -> None:
        self._synced: set[tuple[type, str]] = set()
        self._lock = threading.Lock()

    def is_synced(self, entity_type: type, keyspace: str) -> bool:
        with self._lock:
            return (entity_type, keyspace) in self._synced

    def mark_synced(self, entity_type: type, keyspace: str) -> None:
        with self._lock:
            self._synced.add((entity_type, keyspace))

    def mark_unsynced(self, entity_type: type, keyspace: str) -> None:
        with self._lock:
            self._synced.discard((entity_type, keyspace))

    def clear(self) -> None:
        with self._lock:
            self._synced.clear()


class SchemaSync:
    """Coordinates reading, diffing and applying schema changes for record types."""

    def __init__(
        self,
        driver: Driver,
        metadata_registry: MetadataRegistry | None = None,
        differ: SchemaDiffer | None = None,
        factory: StatementFactory | None = None,
        registry: SyncRegistry | None = None,
        lock: threading.RLock | None = None,
    ) -> None:
        """
        Initialize the coordinator.

        Custom components can be injected for testing or alternate implementations.
        """
        self.driver = driver
        self.metadata_registry = metadata_registry or MetadataRegistry()
        self.factory = factory or StatementFactory()
        self.differ = differ or SchemaDiffer(self.factory)
        self.registry = registry or SyncRegistry()
        self._lock = lock or threading.RLock()

    # ---------- public API ----------

    def sync(
        self, keyspace: str, entity_type: type, options: SyncOptions | None = None
    ) -> list[Statement]:
        """
        Bring the table of `entity_type` in `keyspace` up to date.

        Returns the statements executed; an empty list when nothing had to change,
        the pair was already synced, or `do_not_sync` applies.
        """
        options = options or SyncOptions()
        if options.has(SyncOption.DO_NOT_SYNC, entity_type):
            LOGGER.debug("Schema sync disabled for %s", entity_type.__qualname__)
            return []
        if self.registry.is_synced(entity_type, keyspace):
            return []

        with self._lock:
            if self.registry.is_synced(entity_type, keyspace):
                return []
            metadata = self.metadata_registry.metadata_for(entity_type)
            statements = self.plan(keyspace, metadata, options)
            LOGGER.info(
                "Schema sync %s.%s: %d statement(s) planned",
                keyspace,
                metadata.table_name,
                len(statements),
            )
            self._apply(keyspace, metadata, statements)
            self.registry.mark_synced(entity_type, keyspace)
            return statements

    def sync_all(
        self, keyspace: str, entity_types: Iterable[type], options: SyncOptions | None = None
    ) -> list[Statement]:
        """Sync each type in turn; the first failure stops the run."""
        applied: list[Statement] = []
        for entity_type in entity_types:
            applied.extend(self.sync(keyspace, entity_type, options))
        return applied

    def get_script(
        self, keyspace: str, entity_type: type, options: SyncOptions | None = None
    ) -> str:
        """Render what `sync` would run, one statement per line; nothing is executed."""
        metadata = self.metadata_registry.metadata_for(entity_type)
        return render_script(self.plan(keyspace, metadata, options))

    def drop(self, keyspace: str, entity_type: type) -> bool:
        """Forget the sync state and drop the table when it exists. Returns True if dropped."""
        with self._lock:
            metadata = self.metadata_registry.metadata_for(entity_type)
            self.registry.mark_unsynced(entity_type, keyspace)
            if self.driver.get_live_table(keyspace, metadata.table_name) is None:
                LOGGER.debug("Drop %s.%s: table absent", keyspace, metadata.table_name)
                return False
            self._apply(keyspace, metadata, [self.factory.drop_table(keyspace, metadata)])
            return True

    def drop_all(self, keyspace: str, entity_types: Iterable[type]) -> None:
        for entity_type in entity_types:
            self.drop(keyspace, entity_type)

    def is_synced(self, keyspace: str, entity_type: type) -> bool:
        return self.registry.is_synced(entity_type, keyspace)

    # ---------- pipeline stages ----------

    def plan(
        self, keyspace: str, metadata: EntityMetadata, options: SyncOptions | None = None
    ) -> list[Statement]:
        """Read the live table and diff it against `metadata`."""
        live = self.driver.get_live_table(keyspace, metadata.table_name)
        return self.differ.diff(keyspace, metadata, live, options)

    def _apply(
        self, keyspace: str, metadata: EntityMetadata, statements: list[Statement]
    ) -> None:
        applied: list[Statement] = []
        for statement in statements:
            try:
                self.driver.execute(statement)
            except Exception as e:
                LOGGER.error("Schema sync: %s ✗ (%s)", statement.describe(), e)
                raise SchemaSyncFailure(metadata.entity_type, keyspace, statement, applied) from e
            LOGGER.info("Schema sync: %s ✓", statement.describe())
            applied.append(statement)


SHARED_METADATA_REGISTRY = MetadataRegistry()
SHARED_SYNC_REGISTRY = SyncRegistry()
_SHARED_LOCK = threading.RLock()


def default_schema_sync(
    driver: Driver,
    metadata_registry: MetadataRegistry | None = None,
    factory: StatementFactory | None = None,
) -> SchemaSync:
    """
    Coordinator backed by the process-wide sync registry and lock.

    Every session built without its own `SchemaSync` goes through here. Sessions on
    different clusters that reuse a keyspace name should inject their own coordinator.
    """
    return SchemaSync(
        driver,
        metadata_registry=metadata_registry or SHARED_METADATA_REGISTRY,
        factory=factory,
        registry=SHARED_SYNC_REGISTRY,
        lock=_SHARED_LOCK,
    )
