"""
cassandra-driver adapter for the `Driver` port.

- DML is rendered with `?` markers, prepared once per distinct CQL text (see
  `PreparedStatementCache`) and bound positionally.
- DDL is executed as plain text; it is never prepared.
- Consistency level and retry policy from `WriteOptions` are applied to the bound
  statement; TTL and timestamp are already bind values.
- Live table state is read from the driver's schema metadata
  (`cluster.metadata.keyspaces`).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from cassandra.cluster import Session
from cassandra.query import BatchStatement, BatchType, SimpleStatement

from src.constants import APPLIED_COLUMN_NAME
from src.cql_mapper.cql import RenderedStatement, render
from src.cql_mapper.driver.ports import ExecutionResult
from src.cql_mapper.driver.statement_cache import PreparedStatementCache
from src.cql_mapper.identifiers import normalize_identifier
from src.cql_mapper.models import ClusteringOrder, KeyRole
from src.cql_mapper.options import WriteOptions
from src.cql_mapper.records import row_as_mapping
from src.cql_mapper.schema.live import LiveColumn, LiveTable
from src.cql_mapper.statements import DDL_STATEMENTS, Select, Statement, is_conditional
from src.logger import LOGGER


class CassandraSession:
    """Runs mapper statements on a `cassandra.cluster.Session`."""

    def __init__(self, session: Session, cache: PreparedStatementCache | None = None) -> None:
        self.session = session
        self.cache = cache or PreparedStatementCache()

    # ---------- execution ----------

    def execute(self, statement: Statement) -> ExecutionResult:
        if isinstance(statement, DDL_STATEMENTS):
            rendered = render(statement)
            LOGGER.debug("Executing DDL: %s", rendered.query)
            self.session.execute(SimpleStatement(rendered.query))
            return ExecutionResult()

        bound = self._bind(statement)
        result = self.session.execute(bound)
        applied = _was_applied(result) if is_conditional(statement) else True
        rows = list(result)
        return ExecutionResult(rows=rows, applied=applied)

    def execute_batch(self, statements: Sequence[Statement]) -> ExecutionResult:
        """
        Run DML statements as one LOGGED batch.

        Statement-level consistency and retry settings are collapsed onto the batch:
        the first statement that sets one wins.
        """
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        for statement in statements:
            rendered = render(statement)
            prepared = self.cache.get_or_prepare(rendered.query, self.prepare)
            batch.add(prepared, rendered.values)
            options = _options_of(statement)
            if options.consistency_level is not None and batch.consistency_level is None:
                batch.consistency_level = options.consistency_level
            if options.retry_policy is not None and batch.retry_policy is None:
                batch.retry_policy = options.retry_policy
        result = self.session.execute(batch)
        return ExecutionResult(rows=list(result))

    def prepare(self, query: str) -> Any:
        LOGGER.debug("Preparing: %s", query)
        return self.session.prepare(query)

    def execute_query(self, query: Any, parameters: Iterable[Any] | None = None) -> list[Any]:
        """Run raw CQL text, a driver statement or a mapper statement; return the rows."""
        if isinstance(query, Statement):
            return list(self.execute(query).rows)
        if isinstance(query, str):
            query = SimpleStatement(query)
        return list(self.session.execute(query, parameters))

    # ---------- schema introspection ----------

    def keyspace_exists(self, keyspace: str) -> bool:
        return self._keyspace_metadata(keyspace) is not None

    def get_live_table(self, keyspace: str, table_name: str) -> LiveTable | None:
        keyspace_metadata = self._keyspace_metadata(keyspace)
        if keyspace_metadata is None:
            return None
        table_metadata = _lookup(keyspace_metadata.tables, table_name)
        if table_metadata is None:
            return None
        return live_table_from_metadata(keyspace, table_metadata)

    def _keyspace_metadata(self, keyspace: str) -> Any | None:
        return _lookup(self.session.cluster.metadata.keyspaces, keyspace)

    # ---------- binding ----------

    def _bind(self, statement: Statement) -> Any:
        rendered: RenderedStatement = render(statement)
        prepared = self.cache.get_or_prepare(rendered.query, self.prepare)
        bound = prepared.bind(rendered.values)
        if isinstance(statement, Select):
            if statement.consistency_level is not None:
                bound.consistency_level = statement.consistency_level
            return bound
        options = _options_of(statement)
        if options.consistency_level is not None:
            bound.consistency_level = options.consistency_level
        if options.retry_policy is not None:
            bound.retry_policy = options.retry_policy
        return bound


# ---------- metadata conversion ----------


def live_table_from_metadata(keyspace: str, table_metadata: Any) -> LiveTable:
    """Convert a driver `TableMetadata` into a `LiveTable`."""
    partition = {c.name for c in table_metadata.partition_key}
    clustering = {c.name for c in table_metadata.clustering_key}
    indexes = _index_names_by_column(table_metadata)

    columns: list[LiveColumn] = []
    for name, column_metadata in table_metadata.columns.items():
        if name in partition:
            role = KeyRole.PARTITION
        elif name in clustering:
            role = KeyRole.CLUSTERING
        else:
            role = KeyRole.NONE
        columns.append(
            LiveColumn(
                name=name,
                cql_type=str(column_metadata.cql_type),
                key_role=role,
                is_static=bool(getattr(column_metadata, "is_static", False)),
                index_name=indexes.get(normalize_identifier(name)),
                clustering_order=(
                    ClusteringOrder.DESC
                    if getattr(column_metadata, "is_reversed", False)
                    else ClusteringOrder.ASC
                ),
            )
        )

    ttl = (getattr(table_metadata, "options", None) or {}).get("default_time_to_live")
    return LiveTable(
        keyspace=keyspace,
        name=table_metadata.name,
        columns=tuple(columns),
        default_ttl=int(ttl) if ttl else None,
    )


def _index_names_by_column(table_metadata: Any) -> dict[str, str]:
    """
    {normalized column name: index name}.

    Index targets look like `col`, `"Col"`, `values(col)`, `keys(col)` or `entries(col)`.
    """
    found: dict[str, str] = {}
    for index_name, index_metadata in (getattr(table_metadata, "indexes", None) or {}).items():
        target = (getattr(index_metadata, "index_options", None) or {}).get("target", "")
        if "(" in target and target.endswith(")"):
            target = target[target.index("(") + 1 : -1]
        if target:
            found[normalize_identifier(target)] = index_name
    return found


def _lookup(entries: Any, name: str) -> Any | None:
    """Exact match first, then case-insensitive."""
    found = entries.get(name)
    if found is not None:
        return found
    wanted = normalize_identifier(name)
    for key, value in entries.items():
        if normalize_identifier(key) == wanted:
            return value
    return None


def _options_of(statement: Statement) -> WriteOptions:
    options = getattr(statement, "options", None)
    return options if isinstance(options, WriteOptions) else WriteOptions()


def _was_applied(result: Any) -> bool:
    """Outcome of a conditional statement, read from its `[applied]` column."""
    try:
        return bool(result.was_applied)
    except RuntimeError:
        # custom row factories: look the column up ourselves
        rows = list(getattr(result, "current_rows", None) or ())
        if not rows:
            return True
        return bool(row_as_mapping(rows[0]).get(APPLIED_COLUMN_NAME, True))
