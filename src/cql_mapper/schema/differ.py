"""
Diff engine: declared record metadata + live table -> DDL statements.

Principles
----------
- No side effects beyond logging; this module only computes statements.
- Key columns are immutable once the table exists: type changes on them are
  skipped, and live key columns are never dropped.
- Index semantics per declared column:
  - index name None or ""  → no index wanted; a live index is dropped
  - index name "x"          → index "x" must exist on the column
  - `do_not_drop_custom_index` keeps any live index that is not the declared one
- Column names compare case-insensitively.

Output
------
Flat, ordered list of `Statement` objects ready to execute or render as a script.
"""

from __future__ import annotations

import re

from src.cql_mapper.identifiers import normalize_identifier
from src.cql_mapper.models import ColumnField, EntityMetadata
from src.cql_mapper.options import SyncOption, SyncOptions
from src.cql_mapper.schema.live import LiveColumn, LiveTable
from src.cql_mapper.statement_factory import StatementFactory
from src.cql_mapper.statements import CreateIndex, Statement
from src.logger import LOGGER

_WHITESPACE = re.compile(r"\s+")
_TYPE_ALIASES = {"varchar": "text"}


class SchemaDiffer:
    """
    Compute the DDL needed to bring a live table in line with a record type.

    Workflow
    --------
    1. No live table: CREATE TABLE plus one CREATE INDEX per declared index.
    2. Otherwise, per declared column: add it, or reconcile its type and index.
    3. Finally drop live columns the record no longer declares.
    """

    def __init__(self, factory: StatementFactory | None = None) -> None:
        self._factory = factory or StatementFactory()

    def diff(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        live: LiveTable | None,
        sync_options: SyncOptions | None = None,
    ) -> list[Statement]:
        """Compute all statements needed to align `live` with `metadata`."""
        if live is None:
            return self.create_statements(keyspace, metadata)

        options = (sync_options or SyncOptions()).options_for(metadata.entity_type)
        statements: list[Statement] = []
        for column in metadata.columns:
            live_column = live.column(column.name)
            if live_column is None:
                if SyncOption.DO_NOT_ADD_COLUMNS in options:
                    continue
                statements.extend(self._add_column(keyspace, metadata, column))
                continue
            statements.extend(
                self._diff_column(keyspace, metadata, column, live_column, options)
            )

        if SyncOption.DO_NOT_DROP_COLUMNS not in options:
            statements.extend(self._drop_undeclared(keyspace, metadata, live))
        return statements

    def create_statements(self, keyspace: str, metadata: EntityMetadata) -> list[Statement]:
        """CREATE TABLE followed by the declared indexes."""
        statements: list[Statement] = [self._factory.create_table(keyspace, metadata)]
        statements.extend(self._factory.create_indexes(keyspace, metadata))
        return statements

    # ---------- per-column helpers ----------

    def _add_column(
        self, keyspace: str, metadata: EntityMetadata, column: ColumnField
    ) -> list[Statement]:
        statements: list[Statement] = [self._factory.add_column(keyspace, metadata, column)]
        if column.index_name:
            statements.append(
                self._factory.create_index(keyspace, metadata, column.name, column.index_name)
            )
        return statements

    def _diff_column(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        column: ColumnField,
        live_column: LiveColumn,
        options: frozenset[SyncOption],
    ) -> list[Statement]:
        statements: list[Statement] = []
        altered = False
        if not same_type(column.column_definition, live_column.cql_type):
            skip_reason = _alter_skip_reason(column, live_column)
            if skip_reason is None:
                statements.append(self._factory.alter_column(keyspace, metadata, column))
                altered = True
            else:
                LOGGER.warning(
                    "Not altering %s.%s.%s from %s to %s: %s",
                    keyspace,
                    metadata.table_name,
                    column.name,
                    live_column.cql_type,
                    column.column_definition,
                    skip_reason,
                )

        statements.extend(self._diff_index(keyspace, metadata, column, live_column, options))

        if altered and column.index_name and not any(isinstance(s, CreateIndex) for s in statements):
            statements.append(
                self._factory.create_index(keyspace, metadata, column.name, column.index_name)
            )
        return statements

    def _diff_index(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        column: ColumnField,
        live_column: LiveColumn,
        options: frozenset[SyncOption],
    ) -> list[Statement]:
        declared = column.index_name or None
        live = live_column.index_name or None
        keep_custom = SyncOption.DO_NOT_DROP_CUSTOM_INDEX in options

        if declared is None and live is None:
            return []
        if live is None:
            return [self._factory.create_index(keyspace, metadata, column.name, declared)]  # type: ignore[arg-type]
        if declared is None:
            if keep_custom:
                return []
            return [self._factory.drop_index(keyspace, metadata, live)]
        if normalize_identifier(declared) == normalize_identifier(live):
            return []
        if keep_custom:
            LOGGER.warning(
                "Keeping custom index %s on %s.%s.%s instead of %s",
                live,
                keyspace,
                metadata.table_name,
                column.name,
                declared,
            )
            return []
        return [
            self._factory.drop_index(keyspace, metadata, live),
            self._factory.create_index(keyspace, metadata, column.name, declared),
        ]

    def _drop_undeclared(
        self, keyspace: str, metadata: EntityMetadata, live: LiveTable
    ) -> list[Statement]:
        declared = {normalize_identifier(name) for name in metadata.column_names}
        statements: list[Statement] = []
        for live_column in live.columns:
            if normalize_identifier(live_column.name) in declared:
                continue
            if live_column.is_primary_key:
                LOGGER.warning(
                    "Key column %s.%s.%s is no longer declared but cannot be dropped",
                    keyspace,
                    live.name,
                    live_column.name,
                )
                continue
            if live_column.index_name:
                statements.append(self._factory.drop_index(keyspace, metadata, live_column.index_name))
            statements.append(self._factory.drop_column(keyspace, metadata, live_column.name))
        return statements


# ---------- type comparison ----------


def normalize_cql_type(cql_type: str) -> str:
    """Canonical text of a CQL type: lower case, no whitespace, aliases folded."""
    text = _WHITESPACE.sub("", str(cql_type).lower())
    for alias, canonical in _TYPE_ALIASES.items():
        text = re.sub(rf"\b{alias}\b", canonical, text)
    return text


def same_type(declared: str, live: str) -> bool:
    return normalize_cql_type(declared) == normalize_cql_type(live)


def _alter_skip_reason(column: ColumnField, live_column: LiveColumn) -> str | None:
    if column.is_primary_key or live_column.is_primary_key:
        return "key columns are immutable"
    if column.is_static or live_column.is_static:
        return "static column"
    if column.is_collection or "<" in live_column.cql_type:
        return "collection types cannot be altered in place"
    return None
