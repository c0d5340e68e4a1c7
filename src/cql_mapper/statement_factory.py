"""
StatementFactory: EntityMetadata + runtime values -> statement value objects.

Pure builder: no I/O and no caching. Policy (what to create, alter or drop) is
decided by the caller; the factory only refuses requests that the store can
never honour, such as altering a key column.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from src.cql_mapper.codecs import collection_delta, empty_collection, encode_element, to_cql
from src.cql_mapper.errors import UnsupportedSchemaChange
from src.cql_mapper.models import ColumnField, ColumnKind, EntityMetadata
from src.cql_mapper.options import WriteOptions
from src.cql_mapper.records import column_values, key_values
from src.cql_mapper.statements import (
    AddColumn,
    AlterColumn,
    Assignment,
    AssignmentOperation,
    CreateIndex,
    CreateTable,
    Delete,
    DropColumn,
    DropIndex,
    DropTable,
    Insert,
    Select,
    Update,
)


class StatementFactory:
    """Build DDL and DML statements for a mapped record type."""

    # ----- DDL -----

    def create_table(self, keyspace: str, metadata: EntityMetadata) -> CreateTable:
        return CreateTable(
            keyspace=keyspace,
            table_name=metadata.table_name,
            columns=metadata.columns,
            default_ttl=metadata.default_ttl,
        )

    def create_indexes(self, keyspace: str, metadata: EntityMetadata) -> list[CreateIndex]:
        """One CreateIndex per declared (non-empty) index, in column order."""
        return [
            self.create_index(keyspace, metadata, column_name, index_name)
            for column_name, index_name in metadata.indexes.items()
            if index_name
        ]

    def add_column(self, keyspace: str, metadata: EntityMetadata, column: ColumnField) -> AddColumn:
        return AddColumn(keyspace=keyspace, table_name=metadata.table_name, column=column)

    def alter_column(
        self, keyspace: str, metadata: EntityMetadata, column: ColumnField
    ) -> AlterColumn:
        """ALTER the type of a regular column; key and static columns are rejected."""
        if column.is_partition_key:
            raise UnsupportedSchemaChange(metadata.table_name, column.name, "partition key column")
        if column.is_clustering:
            raise UnsupportedSchemaChange(metadata.table_name, column.name, "clustering column")
        if column.is_static:
            raise UnsupportedSchemaChange(metadata.table_name, column.name, "static column")
        return AlterColumn(keyspace=keyspace, table_name=metadata.table_name, column=column)

    def drop_column(self, keyspace: str, metadata: EntityMetadata, column_name: str) -> DropColumn:
        return DropColumn(keyspace=keyspace, table_name=metadata.table_name, column_name=column_name)

    def create_index(
        self, keyspace: str, metadata: EntityMetadata, column_name: str, index_name: str
    ) -> CreateIndex:
        return CreateIndex(
            keyspace=keyspace,
            table_name=metadata.table_name,
            column_name=column_name,
            index_name=index_name,
        )

    def drop_index(self, keyspace: str, metadata: EntityMetadata, index_name: str) -> DropIndex:
        return DropIndex(keyspace=keyspace, table_name=metadata.table_name, index_name=index_name)

    def drop_table(self, keyspace: str, metadata: EntityMetadata) -> DropTable:
        return DropTable(keyspace=keyspace, table_name=metadata.table_name)

    # ----- DML -----

    def insert(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        record: Any,
        options: WriteOptions | None = None,
    ) -> Insert:
        """INSERT every non-null mapped column of `record`."""
        if metadata.is_counter_table:
            raise ValueError(
                f"{metadata.entity_type.__qualname__} maps a counter table; "
                "counter columns can only be changed by increments"
            )
        values = tuple(
            (name, value) for name, value in column_values(metadata, record).items() if value is not None
        )
        return Insert(
            keyspace=keyspace,
            table_name=metadata.table_name,
            values=values,
            options=_effective_options(metadata, options),
        )

    def conditional_update(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        record: Any,
        expected_version: int,
        new_version: int,
        options: WriteOptions | None = None,
    ) -> Update:
        """UPDATE all non-null regular columns, applied only while the stored version matches."""
        version = metadata.version_field
        if version is None:
            raise ValueError(f"{metadata.entity_type.__qualname__} declares no version field")
        if options is not None and options.timestamp is not None:
            raise ValueError(
                "Conditional updates cannot carry a write timestamp; "
                f"save {metadata.entity_type.__qualname__} without WriteOptions.timestamp"
            )

        values = column_values(metadata, record)
        assignments = [
            Assignment(column_name=c.name, value=values[c.name])
            for c in metadata.regular_columns
            if not c.is_version and values[c.name] is not None
        ]
        assignments.append(Assignment(column_name=version.name, value=new_version))
        return Update(
            keyspace=keyspace,
            table_name=metadata.table_name,
            assignments=tuple(assignments),
            where=_where(metadata, key_values(metadata, record)),
            options=_effective_options(metadata, options),
            condition=((version.name, expected_version),),
        )

    def select(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        key: Any,
        consistency_level: int | None = None,
    ) -> Select:
        return Select(
            keyspace=keyspace,
            table_name=metadata.table_name,
            columns=metadata.column_names,
            where=_where(metadata, key_values(metadata, key)),
            consistency_level=consistency_level,
        )

    def delete(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        key: Any,
        options: WriteOptions | None = None,
    ) -> Delete:
        """DELETE by key; `key` may also be the record itself."""
        return Delete(
            keyspace=keyspace,
            table_name=metadata.table_name,
            where=_where(metadata, key_values(metadata, key)),
            options=options or WriteOptions(),
        )

    def update_values(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        key: Any,
        values: Mapping[str, Any],
        options: WriteOptions | None = None,
    ) -> Update:
        """Targeted `SET c = ?` for the given attributes/columns, bypassing the full record."""
        assignments: list[Assignment] = []
        for name, value in values.items():
            column = _regular_column(metadata, name)
            assignments.append(Assignment(column_name=column.name, value=to_cql(column, value)))
        return self._update(keyspace, metadata, key, assignments, options)

    # ----- collection deltas -----

    def append(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        key: Any,
        name: str,
        value: Any,
        options: WriteOptions | None = None,
    ) -> Update:
        """`c = c + ?`: add to a list tail, a set, or merge into a map."""
        column = _collection_column(metadata, name, (ColumnKind.LIST, ColumnKind.SET, ColumnKind.MAP))
        assignment = Assignment(
            column_name=column.name,
            value=collection_delta(column, value),
            operation=AssignmentOperation.APPEND,
        )
        return self._update(keyspace, metadata, key, [assignment], options)

    def prepend(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        key: Any,
        name: str,
        value: Any,
        options: WriteOptions | None = None,
    ) -> Update:
        """`c = ? + c` on a list: elements land ahead of the current head, in the given order."""
        column = _collection_column(metadata, name, (ColumnKind.LIST,))
        assignment = Assignment(
            column_name=column.name,
            value=collection_delta(column, value),
            operation=AssignmentOperation.PREPEND,
        )
        return self._update(keyspace, metadata, key, [assignment], options)

    def replace_at(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        key: Any,
        name: str,
        value: Any,
        index: int,
        options: WriteOptions | None = None,
    ) -> Update:
        """`c[?] = ?` on a list (0-based index)."""
        column = _collection_column(metadata, name, (ColumnKind.LIST,))
        if index < 0:
            raise ValueError(f"List index must be >= 0, got {index}")
        assignment = Assignment(
            column_name=column.name,
            value=encode_element(column, value),
            operation=AssignmentOperation.SET_AT_INDEX,
            index=int(index),
        )
        return self._update(keyspace, metadata, key, [assignment], options)

    def delete_value(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        key: Any,
        name: str,
        options: WriteOptions | None = None,
    ) -> Update:
        """Reset a collection to empty."""
        column = _collection_column(metadata, name, (ColumnKind.LIST, ColumnKind.SET, ColumnKind.MAP))
        assignment = Assignment(column_name=column.name, value=to_cql(column, empty_collection(column)))
        return self._update(keyspace, metadata, key, [assignment], options)

    def _update(
        self,
        keyspace: str,
        metadata: EntityMetadata,
        key: Any,
        assignments: list[Assignment],
        options: WriteOptions | None,
    ) -> Update:
        return Update(
            keyspace=keyspace,
            table_name=metadata.table_name,
            assignments=tuple(assignments),
            where=_where(metadata, key_values(metadata, key)),
            options=_effective_options(metadata, options),
        )


# ---------- helpers ----------


def _effective_options(metadata: EntityMetadata, options: WriteOptions | None) -> WriteOptions:
    options = options or WriteOptions()
    ttl = options.effective_ttl(metadata.default_ttl)
    if ttl == options.ttl:
        return options
    return options.with_ttl(ttl)  # type: ignore[arg-type]


def _where(metadata: EntityMetadata, key: tuple[Any, ...]) -> tuple[tuple[str, Any], ...]:
    pk_columns = metadata.primary_key_columns
    missing = [c.name for c, value in zip(pk_columns, key) if value is None]
    if missing:
        raise ValueError(
            f"Primary key of {metadata.entity_type.__qualname__} is incomplete: {missing} unset"
        )
    return tuple((column.name, value) for column, value in zip(pk_columns, key))


def _regular_column(metadata: EntityMetadata, name: str) -> ColumnField:
    column = metadata.find_column(name)
    if column is None:
        raise ValueError(f"{metadata.entity_type.__qualname__} has no mapped attribute {name!r}")
    if column.is_primary_key:
        raise ValueError(f"Primary key column {column.name!r} cannot be updated")
    return column


def _collection_column(
    metadata: EntityMetadata, name: str, kinds: tuple[ColumnKind, ...]
) -> ColumnField:
    column = _regular_column(metadata, name)
    if column.kind not in kinds:
        allowed = "/".join(k.value for k in kinds)
        raise ValueError(
            f"Column {column.name!r} is a {column.kind.value} column; this operation needs {allowed}"
        )
    return column
