"""Domain models describing how a record type maps onto a CQL table."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, StrEnum
from types import MappingProxyType

from src.cql_mapper.identifiers import normalize_identifier


class ColumnKind(StrEnum):
    """Storage shape of a column."""

    SCALAR = "scalar"
    LIST = "list"
    SET = "set"
    MAP = "map"
    COUNTER = "counter"


class KeyRole(StrEnum):
    """Role of a column in the primary key."""

    PARTITION = "partition_key"
    CLUSTERING = "clustering"
    NONE = "regular"


class ClusteringOrder(StrEnum):
    ASC = "ASC"
    DESC = "DESC"


class EnumEncoding(StrEnum):
    """How an Enum attribute is stored: as its ordinal (int) or its name (text)."""

    ORDINAL = "ordinal"
    NAME = "name"


COLLECTION_KINDS = frozenset({ColumnKind.LIST, ColumnKind.SET, ColumnKind.MAP})


@dataclass(frozen=True)
class ColumnField:
    """A single mapped column, owned by exactly one EntityMetadata."""

    name: str
    attribute_path: tuple[str, ...]
    cql_type: str
    kind: ColumnKind = ColumnKind.SCALAR
    python_type: type | None = None
    element_types: tuple[type, ...] = ()
    enum_type: type[Enum] | None = None
    element_enum_types: tuple[type[Enum] | None, ...] = ()
    enum_encoding: EnumEncoding = EnumEncoding.ORDINAL
    key_role: KeyRole = KeyRole.NONE
    clustering_order: ClusteringOrder = ClusteringOrder.ASC
    is_static: bool = False
    is_version: bool = False
    index_name: str | None = None
    is_frozen: bool = False

    @property
    def attribute(self) -> str:
        """Attribute name on the object that directly holds the value."""
        return self.attribute_path[-1]

    @property
    def is_partition_key(self) -> bool:
        return self.key_role == KeyRole.PARTITION

    @property
    def is_clustering(self) -> bool:
        return self.key_role == KeyRole.CLUSTERING

    @property
    def is_primary_key(self) -> bool:
        return self.key_role != KeyRole.NONE

    @property
    def is_collection(self) -> bool:
        return self.kind in COLLECTION_KINDS

    @property
    def is_counter(self) -> bool:
        return self.kind == ColumnKind.COUNTER

    @property
    def is_generated_key(self) -> bool:
        """Key columns whose missing value is generated on save."""
        return self.is_primary_key and self.cql_type in ("uuid", "timeuuid")

    @property
    def column_definition(self) -> str:
        """Type as it appears in CREATE/ALTER statements."""
        if self.is_collection and self.is_frozen:
            return f"frozen<{self.cql_type}>"
        return self.cql_type


@dataclass(frozen=True)
class EntityMetadata:
    """
    Everything the mapper knows about one record type.

    Built once per type by ``MetadataRegistry`` and never mutated afterwards.
    Synchronization state is tracked separately by ``SyncRegistry``.

    Fields
    ------
    entity_type : type
        The record dataclass.
    table_name : str
        Unquoted table name.
    columns : tuple[ColumnField, ...]
        Mapped columns in declaration order; embedded key components are flattened in place.
    default_ttl : int | None
        Table-level TTL applied when a write carries none.
    embedded_types : Mapping[tuple[str, ...], type]
        Attribute path -> dataclass type for embedded key objects, used to rebuild them from rows.
    """

    entity_type: type
    table_name: str
    columns: tuple[ColumnField, ...]
    default_ttl: int | None = None
    embedded_types: Mapping[tuple[str, ...], type] = field(
        default_factory=lambda: MappingProxyType({})
    )

    # --------- Convenience properties ---------

    @property
    def column_names(self) -> tuple[str, ...]:
        """Column names in declared order."""
        return tuple(column.name for column in self.columns)

    @property
    def partition_key_columns(self) -> tuple[ColumnField, ...]:
        return tuple(c for c in self.columns if c.is_partition_key)

    @property
    def clustering_columns(self) -> tuple[ColumnField, ...]:
        return tuple(c for c in self.columns if c.is_clustering)

    @property
    def primary_key_columns(self) -> tuple[ColumnField, ...]:
        """Partition key columns first, then clustering columns, each in declaration order."""
        return self.partition_key_columns + self.clustering_columns

    @property
    def regular_columns(self) -> tuple[ColumnField, ...]:
        return tuple(c for c in self.columns if not c.is_primary_key)

    @property
    def indexes(self) -> Mapping[str, str]:
        """Declared indexes as {column_name: index_name}; an empty name means 'no index wanted'."""
        return MappingProxyType(
            {c.name: c.index_name for c in self.columns if c.index_name is not None}
        )

    @property
    def version_field(self) -> ColumnField | None:
        return next((c for c in self.columns if c.is_version), None)

    @property
    def has_composite_key(self) -> bool:
        return len(self.primary_key_columns) > 1

    @property
    def is_counter_table(self) -> bool:
        return any(c.is_counter for c in self.columns)

    # --------- Lookups ---------

    def find_column(self, name: str) -> ColumnField | None:
        """
        Resolve a column by column name, attribute name or dotted attribute path.

        Column names compare case-insensitively.
        """
        for column in self.columns:
            if column.attribute == name or ".".join(column.attribute_path) == name:
                return column
        wanted = normalize_identifier(name)
        for column in self.columns:
            if normalize_identifier(column.name) == wanted:
                return column
        return None

    def column(self, name: str) -> ColumnField:
        """Like `find_column`, but raise KeyError when nothing matches."""
        found = self.find_column(name)
        if found is None:
            raise KeyError(f"{self.entity_type.__qualname__} has no mapped column {name!r}")
        return found
