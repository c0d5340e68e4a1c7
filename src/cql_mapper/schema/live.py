"""
Observed table state, as reported by the store's schema metadata.

These types capture what exists in the keyspace *right now*:
- Columns (name, CQL type, key role, static flag, index name)
- Table identity and clustering order

Notes:
- Dataclasses are frozen and use tuples for nested data.
- Construction sites (the driver adapter, test fakes) convert driver metadata
  into these types; nothing here talks to the store.
- Names are kept exactly as the store reports them; lookups compare
  case-insensitively.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from src.cql_mapper.identifiers import normalize_identifier
from src.cql_mapper.models import ClusteringOrder, KeyRole


@dataclass(frozen=True, slots=True)
class LiveColumn:
    """Observed column: name, CQL type text, key role, static flag and index (if any)."""

    name: str
    cql_type: str
    key_role: KeyRole = KeyRole.NONE
    is_static: bool = False
    index_name: str | None = None
    clustering_order: ClusteringOrder = ClusteringOrder.ASC

    @property
    def is_primary_key(self) -> bool:
        return self.key_role != KeyRole.NONE


@dataclass(frozen=True, slots=True)
class LiveTable:
    """
    Observed table state.

    Fields
    ------
    keyspace, name : str
        Table identity (unquoted).
    columns : tuple[LiveColumn, ...]
        Columns as reported by the store.
    default_ttl : int | None
        `default_time_to_live` table option; informational only.
    """

    keyspace: str
    name: str
    columns: tuple[LiveColumn, ...]
    default_ttl: int | None = None

    @property
    def partition_key(self) -> tuple[LiveColumn, ...]:
        return tuple(c for c in self.columns if c.key_role == KeyRole.PARTITION)

    @property
    def clustering_key(self) -> tuple[LiveColumn, ...]:
        return tuple(c for c in self.columns if c.key_role == KeyRole.CLUSTERING)

    @property
    def indexes(self) -> Mapping[str, str]:
        """{column_name: index_name} for indexed columns."""
        return MappingProxyType({c.name: c.index_name for c in self.columns if c.index_name})

    def column(self, name: str) -> LiveColumn | None:
        """Case-insensitive column lookup."""
        wanted = normalize_identifier(name)
        for live_column in self.columns:
            if normalize_identifier(live_column.name) == wanted:
                return live_column
        return None
