"""
Metadata registry: record type -> EntityMetadata, built once and cached.

The first lookup of a type extracts its declaration and validates it; any
problem raises `MetadataError` right there, at first use of the type.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence

from src.cql_mapper.declarations import DataclassFieldExtractor, EntityDeclaration, FieldExtractor
from src.cql_mapper.errors import MetadataError
from src.cql_mapper.identifiers import normalize_identifier
from src.cql_mapper.models import ClusteringOrder, ColumnField, ColumnKind, EntityMetadata
from src.logger import LOGGER

_INTEGER_CQL_TYPES = frozenset({"int", "bigint", "smallint", "tinyint", "varint"})


class MetadataRegistry:
    """Process-lifetime cache of EntityMetadata keyed by record type."""

    def __init__(self, extractor: FieldExtractor | None = None) -> None:
        self._extractor = extractor or DataclassFieldExtractor()
        self._cache: dict[type, EntityMetadata] = {}
        self._lock = threading.Lock()

    def metadata_for(self, entity_type: type) -> EntityMetadata:
        """Return the cached metadata for `entity_type`, building it on first use."""
        cached = self._cache.get(entity_type)
        if cached is not None:
            return cached
        with self._lock:
            cached = self._cache.get(entity_type)
            if cached is None:
                cached = build_entity_metadata(self._extractor.declaration_of(entity_type))
                self._cache[entity_type] = cached
                LOGGER.debug(
                    "Mapped %s to table %s (%d column(s))",
                    entity_type.__qualname__,
                    cached.table_name,
                    len(cached.columns),
                )
            return cached

    def remove(self, entity_type: type) -> None:
        with self._lock:
            self._cache.pop(entity_type, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._cache


def build_entity_metadata(declaration: EntityDeclaration) -> EntityMetadata:
    """Validate a declaration and freeze it into EntityMetadata."""
    entity_type = declaration.entity_type
    columns = declaration.columns

    for check in _CHECKS:
        problem = check(columns)
        if problem:
            raise MetadataError(entity_type, problem)

    if declaration.default_ttl is not None and declaration.default_ttl < 0:
        raise MetadataError(entity_type, "default_ttl must be zero or a positive number of seconds")

    return EntityMetadata(
        entity_type=entity_type,
        table_name=declaration.table_name,
        columns=columns,
        default_ttl=declaration.default_ttl,
        embedded_types=declaration.embedded_types,
    )


# ---------- checks (each returns a message or None) ----------


def _check_has_partition_key(columns: Sequence[ColumnField]) -> str | None:
    if not any(c.is_partition_key for c in columns):
        return "no primary key column declared (mark one with column(primary_key=True))"
    return None


def _check_unique_names(columns: Sequence[ColumnField]) -> str | None:
    seen: set[str] = set()
    for c in columns:
        key = normalize_identifier(c.name)
        if key in seen:
            return f"duplicate column name {c.name!r} (column names are case-insensitive)"
        seen.add(key)
    return None


def _check_version_field(columns: Sequence[ColumnField]) -> str | None:
    versions = [c for c in columns if c.is_version]
    if len(versions) > 1:
        return f"at most one version field allowed, found {[c.name for c in versions]}"
    if versions:
        version = versions[0]
        if version.is_primary_key:
            return f"version field {version.name!r} cannot be part of the primary key"
        if version.cql_type not in _INTEGER_CQL_TYPES:
            return f"version field {version.name!r} must be an integer column"
    return None


def _check_collections(columns: Sequence[ColumnField]) -> str | None:
    for c in columns:
        if c.is_collection and not c.element_types and "<" not in c.cql_type:
            return f"collection column {c.name!r} must declare its element type(s)"
        if c.is_collection and c.is_primary_key and not c.is_frozen:
            return f"collection column {c.name!r} in the primary key must be frozen"
    return None


def _check_static_columns(columns: Sequence[ColumnField]) -> str | None:
    has_clustering = any(c.is_clustering for c in columns)
    for c in columns:
        if not c.is_static:
            continue
        if c.is_primary_key:
            return f"primary key column {c.name!r} cannot be static"
        if not has_clustering:
            return f"static column {c.name!r} requires at least one clustering column"
    return None


def _check_clustering_order(columns: Sequence[ColumnField]) -> str | None:
    for c in columns:
        if c.clustering_order == ClusteringOrder.DESC and not c.is_clustering:
            return f"descending order declared on non-clustering column {c.name!r}"
    return None


def _check_counter_columns(columns: Sequence[ColumnField]) -> str | None:
    regular = [c for c in columns if not c.is_primary_key]
    counters = [c for c in regular if c.kind == ColumnKind.COUNTER]
    if counters and len(counters) != len(regular):
        return "counter columns cannot be mixed with non-counter regular columns"
    if any(c.kind == ColumnKind.COUNTER and c.is_primary_key for c in columns):
        return "counter columns cannot be part of the primary key"
    return None


_CHECKS = (
    _check_has_partition_key,
    _check_unique_names,
    _check_version_field,
    _check_collections,
    _check_static_columns,
    _check_clustering_order,
    _check_counter_columns,
)
