"""Reading and writing record attributes through EntityMetadata."""

from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from src.cql_mapper.codecs import from_cql, to_cql
from src.cql_mapper.identifiers import normalize_identifier
from src.cql_mapper.models import ColumnField, EntityMetadata


def get_attribute(record: Any, path: Sequence[str]) -> Any:
    """Follow `path` from `record`; a missing intermediate object yields None."""
    current = record
    for name in path:
        if current is None:
            return None
        current = getattr(current, name)
    return current


def set_attribute(record: Any, path: Sequence[str], value: Any) -> None:
    owner = get_attribute(record, path[:-1])
    if owner is None:
        raise ValueError(f"Cannot set {'.'.join(path)!r}: {'.'.join(path[:-1])!r} is None")
    setattr(owner, path[-1], value)


def column_values(metadata: EntityMetadata, record: Any) -> dict[str, Any]:
    """{column_name: bind value} for every mapped column of `record`."""
    return {
        column.name: to_cql(column, get_attribute(record, column.attribute_path))
        for column in metadata.columns
    }


def key_of(metadata: EntityMetadata, record: Any) -> tuple[Any, ...]:
    """Primary key bind values of `record`, partition key first."""
    return tuple(
        to_cql(column, get_attribute(record, column.attribute_path))
        for column in metadata.primary_key_columns
    )


def key_values(metadata: EntityMetadata, key: Any) -> tuple[Any, ...]:
    """
    Normalize a caller-supplied key into primary key bind values.

    Accepted shapes:
      - a record instance of the entity type
      - the embedded key object (or a nested partition key object of a composite key
        when the table has no clustering columns)
      - a mapping {column or attribute name: value}
      - a tuple/list of components in primary key order (composite keys)
      - a bare scalar (single-column keys)
    """
    pk_columns = metadata.primary_key_columns

    if isinstance(key, metadata.entity_type):
        return key_of(metadata, key)

    for path, embedded_type in metadata.embedded_types.items():
        if isinstance(key, embedded_type):
            return _key_from_embedded(metadata, key, path)

    if isinstance(key, Mapping):
        values: list[Any] = []
        for column in pk_columns:
            if column.name in key:
                raw = key[column.name]
            elif column.attribute in key:
                raw = key[column.attribute]
            else:
                raise ValueError(
                    f"Key for {metadata.entity_type.__qualname__} is missing {column.name!r}"
                )
            values.append(to_cql(column, raw))
        return tuple(values)

    if isinstance(key, (tuple, list)) and len(pk_columns) > 1:
        if len(key) != len(pk_columns):
            raise ValueError(
                f"Key for {metadata.entity_type.__qualname__} needs {len(pk_columns)} "
                f"component(s), got {len(key)}"
            )
        return tuple(to_cql(column, raw) for column, raw in zip(pk_columns, key))

    if len(pk_columns) != 1:
        raise ValueError(
            f"{metadata.entity_type.__qualname__} has a composite key "
            f"({', '.join(c.name for c in pk_columns)}); a single value is not enough"
        )
    return (to_cql(pk_columns[0], key),)


def build_record(metadata: EntityMetadata, row: Any) -> Any:
    """
    Instantiate a record from a fetched row.

    Unknown columns are ignored; declared columns missing from the row keep the
    attribute's default (or None / an empty collection when there is none).
    """
    values = _normalized_row(row)
    by_path = {column.attribute_path: column for column in metadata.columns}
    return _instantiate(metadata.entity_type, (), metadata, by_path, values)


def row_as_mapping(row: Any) -> Mapping[str, Any]:
    """Rows may be mappings, named tuples (the driver default) or pairs."""
    if isinstance(row, Mapping):
        return row
    as_dict = getattr(row, "_asdict", None)
    if callable(as_dict):
        return as_dict()
    return dict(row)


# ---------- helpers ----------


def _key_from_embedded(metadata: EntityMetadata, key: Any, path: tuple[str, ...]) -> tuple[Any, ...]:
    depth = len(path)
    columns = [c for c in metadata.primary_key_columns if c.attribute_path[:depth] == path]
    if len(columns) != len(metadata.primary_key_columns):
        raise ValueError(
            f"{type(key).__qualname__} covers only part of the primary key of "
            f"{metadata.entity_type.__qualname__}"
        )
    return tuple(to_cql(c, get_attribute(key, c.attribute_path[depth:])) for c in columns)


def _normalized_row(row: Any) -> dict[str, Any]:
    return {normalize_identifier(name): value for name, value in row_as_mapping(row).items()}


def _instantiate(
    cls: type,
    prefix: tuple[str, ...],
    metadata: EntityMetadata,
    by_path: Mapping[tuple[str, ...], ColumnField],
    values: Mapping[str, Any],
) -> Any:
    init_kwargs: dict[str, Any] = {}
    late_attributes: dict[str, Any] = {}

    for dc_field in dataclasses.fields(cls):
        path = prefix + (dc_field.name,)
        value: Any
        if path in metadata.embedded_types:
            value = _instantiate(metadata.embedded_types[path], path, metadata, by_path, values)
        elif path in by_path:
            column = by_path[path]
            name = normalize_identifier(column.name)
            if name in values:
                value = from_cql(column, values[name])
            elif _has_default(dc_field):
                continue
            else:
                value = from_cql(column, None)
        elif _has_default(dc_field):
            continue
        else:
            value = None

        if dc_field.init:
            init_kwargs[dc_field.name] = value
        else:
            late_attributes[dc_field.name] = value

    instance = cls(**init_kwargs)
    for name, value in late_attributes.items():
        setattr(instance, name, value)
    return instance


def _has_default(dc_field: dataclasses.Field[Any]) -> bool:
    return (
        dc_field.default is not dataclasses.MISSING
        or dc_field.default_factory is not dataclasses.MISSING
    )


def generate_missing_keys(metadata: EntityMetadata, record: Any) -> None:
    """Fill `uuid` (random) and `timeuuid` (time-based) key columns left as None."""
    for column in metadata.primary_key_columns:
        if not column.is_generated_key:
            continue
        if get_attribute(record, column.attribute_path) is not None:
            continue
        value = uuid.uuid1() if column.cql_type == "timeuuid" else uuid.uuid4()
        set_attribute(record, column.attribute_path, value)
