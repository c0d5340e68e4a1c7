"""
Value conversion between record attributes and CQL bind/row values.

- Enums are stored either as their ordinal (position in the Enum) or their name;
  collection elements (map keys and values) are encoded the same way.
- Collections come back from the driver as driver-specific containers
  (``SortedSet``, ``OrderedMapSerializedKey``) and are rebuilt as the declared
  Python container. A null collection reads back as an empty one.
- Write timestamps (``USING TIMESTAMP``) are epoch microseconds.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from src.cql_mapper.models import ColumnField, ColumnKind, EnumEncoding

_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)


def to_cql(column: ColumnField, value: Any) -> Any:
    """Convert an attribute value into the value bound for `column`."""
    if value is None:
        return None
    if column.enum_type is not None:
        return encode_enum(column, value)
    if column.kind == ColumnKind.LIST:
        return [encode_element(column, element) for element in value]
    if column.kind == ColumnKind.SET:
        return {encode_element(column, element) for element in value}
    if column.kind == ColumnKind.MAP:
        return {
            encode_element(column, k, position=0): encode_element(column, v, position=1)
            for k, v in dict(value).items()
        }
    return value


def from_cql(column: ColumnField, value: Any) -> Any:
    """Convert a fetched column value into the attribute value for `column`."""
    if value is None:
        return empty_collection(column) if column.is_collection else None
    if column.enum_type is not None:
        return decode_enum(column, value)
    if column.is_collection:
        container = column.python_type if isinstance(column.python_type, type) else None
        if column.kind == ColumnKind.MAP:
            return (container or dict)(
                {
                    decode_element(column, k, position=0): decode_element(column, v, position=1)
                    for k, v in dict(value).items()
                }
            )
        elements = (decode_element(column, element) for element in value)
        if column.kind == ColumnKind.SET:
            return (container or set)(elements)
        return (container or list)(elements)
    return value


def encode_enum(column: ColumnField, value: Any) -> Any:
    """Enum member -> ordinal or name; raw ints/strings pass through unchanged."""
    return _encode_member(column.enum_type, column.enum_encoding, value)  # type: ignore[arg-type]


def decode_enum(column: ColumnField, value: Any) -> Enum:
    return _decode_member(column.enum_type, column.enum_encoding, value)  # type: ignore[arg-type]


def encode_element(column: ColumnField, value: Any, position: int = 0) -> Any:
    """Bind value of one collection element; `position` 1 is a map's value side."""
    enum_type = _element_enum_type(column, position)
    if enum_type is None:
        return value
    return _encode_member(enum_type, column.enum_encoding, value)


def decode_element(column: ColumnField, value: Any, position: int = 0) -> Any:
    enum_type = _element_enum_type(column, position)
    if enum_type is None or value is None:
        return value
    return _decode_member(enum_type, column.enum_encoding, value)


def empty_collection(column: ColumnField) -> Any:
    """Empty container matching the column's declared Python type."""
    container = column.python_type if isinstance(column.python_type, type) else None
    if column.kind == ColumnKind.MAP:
        return (container or dict)()
    if column.kind == ColumnKind.SET:
        return (container or set)()
    if column.kind == ColumnKind.LIST:
        return (container or list)()
    raise ValueError(f"Column {column.name!r} is not a collection")


def collection_delta(column: ColumnField, value: Any) -> Any:
    """
    Normalize the operand of an append/prepend into the column's container type.

    A single element is wrapped; a container of the matching shape is used as is.
    Maps only accept mappings. Elements are encoded like a full write of the column.
    """
    if column.kind == ColumnKind.MAP:
        if not isinstance(value, Mapping):
            raise TypeError(f"Map column {column.name!r} needs a mapping, got {type(value)!r}")
        return to_cql(column, value)
    if column.kind == ColumnKind.SET:
        return to_cql(column, value if _is_bulk(value) else {value})
    if column.kind == ColumnKind.LIST:
        return to_cql(column, value if _is_bulk(value) else [value])
    raise TypeError(f"Column {column.name!r} is not a collection")


def to_microseconds(value: dt.datetime | int) -> int:
    """Epoch microseconds for a write timestamp; ints are assumed to be microseconds already."""
    if isinstance(value, dt.datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)
        delta = aware - _EPOCH
        return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    return int(value)


def _is_bulk(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, bytearray, Mapping))


def _element_enum_type(column: ColumnField, position: int) -> type[Enum] | None:
    if position < len(column.element_enum_types):
        return column.element_enum_types[position]
    return None


def _encode_member(enum_type: type[Enum], encoding: EnumEncoding, value: Any) -> Any:
    if not isinstance(value, Enum):
        return value
    if encoding == EnumEncoding.ORDINAL:
        return list(enum_type).index(value)
    return value.name


def _decode_member(enum_type: type[Enum], encoding: EnumEncoding, value: Any) -> Enum:
    if isinstance(value, Enum):
        return value
    if encoding == EnumEncoding.ORDINAL:
        return list(enum_type)[int(value)]
    return enum_type[str(value)]
