"""
Record declarations: how a dataclass describes its table.

A record type is a plain ``@dataclass`` decorated with ``@table``; individual
attributes are tuned with ``column(...)``. ``DataclassFieldExtractor`` reads
those declarations once and produces the column list consumed by
``MetadataRegistry``.

Example
-------
    @table("users", default_ttl=3600)
    @dataclass
    class User:
        id: UUID | None = column(primary_key=True, default=None)
        email: str = column(index=True, default="")
        tags: set[str] = column(default_factory=set)
        status: Status = column(enum_as=EnumEncoding.NAME, default=Status.ACTIVE)
        version: int = column(version=True, default=0)

CQL types are inferred from annotations unless ``cql_type`` is given.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import ipaddress
import types
import typing
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Protocol, TypeVar
from uuid import UUID

from src.constants import DEFAULT_KEY_ATTRIBUTE
from src.cql_mapper.errors import MetadataError
from src.cql_mapper.identifiers import build_index_name
from src.cql_mapper.models import (
    ClusteringOrder,
    ColumnField,
    ColumnKind,
    EnumEncoding,
    KeyRole,
)

_COLUMN_METADATA_KEY = "cql_mapper"
_TABLE_ATTRIBUTE = "__cql_table__"

_SCALAR_CQL_TYPES: Mapping[type, str] = MappingProxyType(
    {
        bool: "boolean",
        int: "int",
        float: "double",
        str: "text",
        bytes: "blob",
        Decimal: "decimal",
        UUID: "uuid",
        dt.datetime: "timestamp",
        dt.date: "date",
        dt.time: "time",
        dt.timedelta: "duration",
        ipaddress.IPv4Address: "inet",
        ipaddress.IPv6Address: "inet",
    }
)

_COLLECTION_ORIGINS: Mapping[type, ColumnKind] = MappingProxyType(
    {
        list: ColumnKind.LIST,
        tuple: ColumnKind.LIST,
        set: ColumnKind.SET,
        frozenset: ColumnKind.SET,
        dict: ColumnKind.MAP,
    }
)

T = TypeVar("T")


# ---------- declaration API ----------


@dataclass(frozen=True)
class ColumnOptions:
    """Per-attribute mapping options stored in dataclass field metadata."""

    name: str | None = None
    cql_type: str | None = None
    primary_key: bool = False
    partition_key: bool = False
    clustering_key: bool = False
    order: ClusteringOrder = ClusteringOrder.ASC
    static: bool = False
    version: bool = False
    index: str | bool | None = None
    enum_as: EnumEncoding = EnumEncoding.ORDINAL
    transient: bool = False
    frozen: bool = False


@dataclass(frozen=True)
class TableOptions:
    """Table-level mapping options attached by `@table`."""

    name: str | None = None
    default_ttl: int | None = None
    indexes: Mapping[str, str | bool] = field(default_factory=lambda: MappingProxyType({}))


def column(
    *,
    name: str | None = None,
    cql_type: str | None = None,
    primary_key: bool = False,
    partition_key: bool = False,
    clustering_key: bool = False,
    order: ClusteringOrder | str = ClusteringOrder.ASC,
    static: bool = False,
    version: bool = False,
    index: str | bool | None = None,
    enum_as: EnumEncoding | str = EnumEncoding.ORDINAL,
    transient: bool = False,
    frozen: bool = False,
    default: Any = dataclasses.MISSING,
    default_factory: Callable[[], Any] | Any = dataclasses.MISSING,
) -> Any:
    """Declare a mapped dataclass attribute (wraps `dataclasses.field`)."""
    options = ColumnOptions(
        name=name,
        cql_type=cql_type.strip().lower() if cql_type else None,
        primary_key=primary_key,
        partition_key=partition_key,
        clustering_key=clustering_key,
        order=ClusteringOrder(str(order).upper()),
        static=static,
        version=version,
        index=index,
        enum_as=EnumEncoding(enum_as),
        transient=transient,
        frozen=frozen,
    )
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={_COLUMN_METADATA_KEY: options},
    )


def table(
    name: str | None = None,
    *,
    default_ttl: int | None = None,
    indexes: Mapping[str, str | bool] | None = None,
) -> Callable[[type[T]], type[T]]:
    """
    Class decorator naming the table of a record dataclass.

    `indexes` maps attribute or column names to index names, as an alternative to
    `column(index=...)`, with the same meaning: True generates a name, an empty name
    declares no index.
    """

    def decorate(cls: type[T]) -> type[T]:
        options = TableOptions(
            name=name,
            default_ttl=default_ttl,
            indexes=MappingProxyType(dict(indexes or {})),
        )
        setattr(cls, _TABLE_ATTRIBUTE, options)
        return cls

    return decorate


def is_declared_table(candidate: object) -> bool:
    """True for classes decorated with `@table`."""
    return isinstance(candidate, type) and _TABLE_ATTRIBUTE in vars(candidate)


# ---------- extraction ----------


@dataclass(frozen=True)
class EntityDeclaration:
    """Raw, not yet validated description of a record type."""

    entity_type: type
    table_name: str
    default_ttl: int | None
    columns: tuple[ColumnField, ...]
    embedded_types: Mapping[tuple[str, ...], type]


class FieldExtractor(Protocol):
    """Anything able to describe the mapped fields of a record type."""

    def declaration_of(self, entity_type: type) -> EntityDeclaration: ...


class DataclassFieldExtractor:
    """Read `@table` / `column(...)` declarations from a dataclass."""

    def declaration_of(self, entity_type: type) -> EntityDeclaration:
        if not dataclasses.is_dataclass(entity_type):
            raise MetadataError(entity_type, "record types must be dataclasses")

        table_options: TableOptions = getattr(entity_type, _TABLE_ATTRIBUTE, TableOptions())
        table_name = table_options.name or entity_type.__name__.lower()

        embedded_types: dict[tuple[str, ...], type] = {}
        columns = self._columns_of(entity_type, table_name, (), None, embedded_types)
        columns = _apply_table_indexes(columns, table_name, table_options.indexes)
        columns = _default_key_role(columns)

        return EntityDeclaration(
            entity_type=entity_type,
            table_name=table_name,
            default_ttl=table_options.default_ttl,
            columns=tuple(columns),
            embedded_types=MappingProxyType(embedded_types),
        )

    def fields_of(self, entity_type: type) -> tuple[ColumnField, ...]:
        """Ordered mapped columns of `entity_type`."""
        return self.declaration_of(entity_type).columns

    def _columns_of(
        self,
        owner: type,
        table_name: str,
        prefix: tuple[str, ...],
        key_context: _KeyContext | None,
        embedded_types: dict[tuple[str, ...], type],
    ) -> list[ColumnField]:
        hints = _type_hints(owner)
        columns: list[ColumnField] = []
        mapped_fields = [f for f in dataclasses.fields(owner) if not _options_of(f).transient]

        for position, dc_field in enumerate(mapped_fields):
            options = _options_of(dc_field)
            path = prefix + (dc_field.name,)
            annotation = _strip_optional(hints.get(dc_field.name, Any))

            if dataclasses.is_dataclass(annotation) and isinstance(annotation, type):
                if key_context is None and not options.primary_key:
                    raise MetadataError(
                        owner,
                        f"attribute {dc_field.name!r} is a dataclass; only embedded keys "
                        "(column(primary_key=True)) may be nested",
                    )
                embedded_types[path] = annotation
                nested_context = _KeyContext.for_embedded(annotation, key_context)
                columns.extend(
                    self._columns_of(annotation, table_name, path, nested_context, embedded_types)
                )
                continue

            role = _key_role(options, key_context, position)
            columns.append(
                _build_column(owner, table_name, path, annotation, options, role)
            )
        return columns


# ---------- helpers ----------


@dataclass(frozen=True)
class _KeyContext:
    """Where we are while flattening an embedded key."""

    all_partition: bool
    has_nested_partition: bool

    @classmethod
    def for_embedded(cls, key_type: type, parent: _KeyContext | None) -> _KeyContext:
        if parent is not None:
            # a key nested inside an embedded key is the partition key
            return cls(all_partition=True, has_nested_partition=False)
        hints = _type_hints(key_type)
        nested = any(
            dataclasses.is_dataclass(_strip_optional(hints.get(f.name, Any)))
            for f in dataclasses.fields(key_type)
        )
        return cls(all_partition=False, has_nested_partition=nested)


def _options_of(dc_field: dataclasses.Field[Any]) -> ColumnOptions:
    return dc_field.metadata.get(_COLUMN_METADATA_KEY, ColumnOptions())


def _type_hints(owner: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(owner)
    except (NameError, TypeError) as e:
        raise MetadataError(owner, f"cannot resolve type annotations ({e})") from e


def _strip_optional(annotation: Any) -> Any:
    """`X | None` / `Optional[X]` -> `X`; anything else unchanged."""
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _key_role(options: ColumnOptions, key_context: _KeyContext | None, position: int) -> KeyRole:
    if options.partition_key:
        return KeyRole.PARTITION
    if options.clustering_key:
        return KeyRole.CLUSTERING
    if key_context is None:
        return KeyRole.PARTITION if options.primary_key else KeyRole.NONE
    if key_context.all_partition:
        return KeyRole.PARTITION
    if key_context.has_nested_partition:
        return KeyRole.CLUSTERING
    return KeyRole.PARTITION if position == 0 else KeyRole.CLUSTERING


def _build_column(
    owner: type,
    table_name: str,
    path: tuple[str, ...],
    annotation: Any,
    options: ColumnOptions,
    role: KeyRole,
) -> ColumnField:
    column_name = options.name or path[-1]
    kind, cql_type, python_type, element_types, enum_type = _resolve_type(
        owner, path[-1], annotation, options
    )

    return ColumnField(
        name=column_name,
        attribute_path=path,
        cql_type=cql_type,
        kind=kind,
        python_type=python_type,
        element_types=element_types,
        enum_type=enum_type,
        element_enum_types=_element_enum_types(element_types),
        enum_encoding=options.enum_as,
        key_role=role,
        clustering_order=options.order,
        is_static=options.static,
        is_version=options.version,
        index_name=_index_name(options.index, table_name, column_name),
        is_frozen=options.frozen,
    )


def _resolve_type(
    owner: type, attribute: str, annotation: Any, options: ColumnOptions
) -> tuple[ColumnKind, str, type | None, tuple[type, ...], type[Enum] | None]:
    """Return (kind, cql_type, python_type, element_types, enum_type) for one attribute."""
    origin = typing.get_origin(annotation) or annotation
    args = typing.get_args(annotation)

    if isinstance(origin, type) and origin in _COLLECTION_ORIGINS:
        kind = _COLLECTION_ORIGINS[origin]
        element_types = tuple(a for a in args if a is not Ellipsis)
        expected = 2 if kind == ColumnKind.MAP else 1
        if len(element_types) != expected:
            raise MetadataError(
                owner, f"collection attribute {attribute!r} must declare its element type(s)"
            )
        element_cql = [_scalar_cql_type(owner, attribute, a, options) for a in element_types]
        cql_type = options.cql_type or f"{kind.value}<{', '.join(element_cql)}>"
        return kind, cql_type, origin, element_types, None

    if options.cql_type is not None:
        kind = _kind_from_cql_type(options.cql_type)
        enum_type = annotation if _is_enum(annotation) else None
        python_type = annotation if isinstance(annotation, type) else None
        return kind, options.cql_type, python_type, (), enum_type

    if _is_enum(annotation):
        cql_type = "int" if options.enum_as == EnumEncoding.ORDINAL else "text"
        return ColumnKind.SCALAR, cql_type, annotation, (), annotation

    return (
        ColumnKind.SCALAR,
        _scalar_cql_type(owner, attribute, annotation, options),
        annotation,
        (),
        None,
    )


def _scalar_cql_type(owner: type, attribute: str, annotation: Any, options: ColumnOptions) -> str:
    if _is_enum(annotation):
        return "int" if options.enum_as == EnumEncoding.ORDINAL else "text"
    if isinstance(annotation, type):
        for python_type in annotation.__mro__:
            if python_type in _SCALAR_CQL_TYPES:
                return _SCALAR_CQL_TYPES[python_type]
    raise MetadataError(
        owner,
        f"attribute {attribute!r} has unmappable type {annotation!r}; pass cql_type= explicitly",
    )


def _kind_from_cql_type(cql_type: str) -> ColumnKind:
    base = cql_type
    if base.startswith("frozen<") and base.endswith(">"):
        base = base[len("frozen<") : -1]
    for kind in (ColumnKind.LIST, ColumnKind.SET, ColumnKind.MAP):
        if base.startswith(f"{kind.value}<"):
            return kind
    if base == "counter":
        return ColumnKind.COUNTER
    return ColumnKind.SCALAR


def _is_enum(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, Enum)


def _element_enum_types(element_types: tuple[type, ...]) -> tuple[type[Enum] | None, ...]:
    """Per-element Enum types of a collection (map: key, value); empty when none are enums."""
    enum_types = tuple(t if _is_enum(t) else None for t in element_types)
    return enum_types if any(enum_types) else ()


def _apply_table_indexes(
    columns: list[ColumnField], table_name: str, indexes: Mapping[str, str | bool]
) -> list[ColumnField]:
    """Merge `@table(indexes=...)` into the column list (attribute or column name keys)."""
    if not indexes:
        return columns
    resolved: list[ColumnField] = []
    for col in columns:
        declared = indexes.get(col.attribute, indexes.get(col.name))
        if declared is None:
            resolved.append(col)
            continue
        resolved.append(
            dataclasses.replace(col, index_name=_index_name(declared, table_name, col.name))
        )
    return resolved


def _index_name(declared: str | bool | None, table_name: str, column_name: str) -> str | None:
    """True -> generated `<table>_<column>_idx`; False/None/"" -> no index; else the given name."""
    if declared is True:
        return build_index_name(table_name, column_name)
    if not declared:
        return None
    return str(declared)


def _default_key_role(columns: list[ColumnField]) -> list[ColumnField]:
    """Without any declared key, a top-level `id` attribute is the partition key."""
    if any(c.is_primary_key for c in columns):
        return columns
    return [
        dataclasses.replace(c, key_role=KeyRole.PARTITION)
        if c.attribute_path == (DEFAULT_KEY_ATTRIBUTE,)
        else c
        for c in columns
    ]
