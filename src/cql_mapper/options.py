"""
Caller-facing option structs.

- WriteOptions: per-write TTL, timestamp, consistency level and retry policy.
- SyncOptions: schema synchronization policy, globally or per record type.

Both are frozen; the fluent helpers return modified copies.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Self

from src.cql_mapper.codecs import to_microseconds


@dataclass(frozen=True)
class WriteOptions:
    """
    Per-operation write overrides.

    Fields
    ------
    ttl : int | None
        Seconds until the written cells expire; 0 means no expiry; None falls back to
        the record type's default TTL.
    timestamp : int | None
        Explicit write timestamp in epoch microseconds; a datetime is converted on
        construction.
    consistency_level : int | None
        A ``cassandra.ConsistencyLevel`` value.
    retry_policy : Any
        A ``cassandra.policies.RetryPolicy`` instance.
    """

    ttl: int | None = None
    timestamp: int | None = None
    consistency_level: int | None = None
    retry_policy: Any = None

    def __post_init__(self) -> None:
        if self.ttl is not None and self.ttl < 0:
            raise ValueError(f"ttl must be >= 0 seconds, got {self.ttl}")
        if self.timestamp is not None:
            object.__setattr__(self, "timestamp", to_microseconds(self.timestamp))

    def with_ttl(self, ttl: int) -> Self:
        return dataclasses.replace(self, ttl=ttl)

    def with_timestamp(self, timestamp: int | dt.datetime) -> Self:
        return dataclasses.replace(self, timestamp=timestamp)

    def with_consistency_level(self, consistency_level: int) -> Self:
        return dataclasses.replace(self, consistency_level=consistency_level)

    def with_retry_policy(self, retry_policy: Any) -> Self:
        return dataclasses.replace(self, retry_policy=retry_policy)

    def effective_ttl(self, default_ttl: int | None) -> int | None:
        """Explicit TTL wins; otherwise the record type's default."""
        return self.ttl if self.ttl is not None else default_ttl


class SyncOption(StrEnum):
    DO_NOT_SYNC = "do_not_sync"
    DO_NOT_ADD_COLUMNS = "do_not_add_columns"
    DO_NOT_DROP_COLUMNS = "do_not_drop_columns"
    DO_NOT_DROP_CUSTOM_INDEX = "do_not_drop_custom_index"


@dataclass(frozen=True)
class SyncOptions:
    """
    Schema synchronization policy.

    `options` apply to every record type; a type listed in `per_type` uses its own set
    instead of the global one.
    """

    options: frozenset[SyncOption] = frozenset()
    per_type: Mapping[type, frozenset[SyncOption]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def with_options(cls, *options: SyncOption) -> SyncOptions:
        return cls(options=frozenset(options))

    def add(self, option: SyncOption, *, entity_type: type | None = None) -> Self:
        """Return a copy with `option` added globally or for one record type."""
        if entity_type is None:
            return dataclasses.replace(self, options=self.options | {option})
        per_type = dict(self.per_type)
        per_type[entity_type] = per_type.get(entity_type, frozenset()) | {option}
        return dataclasses.replace(self, per_type=MappingProxyType(per_type))

    def do_not_sync(self, entity_type: type | None = None) -> Self:
        return self.add(SyncOption.DO_NOT_SYNC, entity_type=entity_type)

    def do_not_add_columns(self, entity_type: type | None = None) -> Self:
        return self.add(SyncOption.DO_NOT_ADD_COLUMNS, entity_type=entity_type)

    def do_not_drop_columns(self, entity_type: type | None = None) -> Self:
        return self.add(SyncOption.DO_NOT_DROP_COLUMNS, entity_type=entity_type)

    def do_not_drop_custom_index(self, entity_type: type | None = None) -> Self:
        return self.add(SyncOption.DO_NOT_DROP_CUSTOM_INDEX, entity_type=entity_type)

    def options_for(self, entity_type: type) -> frozenset[SyncOption]:
        return self.per_type.get(entity_type, self.options)

    def has(self, option: SyncOption, entity_type: type) -> bool:
        return option in self.options_for(entity_type)
