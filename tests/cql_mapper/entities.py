"""Record types shared by the mapper tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID

from src.cql_mapper.declarations import column, table
from src.cql_mapper.models import EnumEncoding


class Colour(Enum):
    RED = "r"
    GREEN = "g"
    BLUE = "b"


class Size(Enum):
    SMALL = 1
    LARGE = 2


@table("simple_entity")
@dataclass
class SimpleEntity:
    id: UUID | None = column(primary_key=True, default=None)
    name: str | None = None
    age: int = 0
    price: Decimal | None = None
    colour: Colour = Colour.RED
    size: Size = column(enum_as=EnumEncoding.NAME, default=Size.SMALL)
    tags: set[str] = field(default_factory=set)
    items: list[int] = field(default_factory=list)
    scores: dict[str, int] = field(default_factory=dict)


@table("palettes")
@dataclass
class Palette:
    id: int = column(primary_key=True, default=0)
    colours: list[Colour] = field(default_factory=list)
    sizes: set[Size] = column(enum_as=EnumEncoding.NAME, default_factory=set)
    stock: dict[Colour, int] = field(default_factory=dict)


@table("versioned_entity")
@dataclass
class VersionedEntity:
    id: int = column(primary_key=True, default=0)
    name: str = ""
    version: int = column(version=True, default=0)


@table("indexed_entity")
@dataclass
class IndexedEntity:
    id: int = column(primary_key=True, default=0)
    email: str = column(index=True, default="")
    nickname: str = column(index="custom_nick_idx", default="")
    notes: str = ""


@dataclass
class PartitionKey:
    user: str = ""
    region: str = ""


@dataclass
class EventKey:
    partition: PartitionKey = field(default_factory=PartitionKey)
    created: int = 0


@table("events", default_ttl=600)
@dataclass
class Event:
    key: EventKey = column(primary_key=True, default_factory=EventKey)
    payload: str = ""


@dataclass
class PageKey:
    site: str = ""
    path: str = ""
    revision: int = 0


@table("pages")
@dataclass
class Page:
    key: PageKey = column(primary_key=True, default_factory=PageKey)
    body: str = ""


@table("readings")
@dataclass
class Reading:
    sensor: str = column(partition_key=True, default="")
    taken: int = column(clustering_key=True, order="desc", default=0)
    value: float = 0.0
    unit: str = column(static=True, default="")
    transient_note: str = column(transient=True, default="")
