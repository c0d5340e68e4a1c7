from __future__ import annotations

import datetime as dt

import pytest

from src.cql_mapper.codecs import (
    collection_delta,
    decode_enum,
    empty_collection,
    encode_enum,
    from_cql,
    to_cql,
    to_microseconds,
)
from src.cql_mapper.metadata import MetadataRegistry
from tests.cql_mapper.entities import Colour, Palette, SimpleEntity, Size

METADATA = MetadataRegistry().metadata_for(SimpleEntity)
PALETTE = MetadataRegistry().metadata_for(Palette)


def test_enum_ordinal_and_name_encodings():
    colour = METADATA.column("colour")
    size = METADATA.column("size")

    assert encode_enum(colour, Colour.GREEN) == 1
    assert decode_enum(colour, 1) is Colour.GREEN
    assert encode_enum(size, Size.LARGE) == "LARGE"
    assert decode_enum(size, "LARGE") is Size.LARGE


def test_raw_enum_values_pass_through():
    colour = METADATA.column("colour")

    assert encode_enum(colour, 2) == 2
    assert decode_enum(colour, Colour.RED) is Colour.RED


def test_null_collections_read_back_empty():
    assert from_cql(METADATA.column("tags"), None) == set()
    assert from_cql(METADATA.column("items"), None) == []
    assert from_cql(METADATA.column("scores"), None) == {}
    assert from_cql(METADATA.column("name"), None) is None


def test_driver_containers_are_rebuilt_as_declared_types():
    # the driver hands back SortedSet / OrderedMapSerializedKey; any iterable/mapping works
    assert from_cql(METADATA.column("tags"), ("b", "a")) == {"a", "b"}
    assert from_cql(METADATA.column("items"), (3, 1)) == [3, 1]
    assert from_cql(METADATA.column("scores"), [("a", 1)]) == {"a": 1}


def test_to_cql_copies_collections():
    items = [1, 2]

    bound = to_cql(METADATA.column("items"), items)

    assert bound == items
    assert bound is not items


def test_empty_collection_rejects_scalars():
    with pytest.raises(ValueError):
        empty_collection(METADATA.column("age"))


def test_collection_delta_wraps_single_elements():
    assert collection_delta(METADATA.column("tags"), "x") == {"x"}
    assert collection_delta(METADATA.column("tags"), ["x", "y"]) == {"x", "y"}
    assert collection_delta(METADATA.column("items"), 5) == [5]
    assert collection_delta(METADATA.column("items"), (5, 6)) == [5, 6]
    # strings are elements, not sequences of characters
    assert collection_delta(METADATA.column("tags"), "xy") == {"xy"}


def test_enum_collection_elements_use_the_column_encoding():
    colours, sizes, stock = (PALETTE.column(n) for n in ("colours", "sizes", "stock"))

    assert (colours.cql_type, sizes.cql_type, stock.cql_type) == (
        "list<int>",
        "set<text>",
        "map<int, int>",
    )
    assert to_cql(colours, [Colour.BLUE, Colour.RED]) == [2, 0]
    assert to_cql(sizes, {Size.LARGE}) == {"LARGE"}
    assert to_cql(stock, {Colour.GREEN: 5}) == {1: 5}
    assert from_cql(colours, [2, 0]) == [Colour.BLUE, Colour.RED]
    assert from_cql(sizes, ["SMALL"]) == {Size.SMALL}
    assert from_cql(stock, {1: 5}) == {Colour.GREEN: 5}


def test_enum_collection_deltas_are_encoded():
    colours, sizes, stock = (PALETTE.column(n) for n in ("colours", "sizes", "stock"))

    assert collection_delta(colours, Colour.GREEN) == [1]
    assert collection_delta(sizes, [Size.SMALL]) == {"SMALL"}
    assert collection_delta(stock, {Colour.RED: 1}) == {0: 1}


def test_to_microseconds():
    moment = dt.datetime(1970, 1, 1, 0, 0, 1, 500, tzinfo=dt.timezone.utc)

    assert to_microseconds(moment) == 1_000_500
    assert to_microseconds(dt.datetime(1970, 1, 1, 0, 0, 2)) == 2_000_000
    assert to_microseconds(42) == 42
