from __future__ import annotations

import uuid
from collections import namedtuple

import pytest

from src.cql_mapper.metadata import MetadataRegistry
from src.cql_mapper.records import (
    build_record,
    column_values,
    generate_missing_keys,
    key_of,
    key_values,
    row_as_mapping,
)
from tests.cql_mapper.entities import (
    Colour,
    Event,
    EventKey,
    Page,
    PageKey,
    PartitionKey,
    SimpleEntity,
    Size,
)

REGISTRY = MetadataRegistry()


# ---------- keys ----------


def test_key_of_record_follows_primary_key_order():
    record = Event(key=EventKey(PartitionKey("bob", "eu"), 3))

    assert key_of(REGISTRY.metadata_for(Event), record) == ("bob", "eu", 3)


@pytest.mark.parametrize(
    "key",
    [
        EventKey(PartitionKey("bob", "eu"), 3),
        ("bob", "eu", 3),
        ["bob", "eu", 3],
        {"user": "bob", "region": "eu", "created": 3},
    ],
)
def test_key_values_accepts_every_key_shape(key):
    assert key_values(REGISTRY.metadata_for(Event), key) == ("bob", "eu", 3)


def test_partial_embedded_key_is_rejected():
    with pytest.raises(ValueError, match="only part"):
        key_values(REGISTRY.metadata_for(Event), PartitionKey("bob", "eu"))


def test_wrong_component_count_is_rejected():
    with pytest.raises(ValueError, match="3 component"):
        key_values(REGISTRY.metadata_for(Event), ("bob", "eu"))


def test_scalar_key_for_composite_table_is_rejected():
    with pytest.raises(ValueError, match="composite key"):
        key_values(REGISTRY.metadata_for(Page), "site")


def test_mapping_key_missing_component_is_rejected():
    with pytest.raises(ValueError, match="missing"):
        key_values(REGISTRY.metadata_for(Page), {"site": "a", "path": "/"})


# ---------- values ----------


def test_column_values_encode_every_column():
    record = SimpleEntity(id=uuid.uuid4(), colour=Colour.GREEN, size=Size.LARGE)

    values = column_values(REGISTRY.metadata_for(SimpleEntity), record)

    assert values["colour"] == 1
    assert values["size"] == "LARGE"
    assert values["name"] is None


def test_generate_missing_keys_only_fills_unset_uuid_keys():
    metadata = REGISTRY.metadata_for(SimpleEntity)
    record = SimpleEntity()
    existing = uuid.uuid4()

    generate_missing_keys(metadata, record)
    assert isinstance(record.id, uuid.UUID)

    record.id = existing
    generate_missing_keys(metadata, record)
    assert record.id == existing


# ---------- rows ----------


def test_build_record_ignores_unknown_and_defaults_missing_columns():
    metadata = REGISTRY.metadata_for(SimpleEntity)
    key = uuid.uuid4()

    record = build_record(metadata, {"id": key, "name": "n", "tags": None, "unrelated": 1})

    assert record.id == key
    assert record.name == "n"
    assert record.tags == set()
    assert record.age == 0
    assert record.colour is Colour.RED
    assert record.items == []


def test_build_record_rebuilds_embedded_keys():
    row = {"site": "s", "path": "/a", "revision": 2, "body": "b"}

    record = build_record(REGISTRY.metadata_for(Page), row)

    assert record == Page(key=PageKey("s", "/a", 2), body="b")


def test_build_record_matches_column_names_case_insensitively():
    record = build_record(REGISTRY.metadata_for(Page), {"SITE": "s", "Path": "/", "revision": 1})

    assert record.key == PageKey("s", "/", 1)


def test_row_as_mapping_accepts_named_tuples_and_pairs():
    Row = namedtuple("Row", ["id", "name"])

    assert row_as_mapping(Row(1, "a")) == {"id": 1, "name": "a"}
    assert row_as_mapping([("id", 1)]) == {"id": 1}
