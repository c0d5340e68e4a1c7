"""End-to-end checks against a real node; run with --include-cassandra-tests."""

import time
import uuid
from decimal import Decimal

import pytest

from src import settings
from src.cql_mapper.options import WriteOptions
from src.cql_mapper.session import MappingSession
from tests.cql_mapper.entities import (
    Colour,
    Event,
    EventKey,
    IndexedEntity,
    PartitionKey,
    Reading,
    SimpleEntity,
    Size,
    VersionedEntity,
)

ENTITY_TYPES = (SimpleEntity, VersionedEntity, IndexedEntity, Event, Reading)


@pytest.fixture
def mapper(cassandra_fixture) -> MappingSession:
    mapper = MappingSession.from_session(settings.CASSANDRA_KEYSPACE, cassandra_fixture)
    mapper.schema_sync.drop_all(settings.CASSANDRA_KEYSPACE, ENTITY_TYPES)
    return mapper


def test_round_trip(mapper):
    entity = SimpleEntity(
        name="n",
        age=3,
        price=Decimal("1.25"),
        colour=Colour.GREEN,
        size=Size.LARGE,
        tags={"a"},
        items=[2, 1],
        scores={"k": 1},
    )

    mapper.save(entity)

    assert mapper.get(SimpleEntity, entity.id) == entity
    mapper.delete(entity)
    assert mapper.get(SimpleEntity, entity.id) is None


def test_optimistic_versioning(mapper):
    mapper.save(VersionedEntity(id=1, name="a"))
    mine = mapper.get(VersionedEntity, 1)
    theirs = mapper.get(VersionedEntity, 1)

    assert mapper.save(theirs) is theirs
    assert mapper.save(mine) is None
    assert mapper.get(VersionedEntity, 1).version == 2


def test_collection_updates(mapper):
    entity = SimpleEntity(items=[1, 2])
    mapper.save(entity)

    mapper.prepend(entity.id, SimpleEntity, "items", [8, 9])
    mapper.append(entity.id, SimpleEntity, "tags", "t")
    mapper.replace_at(entity.id, SimpleEntity, "items", 0, 3)

    loaded = mapper.get(SimpleEntity, entity.id)
    assert loaded.items == [8, 9, 1, 0]
    assert loaded.tags == {"t"}


def test_ttl_expires_rows(mapper):
    key = EventKey(PartitionKey("u", "r"), 1)
    mapper.save(Event(key=key, payload="p"), WriteOptions(ttl=1))

    time.sleep(2)

    assert mapper.get(Event, key) is None


def test_tables_and_indexes_are_created(mapper):
    mapper.save(IndexedEntity(id=1, email="e@x", nickname="n"))
    mapper.save(Reading(sensor=str(uuid.uuid4()), taken=1, value=1.0, unit="c"))

    live = mapper.driver.get_live_table(settings.CASSANDRA_KEYSPACE, "indexed_entity")
    assert live.indexes["email"] == "indexed_entity_email_idx"
    assert live.indexes["nickname"] == "custom_nick_idx"
    assert mapper.schema_sync.get_script(settings.CASSANDRA_KEYSPACE, IndexedEntity) == ""
