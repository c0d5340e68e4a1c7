from __future__ import annotations

import datetime as dt
import threading
import time
import uuid
from decimal import Decimal

import pytest

from src.cql_mapper.driver.ports import ExecutionResult
from src.cql_mapper.errors import AmbiguousResultError
from src.cql_mapper.options import SyncOptions, WriteOptions
from src.cql_mapper.session import MappingSession
from src.cql_mapper.schema.live import LiveTable
from src.cql_mapper.statements import CreateTable, Delete, Insert, Select, Update
from tests.cql_mapper.entities import (
    Colour,
    Event,
    EventKey,
    Page,
    PageKey,
    Palette,
    PartitionKey,
    SimpleEntity,
    Size,
    VersionedEntity,
)
from tests.cql_mapper.fakes import FakeDriver

KS = "unittest"


class DuplicatingDriver(FakeDriver):
    """Returns every matching row twice."""

    def _apply_Select(self, statement: Select) -> ExecutionResult:
        result = super()._apply_Select(statement)
        return ExecutionResult(rows=tuple(result.rows) * 2)


class SlowSchemaDriver(FakeDriver):
    """Takes a while to read the live schema, widening the window for racing syncs."""

    def get_live_table(self, keyspace: str, table_name: str) -> LiveTable | None:
        time.sleep(0.05)
        return super().get_live_table(keyspace, table_name)


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def session(driver) -> MappingSession:
    return MappingSession(KS, driver)


def make_entity(**overrides) -> SimpleEntity:
    values = dict(
        id=uuid.uuid4(),
        name="name",
        age=41,
        price=Decimal("9.99"),
        colour=Colour.BLUE,
        size=Size.LARGE,
        tags={"a", "b"},
        items=[3, 1, 2],
        scores={"x": 1, "y": 2},
    )
    values.update(overrides)
    return SimpleEntity(**values)


# ---------- save / get / delete ----------


def test_round_trip_preserves_every_field_kind(session):
    entity = make_entity()

    session.save(entity)

    assert session.get(SimpleEntity, entity.id) == entity


def test_first_use_syncs_the_table(session, driver):
    session.save(make_entity())

    assert isinstance(driver.executed[0], CreateTable)
    assert isinstance(driver.executed[1], Insert)
    assert session.schema_sync.is_synced(KS, SimpleEntity)


def test_save_generates_missing_uuid_key(session):
    entity = make_entity(id=None)

    saved = session.save(entity)

    assert saved is entity
    assert isinstance(entity.id, uuid.UUID)
    assert session.get(SimpleEntity, entity.id) == entity


def test_get_absent_key_returns_none(session):
    assert session.get(SimpleEntity, uuid.uuid4()) is None


def test_save_overwrites_collections(session):
    entity = make_entity()
    session.save(entity)

    entity.tags = set()
    entity.items = [7]
    session.save(entity)

    loaded = session.get(SimpleEntity, entity.id)
    assert loaded.tags == set()
    assert loaded.items == [7]


def test_delete_and_delete_by_key(session):
    first, second = make_entity(), make_entity()
    session.save(first)
    session.save(second)

    session.delete(first)
    session.delete_by_key(SimpleEntity, second.id)

    assert session.get(SimpleEntity, first.id) is None
    assert session.get(SimpleEntity, second.id) is None


def test_delete_of_absent_key_is_a_no_op(session):
    session.delete(make_entity())


def test_composite_key_round_trip_with_every_key_shape(session):
    event = Event(key=EventKey(PartitionKey("bob", "eu"), 7), payload="hello")
    session.save(event)

    assert session.get(Event, event.key) == event
    assert session.get(Event, ("bob", "eu", 7)) == event
    assert session.get(Event, {"user": "bob", "region": "eu", "created": 7}) == event
    assert session.get(Event, ("bob", "eu", 8)) is None


def test_table_default_ttl_applies_to_saves(session, driver):
    session.save(Event(key=EventKey(PartitionKey("a", "b"), 1)))
    session.save(Event(key=EventKey(PartitionKey("a", "b"), 2)), WriteOptions(ttl=3))

    assert [s.options.ttl for s in driver.executed_of(Insert)] == [600, 3]


def test_write_options_travel_with_the_statement(session, driver):
    options = WriteOptions().with_timestamp(1234).with_consistency_level(6)

    session.save(make_entity(), options)

    statement = driver.executed_of(Insert)[-1]
    assert statement.options.timestamp == 1234
    assert statement.options.consistency_level == 6


def test_datetime_write_timestamp_is_bound_as_microseconds(session, driver):
    moment = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)

    session.save(make_entity(), WriteOptions().with_timestamp(moment))

    assert driver.executed_of(Insert)[-1].options.timestamp == 1_704_067_200_000_000


def test_get_carries_the_read_consistency_level(session, driver):
    entity = make_entity()
    session.save(entity)

    assert session.get(SimpleEntity, entity.id, consistency_level=6) == entity
    assert driver.executed_of(Select)[-1].consistency_level == 6


def test_ambiguous_single_key_lookup_raises():
    driver = DuplicatingDriver()
    session = MappingSession(KS, driver)
    entity = make_entity()
    session.save(entity)

    with pytest.raises(AmbiguousResultError):
        session.get(SimpleEntity, entity.id)


def test_ambiguous_composite_lookup_returns_first_row():
    driver = DuplicatingDriver()
    session = MappingSession(KS, driver)
    page = Page(key=PageKey("s", "/", 1), body="b")
    session.save(page)

    assert session.get(Page, page.key) == page


# ---------- optimistic versioning ----------


def test_first_save_of_versioned_record_sets_version_one(session, driver):
    entity = VersionedEntity(id=1, name="a")

    assert session.save(entity) is entity
    assert entity.version == 1
    assert driver.stored_row(KS, "versioned_entity", (1,))["version"] == 1


def test_versioned_save_increments_and_detects_conflicts(session, driver):
    session.save(VersionedEntity(id=1, name="a"))
    mine = session.get(VersionedEntity, 1)
    theirs = session.get(VersionedEntity, 1)

    theirs.name = "theirs"
    assert session.save(theirs) is theirs
    assert theirs.version == 2

    mine.name = "mine"
    assert session.save(mine) is None
    assert mine.version == 1

    stored = session.get(VersionedEntity, 1)
    assert stored.name == "theirs"
    assert stored.version == 2
    assert isinstance(driver.executed[-2], Update)


def test_versioned_update_refuses_a_write_timestamp(session):
    session.save(VersionedEntity(id=2, name="a"))
    loaded = session.get(VersionedEntity, 2)

    with pytest.raises(ValueError, match="timestamp"):
        session.save(loaded, WriteOptions(timestamp=5))

    assert loaded.version == 1
    assert session.get(VersionedEntity, 2).version == 1


def test_failed_versioned_insert_restores_version(session, driver):
    session.maybe_sync(VersionedEntity)
    driver.fail_on = lambda statement: isinstance(statement, Insert)
    entity = VersionedEntity(id=9)

    with pytest.raises(RuntimeError):
        session.save(entity)

    assert entity.version == 0


# ---------- collections without reads ----------


def test_append_to_set_list_and_map(session, driver):
    entity = make_entity(tags={"a"}, items=[1], scores={"x": 1})
    session.save(entity)
    reads_before = len(driver.executed_of(Select))

    session.append(entity.id, SimpleEntity, "tags", "x")
    session.append(entity.id, SimpleEntity, "items", [2, 3])
    session.append(entity.id, SimpleEntity, "scores", {"y": 2})

    assert len(driver.executed_of(Select)) == reads_before
    loaded = session.get(SimpleEntity, entity.id)
    assert loaded.tags == {"a", "x"}
    assert loaded.items == [1, 2, 3]
    assert loaded.scores == {"x": 1, "y": 2}


def test_append_to_absent_row_creates_it(session):
    key = uuid.uuid4()

    session.append(key, SimpleEntity, "tags", "only")

    assert session.get(SimpleEntity, key).tags == {"only"}


def test_prepend_keeps_the_given_order(session):
    entity = make_entity(items=[1, 2])
    session.save(entity)

    session.prepend(entity.id, SimpleEntity, "items", [5, 6])
    session.prepend(entity.id, SimpleEntity, "items", 4)

    assert session.get(SimpleEntity, entity.id).items == [4, 5, 6, 1, 2]


def test_replace_at_and_delete_value(session):
    entity = make_entity(items=[1, 2, 3])
    session.save(entity)

    session.replace_at(entity.id, SimpleEntity, "items", 20, 1)
    assert session.get(SimpleEntity, entity.id).items == [1, 20, 3]

    session.delete_value(entity.id, SimpleEntity, "items")
    session.delete_value(entity.id, SimpleEntity, "scores")
    loaded = session.get(SimpleEntity, entity.id)
    assert loaded.items == []
    assert loaded.scores == {}


def test_enum_collections_round_trip_and_update_in_place(session, driver):
    palette = Palette(
        id=1, colours=[Colour.BLUE, Colour.RED], sizes={Size.LARGE}, stock={Colour.GREEN: 3}
    )
    session.save(palette)

    assert session.get(Palette, 1) == palette
    assert driver.stored_row(KS, "palettes", (1,))["colours"] == [2, 0]

    session.append(1, Palette, "colours", Colour.GREEN)
    session.replace_at(1, Palette, "colours", Colour.RED, 0)
    session.append(1, Palette, "sizes", Size.SMALL)
    session.append(1, Palette, "stock", {Colour.BLUE: 1})

    loaded = session.get(Palette, 1)
    assert loaded.colours == [Colour.RED, Colour.RED, Colour.GREEN]
    assert loaded.sizes == {Size.SMALL, Size.LARGE}
    assert loaded.stock == {Colour.GREEN: 3, Colour.BLUE: 1}


def test_update_value_and_values(session):
    entity = make_entity()
    session.save(entity)

    session.update_value(entity.id, SimpleEntity, "name", "renamed")
    session.update_values(entity.id, SimpleEntity, ["age", "colour"], [7, Colour.GREEN])

    loaded = session.get(SimpleEntity, entity.id)
    assert (loaded.name, loaded.age, loaded.colour) == ("renamed", 7, Colour.GREEN)


def test_update_values_requires_matching_lengths(session):
    with pytest.raises(ValueError, match="attribute"):
        session.update_values(uuid.uuid4(), SimpleEntity, ["age", "name"], [1])


# ---------- batches ----------


def test_batch_submits_saves_and_deletes_together(session, driver):
    existing = make_entity()
    session.save(existing)
    versioned = VersionedEntity(id=5, name="v")

    batch = session.with_batch().save(make_entity(name="new")).save(versioned).delete(existing)
    assert len(batch) == 3
    batch.execute()

    batches = [arg for name, arg in driver.calls if name == "execute_batch"]
    assert len(batches) == 1
    assert [type(s) for s in batches[0]] == [Insert, Insert, Delete]
    assert session.get(SimpleEntity, existing.id) is None
    assert versioned.version == 1
    assert session.get(VersionedEntity, 5).version == 1


def test_rejected_batch_applies_nothing(session, driver):
    existing = make_entity()
    session.save(existing)
    versioned = VersionedEntity(id=6)
    batch = session.with_batch().save(versioned).delete(existing)
    driver.fail_on = lambda statement: isinstance(statement, Delete)

    with pytest.raises(RuntimeError):
        batch.execute()

    driver.fail_on = None
    assert session.get(SimpleEntity, existing.id) == existing
    assert session.get(VersionedEntity, 6) is None
    assert versioned.version == 0


def test_empty_batch_sends_nothing(session, driver):
    session.with_batch().execute()

    assert not any(name == "execute_batch" for name, _ in driver.calls)


# ---------- raw rows ----------


def test_get_by_query_maps_rows_and_syncs_first(session, driver):
    key = uuid.uuid4()
    driver.query_rows = [{"id": key, "name": "q", "extra": 1}]

    records = session.get_by_query(SimpleEntity, "SELECT * FROM unittest.simple_entity")

    assert records == [SimpleEntity(id=key, name="q")]
    assert session.schema_sync.is_synced(KS, SimpleEntity)


def test_get_from_row_and_rows(session):
    key = uuid.uuid4()

    assert session.get_from_row(SimpleEntity, None) is None
    assert session.get_from_row(SimpleEntity, {"id": key}).id == key
    assert len(session.get_from_rows(SimpleEntity, [{"id": key}, {"id": key}])) == 2
    assert session.get_from_result_set(SimpleEntity, iter([{"id": key}]))[0].id == key


# ---------- sync options ----------


def test_do_not_sync_skips_ddl(driver):
    session = MappingSession(KS, driver, SyncOptions().do_not_sync())

    with pytest.raises(RuntimeError, match="unconfigured table"):
        session.save(make_entity())

    assert driver.executed_of(CreateTable) == []


def test_sessions_sharing_a_cluster_sync_each_table_once():
    driver = SlowSchemaDriver()
    sessions = [MappingSession(KS, driver) for _ in range(2)]
    threads = [
        threading.Thread(target=s.maybe_sync, args=(SimpleEntity,)) for s in sessions
    ]

    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(driver.executed_of(CreateTable)) == 1
    assert all(s.schema_sync.is_synced(KS, SimpleEntity) for s in sessions)


def test_sync_options_can_be_replaced(session):
    options = SyncOptions().do_not_drop_columns()

    session.sync_options = options
    assert session.sync_options is options

    session.sync_options = None
    assert session.sync_options.options == frozenset()
