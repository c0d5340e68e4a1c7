import logging

import pytest

from src import settings
from src.cql_mapper.schema.sync import SHARED_SYNC_REGISTRY
from src.runtime import connect, ensure_keyspace

# Names of fixture that require a live Cassandra node to be available
_CASSANDRA_FIXTURE_NAME = "cassandra_fixture"


def quiet_driver() -> None:
    """Turn down driver logging during the test context."""
    logging.getLogger("cassandra").setLevel(logging.WARN)


@pytest.fixture(scope="session")
def cassandra_fixture():
    quiet_driver()

    session = connect()
    ensure_keyspace(session, settings.CASSANDRA_KEYSPACE)

    yield session

    session.cluster.shutdown()


@pytest.fixture(autouse=True)
def fresh_sync_registry():
    """Each test starts with no (type, keyspace) pair marked as synced."""
    SHARED_SYNC_REGISTRY.clear()
    yield
    SHARED_SYNC_REGISTRY.clear()


def _mark_tests_using_cassandra_fixture(tests: list[pytest.Function]) -> None:
    """
    Adds the `requires_cassandra` marker to tests that are using the fixture that
    requires a Cassandra node.

    :param tests: list of tests collected by `pytest`
    """
    for test in tests:
        if _CASSANDRA_FIXTURE_NAME in test.fixturenames:
            test.add_marker(pytest.mark.requires_cassandra)


def _skip_cassandra_tests(test: pytest.Function) -> None:
    """
    Tell `pytest` to skip tests that require a Cassandra node.

    If the config argument `--include-cassandra-tests` is present, this shouldn't be
    invoked.

    :param test: test collected by `pytest`
    """
    if list(test.iter_markers(name="requires_cassandra")):
        pytest.skip("Skipped tests that require a Cassandra node")


def pytest_addoption(parser: pytest.Parser):
    parser.addoption(
        "--include-cassandra-tests",
        action="store_true",
        default=False,
        help="Run tests against the Cassandra node in CASSANDRA_CONTACT_POINTS.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    if not config.getoption("--include-cassandra-tests"):
        _mark_tests_using_cassandra_fixture(tests=items)


def pytest_runtest_setup(item: pytest.Item):
    if not item.config.getoption("--include-cassandra-tests"):
        _skip_cassandra_tests(test=item)
