"""Cassandra cluster/session initialisation used by entry points and live tests."""

from cassandra.cluster import Cluster, Session
from cassandra.query import dict_factory

from src import settings
from src.cql_mapper.identifiers import quote_identifier
from src.logger import LOGGER


def build_cluster() -> Cluster:
    """Cluster pointed at the configured contact points."""
    return Cluster(
        contact_points=list(settings.CASSANDRA_CONTACT_POINTS),
        port=settings.CASSANDRA_PORT,
    )


def connect(cluster: Cluster | None = None) -> Session:
    """Open a session returning rows as dicts."""
    cluster = cluster or build_cluster()
    session = cluster.connect()
    session.row_factory = dict_factory
    LOGGER.info(
        "Connected to %s:%d", ",".join(settings.CASSANDRA_CONTACT_POINTS), settings.CASSANDRA_PORT
    )
    return session


def ensure_keyspace(session: Session, keyspace: str, replication_factor: int = 1) -> None:
    """Create `keyspace` with SimpleStrategy replication when it does not exist yet."""
    session.execute(
        f"CREATE KEYSPACE IF NOT EXISTS {quote_identifier(keyspace)} WITH replication = "
        f"{{'class': 'SimpleStrategy', 'replication_factor': {int(replication_factor)}}}"
    )
