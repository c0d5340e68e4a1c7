"""Configuration values sourced from environment variables."""

import os
from typing import Final

_contact_points = os.getenv(key="CASSANDRA_CONTACT_POINTS", default="127.0.0.1")

CASSANDRA_CONTACT_POINTS: Final[tuple[str, ...]] = tuple(
    point.strip() for point in _contact_points.split(",") if point.strip()
)
CASSANDRA_PORT: Final[int] = int(os.getenv(key="CASSANDRA_PORT", default="9042"))
CASSANDRA_KEYSPACE: Final[str] = os.getenv(key="CASSANDRA_KEYSPACE", default="unittest")
STATEMENT_CACHE_MAX_SIZE: Final[int] = int(
    os.getenv(key="STATEMENT_CACHE_MAX_SIZE", default="1000")
)
STATEMENT_CACHE_IDLE_SECONDS: Final[float | None] = (
    float(os.environ["STATEMENT_CACHE_IDLE_SECONDS"])
    if os.getenv("STATEMENT_CACHE_IDLE_SECONDS")
    else None
)
LOG_LEVEL: Final[str] = os.getenv(key="LOG_LEVEL", default="INFO")
LOGGER_NAME: Final[str] = os.getenv(key="LOGGER_NAME", default="cql-mapper")
LOG_COLOUR_ENABLED: Final[bool] = bool(
    os.getenv(key="LOG_COLOUR_ENABLED", default="True").upper() == "TRUE"
)
DRIVER_LOG_LEVEL: Final[str] = os.getenv(key="DRIVER_LOG_LEVEL", default="WARNING")
