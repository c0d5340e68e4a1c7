"""Entry point for synchronizing every declared table in a package."""

import argparse
import importlib
import sys
from collections.abc import Sequence

from src import settings
from src.cql_mapper.driver.cassandra_session import CassandraSession
from src.cql_mapper.options import SyncOption, SyncOptions
from src.cql_mapper.schema.sync import default_schema_sync
from src.ddl.utils import find_declared_tables, print_schema_script, sync_all_tables
from src.logger import LOGGER
from src.runtime import connect, ensure_keyspace


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronize CQL tables with @table records.")
    parser.add_argument("package", help="Dotted name of the package holding the record types.")
    parser.add_argument("--keyspace", default=settings.CASSANDRA_KEYSPACE)
    parser.add_argument(
        "--script-only",
        action="store_true",
        help="Print the DDL that would run instead of executing it.",
    )
    parser.add_argument(
        "--option",
        action="append",
        default=[],
        choices=[option.value for option in SyncOption],
        help="Sync option applied to every table; may be repeated.",
    )
    return parser.parse_args(argv)


def run_ddl(argv: Sequence[str] | None = None) -> None:
    """Orchestrate DDL operations."""
    args = _parse_args(argv)
    package = importlib.import_module(args.package)
    entity_types = find_declared_tables(package)
    LOGGER.info("Found %d declared table(s) in %s", len(entity_types), args.package)

    session = connect()
    try:
        driver = CassandraSession(session)
        schema_sync = default_schema_sync(driver)
        options = SyncOptions.with_options(*(SyncOption(o) for o in args.option))
        if args.script_only:
            print_schema_script(schema_sync, args.keyspace, entity_types, options)
            return
        ensure_keyspace(session, args.keyspace)
        sync_all_tables(schema_sync, args.keyspace, entity_types, options)
    finally:
        session.cluster.shutdown()


if __name__ == "__main__":
    run_ddl(sys.argv[1:])
