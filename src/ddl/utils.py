"""Helpers for discovering declared record types and syncing their tables."""

import importlib
import pkgutil
import sys
from collections.abc import Iterable
from types import ModuleType

from src.cql_mapper.declarations import is_declared_table
from src.cql_mapper.options import SyncOptions
from src.cql_mapper.schema.sync import SchemaSync
from src.logger import LOGGER


def _find_modules_in_package(package: ModuleType, recurse: bool = False) -> list[ModuleType]:
    modules = [package]
    if not hasattr(package, "__path__"):
        return modules
    for _, name, is_package in pkgutil.iter_modules(path=package.__path__):
        module = importlib.import_module(name=f"{package.__name__}.{name}")
        if is_package and recurse:
            modules.extend(_find_modules_in_package(module, recurse=True))
        else:
            modules.append(module)
    return modules


def _get_declared_tables_in_module(module: ModuleType) -> list[type]:
    tables = []
    for attr in dir(module):
        obj = getattr(module, attr)
        # only types defined here, not ones imported from elsewhere
        if is_declared_table(obj) and obj.__module__ == module.__name__:
            tables.append(obj)
    return tables


def find_declared_tables(package: ModuleType) -> list[type]:
    """Every `@table` record type defined in `package` and its sub-packages."""
    found: list[type] = []
    for module in _find_modules_in_package(package=package, recurse=True):
        for entity_type in _get_declared_tables_in_module(module):
            if entity_type not in found:
                found.append(entity_type)
    return found


def sync_all_tables(
    schema_sync: SchemaSync,
    keyspace: str,
    entity_types: Iterable[type],
    options: SyncOptions | None = None,
) -> None:
    """Sync each table, logging per-table outcome; raise once at the end if any failed."""
    tables_with_errors = []
    for entity_type in entity_types:
        try:
            schema_sync.sync(keyspace, entity_type, options)
            LOGGER.info("DDL sync: %s ✓", entity_type.__qualname__)
        except Exception as e:
            LOGGER.error("DDL sync: %s ✗ (%s)", entity_type.__qualname__, e)
            tables_with_errors.append(entity_type.__qualname__)

    if tables_with_errors:
        raise RuntimeError(f"Failed to sync tables: {tables_with_errors}")


def print_schema_script(
    schema_sync: SchemaSync,
    keyspace: str,
    entity_types: Iterable[type],
    options: SyncOptions | None = None,
) -> None:
    """Write the pending DDL of every table to stdout."""
    for entity_type in entity_types:
        script = schema_sync.get_script(keyspace, entity_type, options)
        if script:
            sys.stdout.write(f"-- {entity_type.__qualname__}\n{script}")
