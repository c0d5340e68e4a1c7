"""
CQL string builders.

Every function is deterministic and side-effect free. DML builders return the
query with `?` placeholders plus the values to bind, in placeholder order;
values are never interpolated into the text. DDL carries no values.

Business rules (what to alter, what is allowed) live in the factory and the
differ; this module only renders.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from src.cql_mapper.identifiers import quote_identifier, quote_qualified_name
from src.cql_mapper.models import ClusteringOrder, ColumnField
from src.cql_mapper.options import WriteOptions
from src.cql_mapper.statements import (
    AddColumn,
    AlterColumn,
    Assignment,
    AssignmentOperation,
    CreateIndex,
    CreateTable,
    Delete,
    DropColumn,
    DropIndex,
    DropTable,
    Insert,
    Select,
    Statement,
    Update,
)


@dataclass(frozen=True)
class RenderedStatement:
    """CQL text plus positional bind values."""

    query: str
    values: tuple[Any, ...] = ()


# ---------- DDL ----------


def cql_create_table(statement: CreateTable) -> str:
    """CREATE TABLE IF NOT EXISTS ks.t (..., PRIMARY KEY ((pk...), ck...)) [WITH ...]."""
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    definitions = [_column_definition(c) for c in statement.columns]

    partition = [quote_identifier(c.name) for c in statement.columns if c.is_partition_key]
    clustering = [c for c in statement.columns if c.is_clustering]
    if not partition:
        raise ValueError(f"Table {statement.qualified_table_name} needs a partition key.")
    key_parts = [f"({', '.join(partition)})", *(quote_identifier(c.name) for c in clustering)]
    definitions.append(f"PRIMARY KEY ({', '.join(key_parts)})")

    with_clauses: list[str] = []
    if any(c.clustering_order == ClusteringOrder.DESC for c in clustering):
        ordering = ", ".join(f"{quote_identifier(c.name)} {c.clustering_order}" for c in clustering)
        with_clauses.append(f"CLUSTERING ORDER BY ({ordering})")
    if statement.default_ttl:
        with_clauses.append(f"default_time_to_live = {int(statement.default_ttl)}")

    query = f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(definitions)})"
    if with_clauses:
        query += " WITH " + " AND ".join(with_clauses)
    return query


def cql_add_column(statement: AddColumn) -> str:
    """ALTER TABLE ks.t ADD col type [static]."""
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    return f"ALTER TABLE {table} ADD {_column_definition(statement.column)}"


def cql_alter_column(statement: AlterColumn) -> str:
    """ALTER TABLE ks.t ALTER col TYPE type."""
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    column = statement.column
    return (
        f"ALTER TABLE {table} ALTER {quote_identifier(column.name)} "
        f"TYPE {column.column_definition}"
    )


def cql_drop_column(statement: DropColumn) -> str:
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    return f"ALTER TABLE {table} DROP {quote_identifier(statement.column_name)}"


def cql_create_index(statement: CreateIndex) -> str:
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    return (
        f"CREATE INDEX IF NOT EXISTS {quote_identifier(statement.index_name)} "
        f"ON {table} ({quote_identifier(statement.column_name)})"
    )


def cql_drop_index(statement: DropIndex) -> str:
    return f"DROP INDEX IF EXISTS {quote_qualified_name(statement.keyspace, statement.index_name)}"


def cql_drop_table(statement: DropTable) -> str:
    return f"DROP TABLE IF EXISTS {quote_qualified_name(statement.keyspace, statement.table_name)}"


# ---------- DML ----------


def cql_insert(statement: Insert) -> RenderedStatement:
    """INSERT INTO ks.t (...) VALUES (?, ...) [USING TTL ? AND TIMESTAMP ?]."""
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    names = [quote_identifier(name) for name, _ in statement.values]
    markers = ", ".join("?" for _ in names)
    query = f"INSERT INTO {table} ({', '.join(names)}) VALUES ({markers})"
    using, using_values = _using_clause(statement.options, with_ttl=True)
    query += using
    values = tuple(value for _, value in statement.values) + using_values
    return RenderedStatement(query=query, values=values)


def cql_update(statement: Update) -> RenderedStatement:
    """UPDATE ks.t [USING ...] SET ... WHERE ... [IF ...]."""
    if not statement.assignments:
        raise ValueError(f"UPDATE of {statement.qualified_table_name} has nothing to set.")
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    using, using_values = _using_clause(statement.options, with_ttl=True)

    set_parts: list[str] = []
    set_values: list[Any] = []
    for assignment in statement.assignments:
        clause, clause_values = _assignment(assignment)
        set_parts.append(clause)
        set_values.extend(clause_values)

    where, where_values = _where_clause(statement.where)
    query = f"UPDATE {table}{using} SET {', '.join(set_parts)}{where}"
    condition_values: tuple[Any, ...] = ()
    if statement.condition:
        condition = " AND ".join(f"{quote_identifier(n)} = ?" for n, _ in statement.condition)
        query += f" IF {condition}"
        condition_values = tuple(v for _, v in statement.condition)
    return RenderedStatement(
        query=query,
        values=using_values + tuple(set_values) + where_values + condition_values,
    )


def cql_select(statement: Select) -> RenderedStatement:
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    columns = ", ".join(quote_identifier(c) for c in statement.columns) or "*"
    where, where_values = _where_clause(statement.where)
    return RenderedStatement(query=f"SELECT {columns} FROM {table}{where}", values=where_values)


def cql_delete(statement: Delete) -> RenderedStatement:
    """DELETE FROM ks.t [USING TIMESTAMP ?] WHERE ..."""
    table = quote_qualified_name(statement.keyspace, statement.table_name)
    using, using_values = _using_clause(statement.options, with_ttl=False)
    where, where_values = _where_clause(statement.where)
    return RenderedStatement(
        query=f"DELETE FROM {table}{using}{where}", values=using_values + where_values
    )


# ---------- dispatch ----------


def render(statement: Statement) -> RenderedStatement:
    """Render any statement into CQL text plus bind values."""
    if isinstance(statement, Insert):
        return cql_insert(statement)
    if isinstance(statement, Update):
        return cql_update(statement)
    if isinstance(statement, Select):
        return cql_select(statement)
    if isinstance(statement, Delete):
        return cql_delete(statement)
    return RenderedStatement(query=render_ddl(statement))


def render_ddl(statement: Statement) -> str:
    if isinstance(statement, CreateTable):
        return cql_create_table(statement)
    if isinstance(statement, AddColumn):
        return cql_add_column(statement)
    if isinstance(statement, AlterColumn):
        return cql_alter_column(statement)
    if isinstance(statement, DropColumn):
        return cql_drop_column(statement)
    if isinstance(statement, CreateIndex):
        return cql_create_index(statement)
    if isinstance(statement, DropIndex):
        return cql_drop_index(statement)
    if isinstance(statement, DropTable):
        return cql_drop_table(statement)
    raise TypeError(f"Not a DDL statement: {type(statement).__name__}")


def render_script(statements: Iterable[Statement]) -> str:
    """One DDL statement per line, each terminated by ';'."""
    return "".join(f"{render_ddl(s)};\n" for s in statements)


# ---------- helpers ----------


def _column_definition(column: ColumnField) -> str:
    definition = f"{quote_identifier(column.name)} {column.column_definition}"
    if column.is_static:
        definition += " static"
    return definition


def _using_clause(options: WriteOptions, *, with_ttl: bool) -> tuple[str, tuple[Any, ...]]:
    parts: list[str] = []
    values: list[Any] = []
    if with_ttl and options.ttl is not None:
        parts.append("TTL ?")
        values.append(int(options.ttl))
    if options.timestamp is not None:
        parts.append("TIMESTAMP ?")
        values.append(int(options.timestamp))
    if not parts:
        return "", ()
    return " USING " + " AND ".join(parts), tuple(values)


def _where_clause(where: Sequence[tuple[str, Any]]) -> tuple[str, tuple[Any, ...]]:
    if not where:
        return "", ()
    clause = " AND ".join(f"{quote_identifier(name)} = ?" for name, _ in where)
    return f" WHERE {clause}", tuple(value for _, value in where)


def _assignment(assignment: Assignment) -> tuple[str, tuple[Any, ...]]:
    name = quote_identifier(assignment.column_name)
    operation = assignment.operation
    if operation == AssignmentOperation.APPEND:
        return f"{name} = {name} + ?", (assignment.value,)
    if operation == AssignmentOperation.PREPEND:
        return f"{name} = ? + {name}", (assignment.value,)
    if operation == AssignmentOperation.SET_AT_INDEX:
        if assignment.index is None:
            raise ValueError(f"Indexed assignment to {assignment.column_name!r} needs an index.")
        return f"{name}[?] = ?", (assignment.index, assignment.value)
    return f"{name} = ?", (assignment.value,)
