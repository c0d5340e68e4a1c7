"""
Identifier utilities for CQL names.

This module defines:
- Helpers to quote and qualify keyspace/table/column/index names.
- Deterministic builders for derived identifiers (default index names).

Conventions:
- Verbs: quote_*, format_*, build_*.
- Unquoted CQL identifiers are case-insensitive and folded to lower case by the
  store; names that are not plain lower-case words are double-quoted so their
  case survives.
"""

from __future__ import annotations

import re

from src.constants import DEFAULT_INDEX_SUFFIX

_PLAIN_IDENTIFIER = re.compile(r"^[a-z][a-z0-9_]*$")
_INVALID_CHARACTER = re.compile(r"[^a-z0-9_]+")
_MULTI_UNDERSCORES = re.compile(r"_+")

# Reserved words that always need quoting when used as a column name.
_RESERVED = frozenset(
    {
        "add", "allow", "alter", "and", "apply", "asc", "authorize", "batch", "begin", "by",
        "columnfamily", "create", "delete", "desc", "describe", "drop", "entries", "execute",
        "from", "full", "grant", "if", "in", "index", "infinity", "insert", "into", "is",
        "keyspace", "limit", "materialized", "modify", "nan", "norecursive", "not", "null",
        "of", "on", "or", "order", "primary", "rename", "replace", "revoke", "schema",
        "select", "set", "table", "to", "token", "truncate", "unlogged", "update", "use",
        "using", "view", "where", "with",
    }
)


def quote_identifier(identifier: str) -> str:
    """Quote a single CQL identifier when needed, doubling any embedded double quotes."""
    text = str(identifier)
    if _PLAIN_IDENTIFIER.match(text) and text not in _RESERVED:
        return text
    return '"' + text.replace('"', '""') + '"'


def quote_qualified_name(*parts: str) -> str:
    """
    Return a dot-delimited qualified name from the provided parts.

    Examples:
        quote_qualified_name("ks", "users") -> "ks.users"
        quote_qualified_name("ks", "MixedCase") -> 'ks."MixedCase"'
    """
    if not parts:
        raise ValueError("At least one name part must be provided.")
    cleaned: list[str] = []
    for raw_part in parts:
        if raw_part is None:
            raise ValueError("Qualified name parts must not be None.")
        part = str(raw_part).strip()
        if part == "":
            raise ValueError("Qualified name parts must not be empty.")
        cleaned.append(quote_identifier(part))
    return ".".join(cleaned)


def format_qualified_table_name(keyspace: str, table_name: str) -> str:
    """Unquoted 'keyspace.table', used for logging and registry keys."""
    return f"{keyspace}.{table_name}"


def normalize_identifier(identifier: str) -> str:
    """Case-folded form used for case-insensitive comparisons between declared and live names."""
    return str(identifier).strip().strip('"').lower()


def build_index_name(table_name: str, column_name: str) -> str:
    """
    Build the default secondary index name for a column.

    Format: <table>_<column>_idx (lowercased, [a-z0-9_] only, same as the store's own
    default when CREATE INDEX omits a name).
    """
    raw = f"{table_name}_{column_name}_{DEFAULT_INDEX_SUFFIX}".lower()
    return _MULTI_UNDERSCORES.sub("_", _INVALID_CHARACTER.sub("_", raw)).strip("_")
