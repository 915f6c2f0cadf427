"""
Read-only access to the index catalog and table statistics.

PostgreSQL is the production target; SQLite is supported so the same code
runs against the in-process databases used by the test suite.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

logger = logging.getLogger(__name__)

# pg_indexes has no validity flag; a failed CREATE INDEX CONCURRENTLY leaves an
# invalid index behind under the requested name, so read pg_index directly.
_PG_INDEXES = text("""
    SELECT c.relname AS name,
           pg_get_indexdef(ix.indexrelid) AS definition,
           ix.indisvalid AS valid
    FROM pg_index ix
    JOIN pg_class c ON c.oid = ix.indexrelid
    JOIN pg_class t ON t.oid = ix.indrelid
    WHERE t.relname = :table
      AND pg_table_is_visible(t.oid)
    ORDER BY c.relname
""")

_SQLITE_INDEXES = text("""
    SELECT name, COALESCE(sql, '') AS definition
    FROM sqlite_master
    WHERE type = 'index' AND tbl_name = :table
    ORDER BY name
""")

_PG_TABLE_SIZES = text("""
    SELECT pg_size_pretty(pg_total_relation_size(CAST(:table AS regclass))) AS total_size,
           pg_size_pretty(pg_relation_size(CAST(:table AS regclass))) AS table_size
""")


@dataclass(frozen=True)
class ObservedIndex:
    name: str
    definition: str
    valid: bool = True


@dataclass
class TableStats:
    row_count: Optional[int]
    total_size: Optional[str] = None
    table_size: Optional[str] = None


def quote_ident(conn: Connection, name: str) -> str:
    return conn.dialect.identifier_preparer.quote(name)


def list_indexes(conn: Connection, table: str) -> List[ObservedIndex]:
    """All indexes currently defined on `table`, ordered by name."""
    dialect = conn.dialect.name
    if dialect == "postgresql":
        rows = conn.execute(_PG_INDEXES, {"table": table}).mappings().all()
        return [
            ObservedIndex(name=row["name"], definition=row["definition"] or "", valid=bool(row["valid"]))
            for row in rows
        ]
    if dialect == "sqlite":
        rows = conn.execute(_SQLITE_INDEXES, {"table": table}).mappings().all()
        return [ObservedIndex(name=row["name"], definition=row["definition"]) for row in rows]
    raise NotImplementedError(f"Index catalog not supported for dialect {dialect!r}")


def find_index(conn: Connection, table: str, name: str) -> Optional[ObservedIndex]:
    for index in list_indexes(conn, table):
        if index.name == name:
            return index
    return None


def table_stats(conn: Connection, table: str) -> TableStats:
    """Row count, plus pretty-printed relation sizes where the engine reports them."""
    row_count = conn.execute(text(f"SELECT COUNT(*) FROM {quote_ident(conn, table)}")).scalar()
    stats = TableStats(row_count=int(row_count) if row_count is not None else None)
    if conn.dialect.name == "postgresql":
        sizes = conn.execute(_PG_TABLE_SIZES, {"table": table}).mappings().first()
        if sizes:
            stats.total_size = sizes["total_size"]
            stats.table_size = sizes["table_size"]
    return stats
