"""Connection diagnostics: server time, version and visible tables."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from schemaops.core.errors import PoolError, db_error_message
from schemaops.database import ConnectionPool

logger = logging.getLogger(__name__)

_SERVER_INFO = {
    "postgresql": text("SELECT CAST(NOW() AS TEXT) AS current_time, version() AS version"),
    "sqlite": text("SELECT datetime('now') AS current_time, 'SQLite ' || sqlite_version() AS version"),
}


@dataclass
class ConnectionCheck:
    current_time: Optional[str] = None
    server_version: Optional[str] = None
    tables: List[str] = field(default_factory=list)


def check_connection(pool: ConnectionPool) -> ConnectionCheck:
    """
    Open one connection and read basic server facts.

    Raises:
        PoolError: the connection could not be opened or the queries failed
    """
    result = ConnectionCheck()
    query = _SERVER_INFO.get(pool.dialect_name)
    try:
        with pool.connection() as conn:
            if query is not None:
                row = conn.execute(query).mappings().first()
                result.current_time = str(row["current_time"])
                # "PostgreSQL 15.4 on x86_64-pc-linux-gnu, compiled by ..." -> keep the first part
                result.server_version = str(row["version"]).split(",")[0]
            result.tables = sorted(inspect(conn).get_table_names())
    except SQLAlchemyError as e:
        raise PoolError(f"Connection check failed: {db_error_message(e)}") from e

    logger.info("Connected: %s", result.server_version or pool.dialect_name)
    return result
