"""Tests for the connection diagnostics"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from schemaops.core.errors import PoolError
from schemaops.services.connection_check import check_connection


def test_check_connection_sqlite(pool):
    check = check_connection(pool)
    assert check.server_version.startswith("SQLite ")
    assert check.current_time
    assert check.tables == sorted(["alerts", "anti_blocking_settings", "events", "trigger_words"])


def test_check_connection_empty_database(tmp_path):
    from sqlalchemy import create_engine
    from schemaops.database import ConnectionPool

    pool = ConnectionPool(create_engine(f"sqlite:///{tmp_path / 'empty.db'}"), 1)
    try:
        assert check_connection(pool).tables == []
    finally:
        pool.shutdown()


def test_query_failure_becomes_pool_error():
    pool = MagicMock()
    pool.dialect_name = "postgresql"
    conn = pool.connection.return_value.__enter__.return_value
    conn.execute.side_effect = OperationalError("SELECT NOW()", {}, Exception("server closed the connection"))

    with pytest.raises(PoolError) as exc_info:
        check_connection(pool)
    assert "server closed the connection" in str(exc_info.value)
