import pytest
from sqlalchemy import create_engine

from schemaops.core.config import Settings
from schemaops.database import Base, ConnectionPool
# Import models so every table is registered with Base.metadata before create_all
import schemaops.models  # noqa: F401


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        POOL_SIZE=2,
        POOL_ACQUIRE_TIMEOUT=1.0,
        POOL_IDLE_TIMEOUT=0,
        NONTRIVIAL_ROW_COUNT=10,
    )


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several pooled connections share one database."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'monitor.db'}",
        pool_size=2,
        max_overflow=0,
        pool_timeout=1.0,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def pool(engine, settings):
    pool = ConnectionPool(engine, settings.POOL_SIZE)
    yield pool
    if not pool._shut_down:
        pool.shutdown()
