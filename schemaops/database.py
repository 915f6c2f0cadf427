from sqlalchemy import create_engine, event, exc as sa_exc
from sqlalchemy.engine import Connection, Engine, URL
from sqlalchemy.orm import declarative_base
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional
import logging
import time

from schemaops.core.config import Settings
from schemaops.core.credentials import ConnectionDescriptor, resolve_credentials
from schemaops.core.errors import PoolError, PoolTimeout

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_url(descriptor: ConnectionDescriptor) -> URL:
    return URL.create(
        "postgresql+psycopg2",
        username=descriptor.user,
        password=descriptor.password or None,
        host=descriptor.host,
        port=descriptor.port,
        database=descriptor.database,
    )


def create_db_engine(descriptor: ConnectionDescriptor, settings: Settings) -> Engine:
    """PostgreSQL engine sized for a short batch run: fixed pool, no overflow."""
    return create_engine(
        build_url(descriptor),
        pool_size=settings.POOL_SIZE,
        max_overflow=0,                         # Bounded set, never grows past POOL_SIZE
        pool_timeout=settings.POOL_ACQUIRE_TIMEOUT,
        pool_recycle=settings.POOL_RECYCLE,
        pool_pre_ping=True,                     # Verify connections before use
        connect_args={
            "connect_timeout": settings.CONNECT_TIMEOUT,
            # Managed hosts (RDS) present certificates we do not pin; require encryption only
            "sslmode": "require" if descriptor.tls_required else "prefer",
            "application_name": "schemaops",
        },
    )


def install_idle_recycling(engine: Engine, idle_timeout: float) -> None:
    """
    Replace pooled connections that sat idle longer than `idle_timeout`.

    The checkin hook stamps the connection record; on the next checkout a
    stale record raises DisconnectionError, which makes the pool discard it
    and open a fresh connection in its place.
    """
    if not idle_timeout or idle_timeout <= 0:
        return

    @event.listens_for(engine, "checkin")
    def _stamp_checkin(dbapi_connection, connection_record):
        connection_record.info["last_checkin"] = time.monotonic()

    @event.listens_for(engine, "checkout")
    def _recycle_idle(dbapi_connection, connection_record, connection_proxy):
        last_checkin = connection_record.info.get("last_checkin")
        if last_checkin is not None and time.monotonic() - last_checkin > idle_timeout:
            connection_record.info.pop("last_checkin", None)
            logger.debug("Recycling connection idle for more than %.0fs", idle_timeout)
            raise sa_exc.DisconnectionError("connection idle past timeout")


class ConnectionPool:
    """
    Bounded set of database connections for the duration of one run.

    Thin layer over the SQLAlchemy engine pool that maps driver and pool
    failures onto PoolError / PoolTimeout and enforces a single shutdown.
    """

    def __init__(self, engine: Engine, size: int, idle_timeout: Optional[float] = None):
        self.engine = engine
        self.size = max(1, int(size))
        self._shut_down = False
        if idle_timeout:
            install_idle_recycling(engine, idle_timeout)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def acquire(self) -> Connection:
        if self._shut_down:
            raise PoolError("Connection pool has already been shut down")
        try:
            return self.engine.connect()
        except sa_exc.TimeoutError as e:
            raise PoolTimeout(f"Timed out waiting for a database connection: {e}") from e
        except sa_exc.DBAPIError as e:
            error_msg = str(e.orig) if getattr(e, "orig", None) is not None else str(e)
            lowered = error_msg.lower()
            if "timeout expired" in lowered or "timed out" in lowered:
                raise PoolTimeout(f"Database connection timed out: {error_msg.strip()}") from e
            raise PoolError(f"Database connection failed: {error_msg.strip()}") from e

    def release(self, conn: Connection) -> None:
        try:
            conn.close()
        except sa_exc.SQLAlchemyError as close_err:
            logger.warning(f"Error returning connection to pool: {close_err}")

    @contextmanager
    def connection(self, autocommit: bool = False) -> Iterator[Connection]:
        """Scoped acquire/release. `autocommit` is needed for non-transactional DDL."""
        conn = self.acquire()
        try:
            if autocommit:
                conn = conn.execution_options(isolation_level="AUTOCOMMIT")
            yield conn
        finally:
            self.release(conn)

    def shutdown(self) -> bool:
        """
        Drain and close every pooled connection.

        Returns True when the pool was disposed. A repeated call is a logged
        no-op returning False.
        """
        if self._shut_down:
            logger.warning("Connection pool shutdown requested twice; ignoring")
            return False
        self._shut_down = True
        try:
            self.engine.dispose()
        except sa_exc.SQLAlchemyError as dispose_err:
            logger.warning(f"Error disposing connection pool: {dispose_err}")
            return False
        logger.debug("Connection pool shut down")
        return True


def create_pool(descriptor: ConnectionDescriptor, settings: Settings) -> ConnectionPool:
    engine = create_db_engine(descriptor, settings)
    logger.info(
        "Database pool configured for %s (size=%d, acquire timeout=%.0fs)",
        descriptor.safe_summary(),
        settings.POOL_SIZE,
        settings.POOL_ACQUIRE_TIMEOUT,
    )
    return ConnectionPool(engine, settings.POOL_SIZE, idle_timeout=settings.POOL_IDLE_TIMEOUT)


@dataclass
class RunContext:
    """Process-scoped state for one run, passed explicitly to every component."""

    settings: Settings
    descriptor: ConnectionDescriptor
    pool: ConnectionPool


@contextmanager
def open_run_context(settings: Settings) -> Iterator[RunContext]:
    """
    Resolve credentials, open the pool, and shut it down when the run ends.

    ConfigError propagates before any connection is attempted.
    """
    descriptor, error = resolve_credentials(settings.CREDENTIALS_FILE, settings)
    if error is not None:
        raise error
    pool = create_pool(descriptor, settings)
    try:
        yield RunContext(settings=settings, descriptor=descriptor, pool=pool)
    finally:
        # Disposal failure is already logged inside shutdown(); nothing else to do here
        _ = pool.shutdown()
