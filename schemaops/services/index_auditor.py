"""
Index audit for the events table.

Compares the indexes present on a table against a fixed required set, creates
whatever is missing with conditional (IF NOT EXISTS) DDL, refreshes planner
statistics and reports table size. Every creation is attempted on its own so
one failure never blocks the others; safe to run any number of times while
the monitoring pipeline keeps writing.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from schemaops.core.config import Settings
from schemaops.core.errors import AggregateFailure, StepError, db_error_message
from schemaops.database import ConnectionPool
from schemaops.services import catalog
from schemaops.services.catalog import ObservedIndex, TableStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexColumn:
    name: str
    descending: bool = False
    lowercase: bool = False


@dataclass(frozen=True)
class IndexSpec:
    name: str
    table: str
    columns: Tuple[IndexColumn, ...]
    unique: bool = False

    def column_sql(self, conn: Connection) -> str:
        parts = []
        for column in self.columns:
            part = catalog.quote_ident(conn, column.name)
            if column.lowercase:
                part = f"lower({part})"
            if column.descending:
                part += " DESC"
            parts.append(part)
        return ", ".join(parts)

    def create_sql(self, conn: Connection, concurrently: bool = False) -> str:
        return "CREATE {}INDEX {}IF NOT EXISTS {} ON {} ({})".format(
            "UNIQUE " if self.unique else "",
            "CONCURRENTLY " if concurrently else "",
            catalog.quote_ident(conn, self.name),
            catalog.quote_ident(conn, self.table),
            self.column_sql(conn),
        )

    def drop_sql(self, conn: Connection, concurrently: bool = False) -> str:
        return "DROP INDEX {}IF EXISTS {}".format(
            "CONCURRENTLY " if concurrently else "",
            catalog.quote_ident(conn, self.name),
        )


# Access paths the live views depend on: per-session timelines and recent activity
REQUIRED_EVENT_INDEXES: Tuple[IndexSpec, ...] = (
    IndexSpec(
        "idx_events_session_time",
        "events",
        (IndexColumn("session_id"), IndexColumn("timestamp", descending=True)),
    ),
    IndexSpec("idx_events_session_id", "events", (IndexColumn("session_id"),)),
    IndexSpec("idx_events_timestamp", "events", (IndexColumn("timestamp", descending=True),)),
)


@dataclass
class AuditReport:
    table: str
    required: List[str] = field(default_factory=list)
    observed: List[ObservedIndex] = field(default_factory=list)
    present: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    rebuilt: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    errors: List[StepError] = field(default_factory=list)
    analyzed: bool = False
    stats: Optional[TableStats] = None
    fatal: bool = False

    @property
    def complete(self) -> bool:
        available = set(self.present) | set(self.created)
        return all(name in available for name in self.required)


class IndexAuditor:
    def __init__(
        self,
        pool: ConnectionPool,
        settings: Settings,
        required: Sequence[IndexSpec] = REQUIRED_EVENT_INDEXES,
    ):
        self.pool = pool
        self.settings = settings
        self.required = tuple(required)

    @property
    def _concurrently(self) -> bool:
        return self.settings.CREATE_INDEX_CONCURRENTLY and self.pool.dialect_name == "postgresql"

    def audit(self, table: Optional[str] = None) -> AuditReport:
        """
        Ensure every required index exists on `table`.

        Raises:
            AggregateFailure: no required index exists, none could be created
                and the table is not trivially small
            PoolError: connections could not be acquired
        """
        table = table or self.settings.EVENTS_TABLE
        specs = [spec for spec in self.required if spec.table == table]
        report = AuditReport(table=table, required=[spec.name for spec in specs])

        logger.info("Checking indexes on %s table...", table)
        observed = self._read_catalog(table, report)
        if observed is not None:
            report.observed = observed
            for index in observed:
                logger.info("  - %s%s", index.name, "" if index.valid else " (INVALID)")

        valid_names: Set[str] = {index.name for index in report.observed if index.valid}
        invalid_names: Set[str] = {index.name for index in report.observed if not index.valid}
        report.present = [spec.name for spec in specs if spec.name in valid_names]
        missing = [spec for spec in specs if spec.name not in valid_names]

        if missing:
            logger.warning("Missing critical indexes: %s", ", ".join(spec.name for spec in missing))
            self._create_missing(missing, invalid_names, report)
            self._reconcile_with_catalog(table, report)
        else:
            logger.info("All critical indexes exist")

        self._refresh_statistics(table, report)
        self._collect_stats(table, report)

        report.fatal = self._is_fatal(report)
        if report.fatal:
            raise AggregateFailure(
                f"No required index exists on {table} and none could be created",
                report=report,
            )
        return report

    def _read_catalog(self, table: str, report: AuditReport) -> Optional[List[ObservedIndex]]:
        # Without the catalog every spec counts as missing; the conditional create keeps that safe
        try:
            with self.pool.connection() as conn:
                return catalog.list_indexes(conn, table)
        except SQLAlchemyError as e:
            error = StepError("read_index_catalog", db_error_message(e))
            logger.error("Could not read index catalog for %s: %s", table, error.message)
            report.errors.append(error)
            return None

    def _create_missing(self, missing: List[IndexSpec], invalid_names: Set[str], report: AuditReport) -> None:
        workers = min(len(missing), self.pool.size)
        if workers <= 1:
            outcomes = [self._attempt(spec, spec.name in invalid_names) for spec in missing]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="create-index") as executor:
                futures = [
                    executor.submit(self._attempt, spec, spec.name in invalid_names)
                    for spec in missing
                ]
                outcomes = [future.result() for future in futures]

        for spec, error in outcomes:
            if error is None:
                report.created.append(spec.name)
                if spec.name in invalid_names:
                    report.rebuilt.append(spec.name)
            else:
                report.failed[spec.name] = error.message
                report.errors.append(error)

    def _attempt(self, spec: IndexSpec, rebuild: bool) -> Tuple[IndexSpec, Optional[StepError]]:
        try:
            self.create_index(spec, rebuild=rebuild)
            return spec, None
        except StepError as e:
            logger.error("Failed to create %s: %s", spec.name, e.message)
            return spec, e

    def create_index(self, spec: IndexSpec, rebuild: bool = False) -> None:
        """Conditionally create one index. CONCURRENTLY cannot run in a transaction, hence autocommit."""
        concurrently = self._concurrently
        try:
            with self.pool.connection(autocommit=True) as conn:
                if rebuild:
                    logger.warning("Dropping invalid index %s left by an interrupted build", spec.name)
                    conn.execute(text(spec.drop_sql(conn, concurrently)))
                logger.info("Creating %s...", spec.name)
                conn.execute(text(spec.create_sql(conn, concurrently)))
        except SQLAlchemyError as e:
            raise StepError(f"create_index:{spec.name}", db_error_message(e)) from e
        logger.info("Created %s", spec.name)

    def _reconcile_with_catalog(self, table: str, report: AuditReport) -> None:
        """
        Re-read the catalog after creation and trust it over the individual outcomes.

        A create that returned cleanly but left nothing usable is a failure. A
        create that failed while another session built the same index (duplicate
        key on pg_class_relname_nsp_index) is a success.
        """
        observed = self._read_catalog(table, report)
        if observed is None:
            return
        report.observed = observed
        valid_names = {index.name for index in observed if index.valid}

        for name in list(report.failed):
            if name not in valid_names:
                continue
            message = report.failed.pop(name)
            report.errors = [error for error in report.errors if error.step != f"create_index:{name}"]
            report.created.append(name)
            logger.warning("%s is present despite a failed create (%s); built by another session", name, message)

        for name in list(report.created):
            if name not in valid_names:
                report.created.remove(name)
                error = StepError(f"create_index:{name}", "index missing or invalid after creation")
                report.failed[name] = error.message
                report.errors.append(error)
                logger.error("%s is missing or invalid after creation", name)

    def _refresh_statistics(self, table: str, report: AuditReport) -> None:
        logger.info("Analyzing %s table to update statistics...", table)
        try:
            with self.pool.connection(autocommit=True) as conn:
                conn.execute(text(f"ANALYZE {catalog.quote_ident(conn, table)}"))
            report.analyzed = True
            logger.info("Table analyzed")
        except SQLAlchemyError as e:
            error = StepError("analyze", db_error_message(e))
            logger.error("Statistics refresh failed for %s: %s", table, error.message)
            report.errors.append(error)

    def _collect_stats(self, table: str, report: AuditReport) -> None:
        try:
            with self.pool.connection() as conn:
                report.stats = catalog.table_stats(conn, table)
        except SQLAlchemyError as e:
            error = StepError("table_stats", db_error_message(e))
            logger.error("Could not read statistics for %s: %s", table, error.message)
            report.errors.append(error)

    def _is_fatal(self, report: AuditReport) -> bool:
        if not report.required or not report.failed:
            return False
        if report.present or report.created:
            return False
        # Unknown size counts as non-trivial
        if report.stats is None or report.stats.row_count is None:
            return True
        return report.stats.row_count >= self.settings.NONTRIVIAL_ROW_COUNT
