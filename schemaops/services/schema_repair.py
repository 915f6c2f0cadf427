"""
Corrective migrations for an already-evolved monitoring schema.

A fixed, ordered list of steps. Each step is idempotent and runs on its own
connection, normally inside a single transaction, so a failing step rolls back
alone and the next one still runs. Steps that must not hold locks for long
(constraint validation, online index builds) manage their own transactions.
Duplicate trigger words are removed before the unique index over them is
created; either order converges on a second run.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from schemaops.core.config import Settings
from schemaops.core.errors import AggregateFailure, StepError, db_error_message
from schemaops.database import ConnectionPool
from schemaops.models.alert import Alert, ALERT_STATUS_CONSTRAINT, alert_status_check_sql
from schemaops.models.anti_blocking_settings import AntiBlockingSettings, SINGLETON_ID
from schemaops.models.trigger_word import TriggerWord, TRIGGER_WORDS_UNIQUE_INDEX
from schemaops.services import catalog
from schemaops.services.index_auditor import IndexColumn, IndexSpec

logger = logging.getLogger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"

# (rows affected or None, human-readable detail)
StepOutcome = Tuple[Optional[int], str]


def normalize_alert_status_constraint(conn: Connection) -> StepOutcome:
    """
    Replace the alerts status CHECK with the canonical value set.

    The constraint is added NOT VALID in a short transaction and validated in
    a second one: VALIDATE scans under SHARE UPDATE EXCLUSIVE, so alert writers
    keep going. A failed validation leaves the constraint NOT VALID and the
    next run drops and re-adds it.
    """
    table = catalog.quote_ident(conn, Alert.__tablename__)
    constraint = catalog.quote_ident(conn, ALERT_STATUS_CONSTRAINT)
    with conn.begin():
        conn.execute(text(f"ALTER TABLE {table} DROP CONSTRAINT IF EXISTS {constraint}"))
        conn.execute(text(
            f"ALTER TABLE {table} ADD CONSTRAINT {constraint} CHECK ({alert_status_check_sql()}) NOT VALID"
        ))
    with conn.begin():
        conn.execute(text(f"ALTER TABLE {table} VALIDATE CONSTRAINT {constraint}"))
    return None, f"{ALERT_STATUS_CONSTRAINT} CHECK ({alert_status_check_sql()})"


def remove_duplicate_trigger_words(conn: Connection) -> StepOutcome:
    """Keep the lowest id per (lower(word), case_sensitive); one set-based DELETE."""
    words = TriggerWord.__table__
    # row_number() rather than min(id): uuid keys order but have no min() aggregate
    ranked = select(
        words.c.id,
        func.row_number().over(
            partition_by=(func.lower(words.c.word), words.c.case_sensitive),
            order_by=words.c.id,
        ).label("row_num"),
    ).subquery("ranked")
    duplicate_ids = select(ranked.c.id).where(ranked.c.row_num > 1)
    result = conn.execute(delete(words).where(words.c.id.in_(duplicate_ids)))
    removed = max(result.rowcount or 0, 0)
    return removed, f"removed {removed} duplicate trigger word(s)"


def is_compatible_unique_index(definition: str) -> bool:
    normalized = " ".join((definition or "").lower().split())
    return (
        "unique index" in normalized
        and "lower(" in normalized
        and "word" in normalized
        and "case_sensitive" in normalized
    )


TRIGGER_WORDS_UNIQUE_SPEC = IndexSpec(
    TRIGGER_WORDS_UNIQUE_INDEX,
    TriggerWord.__tablename__,
    (IndexColumn("word", lowercase=True), IndexColumn("case_sensitive")),
    unique=True,
)


def enforce_trigger_word_uniqueness(conn: Connection) -> StepOutcome:
    """
    Unique index over (lower(word), case_sensitive).

    On PostgreSQL the index is built CONCURRENTLY on an autocommit connection so
    the pipeline keeps inserting trigger words. An invalid leftover from an
    interrupted build is dropped first; IF NOT EXISTS would keep it forever.
    """
    online = conn.dialect.name == "postgresql"
    if online:
        conn = conn.execution_options(isolation_level="AUTOCOMMIT")

    with conn.begin():
        existing = catalog.find_index(conn, TriggerWord.__tablename__, TRIGGER_WORDS_UNIQUE_INDEX)
        if existing is not None and not existing.valid:
            logger.warning("Dropping invalid index %s left by an interrupted build", TRIGGER_WORDS_UNIQUE_INDEX)
            conn.execute(text(TRIGGER_WORDS_UNIQUE_SPEC.drop_sql(conn, concurrently=online)))
        conn.execute(text(TRIGGER_WORDS_UNIQUE_SPEC.create_sql(conn, concurrently=online)))

        # IF NOT EXISTS is satisfied by any index with this name, so check what is actually there
        index = catalog.find_index(conn, TriggerWord.__tablename__, TRIGGER_WORDS_UNIQUE_INDEX)

    if index is None:
        raise StepError("enforce_trigger_word_uniqueness", f"{TRIGGER_WORDS_UNIQUE_INDEX} not found after creation")
    if not index.valid:
        raise StepError("enforce_trigger_word_uniqueness", f"{TRIGGER_WORDS_UNIQUE_INDEX} exists but is invalid")
    if not is_compatible_unique_index(index.definition):
        raise StepError(
            "enforce_trigger_word_uniqueness",
            f"existing {TRIGGER_WORDS_UNIQUE_INDEX} has an incompatible definition: {index.definition}",
        )
    return None, index.definition


def backfill_anti_blocking_settings(conn: Connection) -> StepOutcome:
    """Insert the id=1 settings row with an empty document; an existing row is left untouched."""
    insert_for_dialect = {"postgresql": pg_insert, "sqlite": sqlite_insert}[conn.dialect.name]
    stmt = (
        insert_for_dialect(AntiBlockingSettings.__table__)
        .values(id=SINGLETON_ID, settings={})
        .on_conflict_do_nothing(index_elements=["id"])
    )
    result = conn.execute(stmt)
    inserted = max(result.rowcount or 0, 0)
    return inserted, "inserted settings row 1" if inserted else "settings row 1 already present"


@dataclass(frozen=True)
class RepairStep:
    name: str
    description: str
    run: Callable[[Connection], StepOutcome]
    dialects: Tuple[str, ...] = ("postgresql", "sqlite")
    # False: the step opens its own transactions (or runs in autocommit) on a bare connection
    transactional: bool = True


REPAIR_STEPS: Tuple[RepairStep, ...] = (
    RepairStep(
        "normalize_alert_status_constraint",
        "replace alerts status CHECK constraint with the canonical value set",
        normalize_alert_status_constraint,
        dialects=("postgresql",),
        transactional=False,
    ),
    RepairStep(
        "remove_duplicate_trigger_words",
        "delete trigger words duplicating an earlier (lower(word), case_sensitive)",
        remove_duplicate_trigger_words,
    ),
    RepairStep(
        "enforce_trigger_word_uniqueness",
        "unique index over (lower(word), case_sensitive)",
        enforce_trigger_word_uniqueness,
        transactional=False,
    ),
    RepairStep(
        "backfill_anti_blocking_settings",
        "ensure anti_blocking_settings row id=1 exists",
        backfill_anti_blocking_settings,
    ),
)


@dataclass
class StepResult:
    name: str
    status: str
    rows_affected: Optional[int] = None
    detail: str = ""
    error: Optional[StepError] = None


@dataclass
class RepairReport:
    steps: List[StepResult] = field(default_factory=list)

    def _with_status(self, status: str) -> List[StepResult]:
        return [step for step in self.steps if step.status == status]

    @property
    def applied(self) -> List[StepResult]:
        return self._with_status(APPLIED)

    @property
    def skipped(self) -> List[StepResult]:
        return self._with_status(SKIPPED)

    @property
    def failed(self) -> List[StepResult]:
        return self._with_status(FAILED)

    def result_for(self, name: str) -> Optional[StepResult]:
        for step in self.steps:
            if step.name == name:
                return step
        return None


class SchemaRepairApplier:
    def __init__(
        self,
        pool: ConnectionPool,
        settings: Optional[Settings] = None,
        steps: Sequence[RepairStep] = REPAIR_STEPS,
    ):
        self.pool = pool
        self.settings = settings or Settings()
        self.steps = tuple(steps)

    def apply_fixes(self) -> RepairReport:
        """
        Run every step in order, continuing past failures.

        Raises:
            AggregateFailure: every attempted step failed
            PoolError: connections could not be acquired
        """
        report = RepairReport()
        for step in self.steps:
            report.steps.append(self._run_step(step))

        attempted = [result for result in report.steps if result.status != SKIPPED]
        if attempted and len(report.failed) == len(attempted):
            raise AggregateFailure(f"All {len(attempted)} repair steps failed", report=report)
        return report

    def _run_step(self, step: RepairStep) -> StepResult:
        dialect = self.pool.dialect_name
        if dialect not in step.dialects:
            logger.info("Skipping %s: not supported on %s", step.name, dialect)
            return StepResult(step.name, SKIPPED, detail=f"not supported on {dialect}")

        logger.info("Applying %s (%s)...", step.name, step.description)
        try:
            with self.pool.connection() as conn:
                if step.transactional:
                    with conn.begin():
                        self._set_lock_timeout(conn, local=True)
                        rows_affected, detail = step.run(conn)
                else:
                    session_timeout = self._set_lock_timeout(conn, local=False)
                    try:
                        rows_affected, detail = step.run(conn)
                    finally:
                        if session_timeout:
                            self._reset_lock_timeout(conn)
        except StepError as e:
            error = e
        except SQLAlchemyError as e:
            error = StepError(step.name, db_error_message(e))
        else:
            logger.info("Applied %s: %s", step.name, detail)
            return StepResult(step.name, APPLIED, rows_affected=rows_affected, detail=detail)

        logger.error("Step %s failed: %s", step.name, error.message)
        return StepResult(step.name, FAILED, detail=error.message, error=error)

    def _set_lock_timeout(self, conn: Connection, local: bool) -> bool:
        # Give up rather than queue behind long transactions and stall writers
        timeout_ms = int(self.settings.REPAIR_LOCK_TIMEOUT_MS)
        if self.pool.dialect_name != "postgresql" or timeout_ms <= 0:
            return False
        if local:
            conn.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
        else:
            # Session-wide for steps that commit more than once; reset before the connection goes back
            conn.execute(text(f"SET lock_timeout = {timeout_ms}"))
            conn.commit()
        return True

    def _reset_lock_timeout(self, conn: Connection) -> None:
        try:
            conn.rollback()
            conn.execute(text("RESET lock_timeout"))
            conn.commit()
        except SQLAlchemyError as e:
            logger.warning("Could not reset lock_timeout, discarding connection: %s", db_error_message(e))
            conn.invalidate()
