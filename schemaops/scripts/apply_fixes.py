#!/usr/bin/env python3
"""Apply the corrective schema fixes (constraint, duplicates, uniqueness, settings row)"""
import sys

from schemaops.core.errors import AggregateFailure
from schemaops.database import RunContext
from schemaops.scripts.common import run_entry_point
from schemaops.services.report import emit_repair_report
from schemaops.services.schema_repair import SchemaRepairApplier


def apply_fixes(ctx: RunContext) -> None:
    applier = SchemaRepairApplier(ctx.pool, ctx.settings)
    try:
        report = applier.apply_fixes()
    except AggregateFailure as e:
        if e.report is not None:
            emit_repair_report(e.report)
        raise
    emit_repair_report(report)


def main() -> int:
    return run_entry_point("apply_fixes", apply_fixes)


if __name__ == "__main__":
    sys.exit(main())
