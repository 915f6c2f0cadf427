#!/usr/bin/env python3
"""Check the events table for missing critical indexes and create them"""
import sys

from schemaops.core.errors import AggregateFailure
from schemaops.database import RunContext
from schemaops.scripts.common import run_entry_point
from schemaops.services.index_auditor import IndexAuditor
from schemaops.services.report import emit_audit_report


def check_indexes(ctx: RunContext) -> None:
    auditor = IndexAuditor(ctx.pool, ctx.settings)
    try:
        report = auditor.audit(ctx.settings.EVENTS_TABLE)
    except AggregateFailure as e:
        if e.report is not None:
            emit_audit_report(e.report)
        raise
    emit_audit_report(report)


def main() -> int:
    return run_entry_point("check_indexes", check_indexes)


if __name__ == "__main__":
    sys.exit(main())
