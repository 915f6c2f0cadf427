"""
Human-readable run summaries.

Each emitter writes plain lines to a text stream (stdout unless given), so
the summary interleaves with the log lines of the same run.
"""
import sys
from typing import Optional, TextIO

from schemaops.services.connection_check import ConnectionCheck
from schemaops.services.index_auditor import AuditReport
from schemaops.services.schema_repair import APPLIED, FAILED, RepairReport

OK = "✅"
WARN = "⚠️ "
FAIL = "❌"


def _format_rows(count: Optional[int]) -> str:
    return f"{count:,}" if count is not None else "unknown"


def emit_audit_report(report: AuditReport, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    print(f"\nIndex audit for {report.table}:", file=out)
    for name in report.present:
        print(f"  {OK} {name} (already present)", file=out)
    for name in report.created:
        suffix = " (rebuilt invalid index)" if name in report.rebuilt else ""
        print(f"  {OK} {name} created{suffix}", file=out)
    for name, message in report.failed.items():
        print(f"  {FAIL} {name}: {message}", file=out)
    for error in report.errors:
        if error.step.startswith("create_index:"):
            continue
        print(f"  {WARN} {error.step}: {error.message}", file=out)

    print(f"\n{report.table} table statistics:", file=out)
    stats = report.stats
    if stats is None:
        print("  unavailable", file=out)
    else:
        if stats.total_size is not None:
            print(f"  Total size: {stats.total_size}", file=out)
        if stats.table_size is not None:
            print(f"  Table size: {stats.table_size}", file=out)
        print(f"  Row count: {_format_rows(stats.row_count)}", file=out)

    print(
        f"\nSummary: {len(report.created)} created, {len(report.present)} already present, "
        f"{len(report.failed)} failed",
        file=out,
    )
    if report.fatal:
        print(f"{FAIL} No usable index on {report.table}; audit failed", file=out)
    elif report.failed or report.errors:
        print(f"{WARN} Index check finished with errors", file=out)
    else:
        print(f"{OK} Index check complete!", file=out)


def emit_repair_report(report: RepairReport, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    print("\nSchema repair:", file=out)
    for step in report.steps:
        if step.status == APPLIED:
            marker = OK
        elif step.status == FAILED:
            marker = FAIL
        else:
            marker = WARN
        print(f"  {marker} {step.name} [{step.status}] {step.detail}".rstrip(), file=out)

    print(
        f"\nSummary: {len(report.applied)} applied, {len(report.skipped)} skipped, "
        f"{len(report.failed)} failed",
        file=out,
    )
    if report.failed:
        print(f"{WARN} Repair finished with failed steps; re-run after fixing the cause", file=out)
    else:
        print(f"{OK} Repair complete!", file=out)


def emit_connection_check(check: ConnectionCheck, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    print(f"{OK} Connection successful!", file=out)
    if check.current_time:
        print(f"  Current time: {check.current_time}", file=out)
    if check.server_version:
        print(f"  Server version: {check.server_version}", file=out)
    if check.tables:
        print(f"{OK} Found {len(check.tables)} tables:", file=out)
        for table in check.tables:
            print(f"  - {table}", file=out)
    else:
        print(f"{WARN} No tables found in database", file=out)
