#!/usr/bin/env python3
"""Verify the credential file and database connectivity before running maintenance"""
import sys

from schemaops.database import RunContext
from schemaops.scripts.common import run_entry_point
from schemaops.services.connection_check import check_connection
from schemaops.services.report import emit_connection_check


def verify_connection(ctx: RunContext) -> None:
    print(f"Testing connection to {ctx.descriptor.safe_summary()}...")
    emit_connection_check(check_connection(ctx.pool))


def main() -> int:
    return run_entry_point("verify_connection", verify_connection)


if __name__ == "__main__":
    sys.exit(main())
