"""Index audit and idempotent schema repair for the live-monitoring store."""

__version__ = "0.1.0"
