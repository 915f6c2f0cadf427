"""
Centralized logging configuration for the maintenance scripts.
This ensures consistent logging setup across the entry points and tests.
"""
import logging
import sys


def setup_logging(level: str = "INFO"):
    """
    Configure logging for a run.

    Uses basicConfig to set up:
    - Root logger level: `level` (INFO unless overridden by settings)
    - Format: timestamp, level, name, message
    - Handler: StreamHandler to stdout, so progress and summary share one stream
    """
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
