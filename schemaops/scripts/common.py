"""Shared wiring for the maintenance entry points: settings, logging, run context, exit codes."""
import logging
from typing import Callable, Optional

from schemaops.core.config import Settings
from schemaops.core.errors import AggregateFailure, ConfigError, PoolError
from schemaops.core.logging_config import setup_logging
from schemaops.database import RunContext, open_run_context

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1


def run_entry_point(name: str, action: Callable[[RunContext], None], settings: Optional[Settings] = None) -> int:
    """
    Run `action` inside a fresh RunContext and translate the outcome to an exit code.

    Recovered step failures are the action's business; only fatal errors
    (config, pool, aggregate) and unexpected exceptions end in EXIT_FATAL.
    """
    settings = settings or Settings()
    setup_logging(settings.LOG_LEVEL)
    try:
        with open_run_context(settings) as ctx:
            action(ctx)
    except ConfigError as e:
        logger.error("%s: configuration error: %s", name, e)
        return EXIT_FATAL
    except PoolError as e:
        logger.error("%s: database unavailable: %s", name, e)
        return EXIT_FATAL
    except AggregateFailure as e:
        logger.error("%s failed: %s", name, e)
        return EXIT_FATAL
    except Exception as e:
        logger.error("%s: unexpected error: %s", name, e, exc_info=True)
        return EXIT_FATAL
    return EXIT_OK
