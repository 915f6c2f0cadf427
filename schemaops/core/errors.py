"""
Error taxonomy for schema maintenance runs.

ConfigError and PoolError are fatal and stop the run before (or instead of)
touching the schema. StepError is recovered locally by the component that
raised it. AggregateFailure is raised once recovered errors have left the
schema in a state no better than a broken start.
"""
from typing import Any, Optional


def db_error_message(exc: BaseException) -> str:
    """First line of the driver's message, without SQLAlchemy's statement/params echo."""
    orig = getattr(exc, "orig", None)
    message = str(orig if orig is not None else exc).strip()
    return message.splitlines()[0] if message else exc.__class__.__name__


class SchemaOpsError(Exception):
    """Base class for every error raised by schemaops."""


class ConfigError(SchemaOpsError):
    """Credential file is unreadable or holds an unparseable value."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class PoolError(SchemaOpsError):
    """A database connection could not be opened or acquired."""


class PoolTimeout(PoolError):
    """No pooled connection became free within the acquire timeout."""


class StepError(SchemaOpsError):
    """A single index creation or repair step failed."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step
        self.message = message


class AggregateFailure(SchemaOpsError):
    """Recovered step failures left the schema unusable; carries the run report."""

    def __init__(self, message: str, report: Any = None):
        super().__init__(message)
        self.report = report
