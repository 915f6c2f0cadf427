"""
Credential resolver for the monitoring database.

Reads a flat key=value credential file (the same format the monitoring
application ships as aws.txt / db.txt) into a typed ConnectionDescriptor.
Missing optional fields fall back to local-development defaults so a dev run
is never blocked; only an unreadable file or an unparseable value fails.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from schemaops.core.config import Settings
from schemaops.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5432
DEFAULT_USER = "postgres"
DEFAULT_PASSWORD = ""

# The generic database name every PostgreSQL server has; never the app database
PLACEHOLDER_DATABASE = "postgres"
# Host names that sometimes land in the database field by mistake
HOSTLIKE_DATABASE_VALUES = ("localhost", "127.0.0.1")

# Key aliases accepted after the prefix is stripped and the key lower-cased
KEY_ALIASES = {
    "server": "host",
    "username": "user",
}


@dataclass(frozen=True)
class ConnectionDescriptor:
    host: str
    port: int
    database: str
    user: str
    password: str = field(repr=False)
    tls_required: bool = False
    extras: Dict[str, str] = field(default_factory=dict, repr=False, compare=False)

    def safe_summary(self) -> str:
        """One-line description without the password, safe for logs."""
        tls = "TLS" if self.tls_required else "no TLS"
        return f"{self.user}@{self.host}:{self.port}/{self.database} ({tls})"


def _normalize_key(raw_key: str, prefix: str) -> str:
    key = raw_key.strip()
    if prefix and key.upper().startswith(prefix.upper()):
        key = key[len(prefix):]
    key = key.lower()
    return KEY_ALIASES.get(key, key)


def parse_key_values(text: str, prefix: str = "DB_") -> Dict[str, str]:
    """
    Parse key=value lines.

    Blank lines and lines starting with '#' are ignored. Each line is split on
    the first '=' so values may contain '='. Entries with an empty key or an
    empty value are dropped.
    """
    values: Dict[str, str] = {}
    for line in text.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        if "=" not in trimmed:
            logger.debug("Ignoring credential line without '=': %r", trimmed[:20])
            continue
        raw_key, raw_value = trimmed.split("=", 1)
        key = _normalize_key(raw_key, prefix)
        value = raw_value.strip()
        if key and value:
            values[key] = value
    return values


def is_managed_host(host: str, suffixes) -> bool:
    host_lower = (host or "").strip().lower().rstrip(".")
    return any(host_lower.endswith(suffix.lower()) for suffix in suffixes)


def parse_credentials(text: str, settings: Settings) -> ConnectionDescriptor:
    """Build a ConnectionDescriptor from credential file content."""
    values = parse_key_values(text, settings.CREDENTIAL_KEY_PREFIX)

    host = values.pop("host", DEFAULT_HOST)
    user = values.pop("user", DEFAULT_USER)
    password = values.pop("password", DEFAULT_PASSWORD)

    raw_port = values.pop("port", str(DEFAULT_PORT))
    try:
        port = int(raw_port)
    except ValueError:
        raise ConfigError(f"Invalid port value {raw_port!r} in credential file")
    if not 0 < port < 65536:
        raise ConfigError(f"Port {port} is out of range")

    database = values.pop("database", None)
    if not database or database == PLACEHOLDER_DATABASE or database in HOSTLIKE_DATABASE_VALUES:
        database = settings.DEFAULT_DATABASE

    return ConnectionDescriptor(
        host=host,
        port=port,
        database=database,
        user=user,
        password=password,
        tls_required=is_managed_host(host, settings.MANAGED_HOST_SUFFIXES),
        extras=values,
    )


def resolve(path: str, settings: Settings) -> ConnectionDescriptor:
    """
    Read and parse the credential file at `path`.

    Raises:
        ConfigError: the file cannot be read or contains an unparseable value
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            content = fh.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read credential file {path}: {e}", path=path) from e

    try:
        descriptor = parse_credentials(content, settings)
    except ConfigError as e:
        e.path = path
        raise

    logger.info("Resolved database credentials from %s: %s", path, descriptor.safe_summary())
    return descriptor


def resolve_credentials(
    path: str, settings: Settings
) -> Tuple[Optional[ConnectionDescriptor], Optional[ConfigError]]:
    """
    Result-returning form of resolve().

    Returns:
        Tuple of:
        - descriptor: the resolved ConnectionDescriptor (or None on failure)
        - error: the ConfigError describing the failure (or None on success)
    """
    try:
        return resolve(path, settings), None
    except ConfigError as e:
        return None, e
