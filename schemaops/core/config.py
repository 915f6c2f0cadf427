from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    PROJECT_NAME: str = "Monitor Schema Ops"

    # Credential file (key=value per line, '#' comments)
    CREDENTIALS_FILE: str = "aws.txt"
    CREDENTIAL_KEY_PREFIX: str = "DB_"
    # Used when the file names the generic "postgres" database (or none at all)
    DEFAULT_DATABASE: str = "tiktok_monitor"
    # Hosts ending with one of these are managed databases and require TLS
    MANAGED_HOST_SUFFIXES: List[str] = [".amazonaws.com"]

    # Target table for the index audit
    EVENTS_TABLE: str = "events"

    # Pool - small and fixed, this is a batch tool
    POOL_SIZE: int = 5
    POOL_ACQUIRE_TIMEOUT: float = 10.0  # seconds to wait for a free connection
    POOL_IDLE_TIMEOUT: float = 30.0     # idle connections older than this are replaced on checkout
    POOL_RECYCLE: int = 3600            # hard upper bound on connection age
    CONNECT_TIMEOUT: int = 10

    # Index audit
    CREATE_INDEX_CONCURRENTLY: bool = True
    # Row count above which a table with no usable index is treated as non-trivial
    NONTRIVIAL_ROW_COUNT: int = 1000

    # Schema repair: lock_timeout applied to each PostgreSQL step (0 disables)
    REPAIR_LOCK_TIMEOUT_MS: int = 5000

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"  # Ignore extra environment variables
