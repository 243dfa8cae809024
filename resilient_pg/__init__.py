"""
resilient-pg - a small resilience layer over an asyncpg connection pool.

Adds to the driver's pool:

- waiting for the database with bounded retries and backoff
- single-statement execution with structured query logging
- transaction bracketing on one dedicated connection with guaranteed release
- explicit, idempotent pool shutdown
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from resilient_pg.config import Settings, get_settings
from resilient_pg.domain.models import PoolConfiguration, QueryResult
from resilient_pg.errors import (
    ClientClosedError,
    ConnectionReleasedError,
    DatabaseClientError,
    DatabaseConnectionError,
    is_connection_error,
)
from resilient_pg.infrastructure.client import DatabaseClient, PostgresRepository, TransactionUnit
from resilient_pg.infrastructure.connection import LeasedConnection
from resilient_pg.utils.logging import configure_logging, get_logger
from resilient_pg.utils.retry import RetryPolicy, retry_async

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    "PoolConfiguration",
    # Client
    "DatabaseClient",
    "PostgresRepository",
    "LeasedConnection",
    "QueryResult",
    "TransactionUnit",
    # Errors
    "DatabaseClientError",
    "DatabaseConnectionError",
    "ClientClosedError",
    "ConnectionReleasedError",
    "is_connection_error",
    # Retry
    "RetryPolicy",
    "retry_async",
    # Logging
    "configure_logging",
    "get_logger",
]
