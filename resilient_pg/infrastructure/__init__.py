"""
Infrastructure package for resilient-pg.

Centralizes database connectivity concerns (pool lifecycle, statement
execution, transactions). Keep this layer focused on I/O and resource
management.
"""

from resilient_pg.infrastructure.client import DatabaseClient, PostgresRepository, TransactionUnit
from resilient_pg.infrastructure.connection import LeasedConnection, run_statement

__all__ = [
    "DatabaseClient",
    "PostgresRepository",
    "TransactionUnit",
    "LeasedConnection",
    "run_statement",
]
