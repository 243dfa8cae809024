"""
Domain package for resilient-pg.

Exports the configuration and result models shared by the client and the CLI.
Keep this package focused on data definitions and validation concerns.
"""

from resilient_pg.domain.models import PoolConfiguration, QueryResult

__all__ = [
    "PoolConfiguration",
    "QueryResult",
]
