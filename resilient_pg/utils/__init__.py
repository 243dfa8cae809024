"""
Utilities package for resilient-pg.

Exports shared helpers for logging and retrying. Keep this package
lightweight and free of database-specific logic.
"""

from resilient_pg.utils.logging import configure_logging, get_logger, render_params
from resilient_pg.utils.retry import RetryPolicy, retry_any, retry_async

__all__ = [
    "configure_logging",
    "get_logger",
    "render_params",
    "RetryPolicy",
    "retry_any",
    "retry_async",
]
