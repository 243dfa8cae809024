"""
Exceptions raised by resilient-pg itself, plus the classification of driver
errors that mean "the database is not reachable (yet)".

Driver errors (``asyncpg.PostgresError``, ``OSError`` and friends) are never
wrapped in these; they reach the caller with their original type and message.
"""

from __future__ import annotations

import asyncio

from asyncpg import exceptions as pg_exceptions


class DatabaseClientError(Exception):
    """Base class for errors raised by this layer."""


class DatabaseConnectionError(DatabaseClientError):
    """No connection to the database could be attempted or established."""


class ClientClosedError(DatabaseClientError):
    """The client has been closed and its pool drained."""

    def __init__(self, message: str = "database client is closed") -> None:
        super().__init__(message)


class ConnectionReleasedError(DatabaseClientError):
    """A leased connection was used after it went back to the pool."""

    def __init__(self, message: str = "connection has already been released to the pool") -> None:
        super().__init__(message)


# Refused/reset sockets, timeouts, SQLSTATE class 08, and a server that is
# still starting up or out of connection slots.
CONNECTION_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    pg_exceptions.PostgresConnectionError,
    pg_exceptions.CannotConnectNowError,
    pg_exceptions.ConnectionDoesNotExistError,
    pg_exceptions.TooManyConnectionsError,
)


def is_connection_error(error: BaseException) -> bool:
    """Return True if ``error`` means the database could not be reached."""
    return isinstance(error, CONNECTION_ERRORS)


__all__ = [
    "DatabaseClientError",
    "DatabaseConnectionError",
    "ClientClosedError",
    "ConnectionReleasedError",
    "CONNECTION_ERRORS",
    "is_connection_error",
]
