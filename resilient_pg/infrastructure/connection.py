"""
Statement execution on a single driver connection.

``run_statement`` is the one place that talks to asyncpg's statement APIs, so
the pooled query path and the transaction path build ``QueryResult`` the same
way.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from asyncpg.connection import Connection

from resilient_pg.domain.models import QueryResult
from resilient_pg.errors import ConnectionReleasedError

# Lexical spans where a semicolon does not end a command, plus the separator itself.
_LEXICAL = re.compile(
    r"""
      '(?:[^']|'')*'                                          # string literal
    | "(?:[^"]|"")*"                                          # quoted identifier
    | --[^\n]*                                                # line comment
    | /\*.*?\*/                                               # block comment
    | \$(?P<tag>(?:[A-Za-z_][A-Za-z_0-9]*)?)\$.*?\$(?P=tag)\$ # dollar-quoted body
    | ;
    """,
    re.VERBOSE | re.DOTALL,
)


def count_commands(query: str) -> int:
    """
    Number of non-empty, semicolon-separated commands in ``query``.

    Semicolons inside literals, quoted identifiers, comments and dollar-quoted
    bodies do not count; empty commands (``;;`` or a trailing ``;``) neither.
    """
    commands = 0
    has_content = False
    position = 0
    for match in _LEXICAL.finditer(query):
        if query[position:match.start()].strip():
            has_content = True
        token = match.group(0)
        if token == ";":
            commands += has_content
            has_content = False
        elif not token.startswith(("--", "/*")):
            has_content = True
        position = match.end()
    if query[position:].strip():
        has_content = True
    return commands + has_content


async def run_statement(connection: Connection, query: str, params: Sequence[Any] = ()) -> QueryResult:
    """
    Run one parameterized statement (``$1``, ``$2``, ...) and collect its result.

    The status tag is read from the prepared statement so commands that
    return no rows (INSERT, UPDATE, DDL) still report their row count.
    ``Connection.prepare`` bypasses asyncpg's statement cache, so each call
    costs one extra Parse/Describe round trip.

    Text holding several commands cannot be prepared; without parameters it
    goes through the simple query protocol instead, returns no rows, and
    reports the status of the last command.
    """
    if not params and count_commands(query) > 1:
        status = await connection.execute(query)
        return QueryResult.from_records((), status)
    statement = await connection.prepare(query)
    records = await statement.fetch(*params)
    return QueryResult.from_records(records, statement.get_statusmsg())


class LeasedConnection:
    """
    One checked-out connection, handed to a transaction unit.

    Every statement issued here runs inside the surrounding transaction.
    The handle stops working once the connection goes back to the pool.
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def raw(self) -> Connection:
        """The underlying asyncpg connection, for driver features not wrapped here."""
        self._check_leased()
        return self._connection

    async def query(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run a parameterized statement on this connection."""
        self._check_leased()
        return await run_statement(self._connection, query, params)

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return its status tag (e.g. ``"INSERT 0 1"``)."""
        self._check_leased()
        return await self._connection.execute(query, *args)

    def _check_leased(self) -> None:
        if self._released:
            raise ConnectionReleasedError()

    def _mark_released(self) -> None:
        self._released = True


__all__ = ["LeasedConnection", "count_commands", "run_statement"]
