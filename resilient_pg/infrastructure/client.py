"""
Resilient PostgreSQL client built on an asyncpg connection pool.

Adds three things on top of the driver's pool:

- ``wait_for_connection``: bounded retry with backoff until ``SELECT 1`` succeeds,
- ``execute_query``: single-statement passthrough with structured query logging,
- ``run_transaction``: BEGIN/COMMIT/ROLLBACK bracket on one dedicated connection.

The pool is created lazily on first use and drained by ``close()``. Pool
sizing, eviction and reconnects stay with asyncpg.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

import asyncpg

from resilient_pg.domain.models import PoolConfiguration, QueryResult
from resilient_pg.errors import ClientClosedError, DatabaseConnectionError, is_connection_error
from resilient_pg.infrastructure.connection import LeasedConnection, run_statement
from resilient_pg.utils.logging import get_logger, render_params
from resilient_pg.utils.retry import RetryPolicy, RetryPredicate, retry_async

log = get_logger(__name__)

T = TypeVar("T")

TransactionUnit = Callable[[LeasedConnection], Awaitable[T]]
PoolFactory = Callable[..., Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[None]]


class DatabaseClient:
    """
    Pooled database client with connection waiting, query logging and transactions.

    Parameters
    ----------
    config : PoolConfiguration, optional
        Connection target and pool tuning. Defaults to ``PoolConfiguration()``.
    pool_factory : PoolFactory
        Coroutine function creating the pool; ``asyncpg.create_pool`` unless
        a test substitutes it.
    sleep : SleepFn
        Awaitable sleep used for backoff between connection attempts.

    Example
    -------
        async with DatabaseClient(PoolConfiguration(host="db")) as client:
            await client.wait_for_connection(10, 2000)
            result = await client.execute_query("SELECT name FROM users WHERE id = $1", [7])
    """

    def __init__(
        self,
        config: Optional[PoolConfiguration] = None,
        *,
        pool_factory: PoolFactory = asyncpg.create_pool,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config or PoolConfiguration()
        self._pool_factory = pool_factory
        self._sleep = sleep
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()
        self._closing = False
        self._closed = False
        # Registered once; every pooled connection reports termination here.
        self._idle_error_handler: Callable[[Any], None] = self._log_connection_terminated

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "DatabaseClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        await self.close()

    async def open(self) -> None:
        """Create the pool now instead of on first use."""
        await self._get_pool()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._closing or self._closed:
            raise ClientClosedError()
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            if self._closing or self._closed:
                raise ClientClosedError()
            if self._pool is None:
                # A failed creation leaves _pool unset so the next call retries it.
                self._pool = await self._pool_factory(
                    **self.config.to_pool_kwargs(), init=self._init_connection
                )
                log.debug(
                    "Created connection pool for %s",
                    self.config.target,
                    extra={"min_size": self.config.min_size, "max_size": self.config.max_size},
                )
            return self._pool

    async def _init_connection(self, connection: Any) -> None:
        connection.add_termination_listener(self._idle_error_handler)

    def _log_connection_terminated(self, connection: Any) -> None:
        """Idle-connection error channel: log only, never raise."""
        del connection
        if self._closing or self._closed:
            log.debug("Pooled postgres connection closed during shutdown")
            return
        log.warning(
            "Idle postgres connection terminated (backend error or network partition)",
            extra={"target": self.config.target},
        )

    async def wait_for_connection(
        self,
        max_attempts: int,
        backoff_ms: int,
        *,
        retryable: RetryPredicate = is_connection_error,
    ) -> None:
        """
        Wait until a successful connection to the database has been established.

        Repeatedly runs the no-op query ``SELECT 1`` until it succeeds, sleeping
        ``backoff_ms`` between failed attempts. There is no guarantee that later
        queries will succeed too; the database and the network can fail at any time.

        Parameters
        ----------
        max_attempts : int
            Number of connection attempts. 0 fails without attempting.
        backoff_ms : int
            Milliseconds to wait before the next attempt.
        retryable : RetryPredicate
            Errors for which this returns False are raised without retrying.

        Raises
        ------
        DatabaseConnectionError
            If ``max_attempts`` is 0.
        ValueError
            If either argument is negative.
        Exception
            The last connection error once all attempts failed.
        """
        if max_attempts < 0 or backoff_ms < 0:
            raise ValueError("max_attempts and backoff_ms must not be negative")
        if max_attempts == 0:
            raise DatabaseConnectionError(
                "Failed to connect to database: no connection attempt was made (max_attempts=0)"
            )

        log.debug("Waiting for a database connection to %s", self.config.target)

        def _on_failure(attempt: int, error: BaseException) -> None:
            log.info(
                "Failed connecting to database (%d/%d): %s",
                attempt,
                max_attempts,
                error,
                extra={"attempt": attempt, "max_attempts": max_attempts},
            )

        async def _ping() -> None:
            pool = await self._get_pool()
            await pool.execute("SELECT 1")

        await retry_async(
            _ping,
            RetryPolicy(max_attempts=max_attempts, backoff_ms=backoff_ms),
            retryable=retryable,
            on_failure=_on_failure,
            sleep=self._sleep,
        )
        log.info("Successfully established connection to database.")

    async def execute_query(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        """
        Execute a single statement on a pooled connection.

        Each call may run on a different connection from the pool. PostgreSQL
        scopes transactions to one connection, so never issue BEGIN/COMMIT
        through this method; use ``run_transaction`` instead.

        Parameters
        ----------
        query : str
            Statement text with ``$1``-style placeholders.
        params : Sequence[Any]
            Positional parameter values.

        Returns
        -------
        QueryResult
            Rows and row count.
        """
        params = list(params)
        rendered = render_params(params)
        try:
            pool = await self._get_pool()
            async with pool.acquire() as connection:
                result = await run_statement(connection, query, params)
        except Exception:
            log.error(
                '[Query] "%s" with values %s failed',
                query,
                rendered,
                exc_info=True,
                extra={"query": query, "params": rendered},
            )
            raise
        log.debug(
            '[Query] "%s" with values %s led to %s results',
            query,
            rendered,
            result.row_count,
            extra={"query": query, "params": rendered, "row_count": result.row_count},
        )
        return result

    async def run_transaction(self, unit: TransactionUnit[T]) -> T:
        """
        Run ``unit`` inside a transaction on one dedicated connection.

        The transaction is committed if ``unit`` returns and rolled back if it
        raises (or if COMMIT fails); the original error is re-raised. Only use
        the connection passed to ``unit``; statements sent through the client
        run on other connections, outside the transaction.

        Parameters
        ----------
        unit : TransactionUnit[T]
            Coroutine function receiving the leased connection.

        Returns
        -------
        T
            Whatever ``unit`` returned.
        """
        try:
            pool = await self._get_pool()
            connection = await pool.acquire()
        except Exception:
            log.debug("Transaction not started: acquiring a connection failed", exc_info=True)
            raise
        leased = LeasedConnection(connection)
        try:
            await connection.execute("BEGIN")
            try:
                result = await unit(leased)
                await connection.execute("COMMIT")
            except Exception as error:
                await self._rollback(connection, error)
                raise
            log.debug("Transaction committed")
            return result
        finally:
            leased._mark_released()
            await pool.release(connection)

    # Alias kept for callers of the older method name.
    transaction = run_transaction

    async def _rollback(self, connection: Any, error: BaseException) -> None:
        try:
            await connection.execute("ROLLBACK")
        except Exception:
            log.error(
                "Rollback failed; re-raising the original transaction error",
                exc_info=True,
                extra={"primary_error": repr(error)},
            )
            return
        log.debug("Transaction rolled back", extra={"primary_error": repr(error)})

    async def close(self) -> None:
        """
        Drain and close the pool.

        Waits for checked-out connections to be released. Safe to call more than
        once; do not call it while queries are still in flight.
        """
        if self._closed or self._closing:
            return
        self._closing = True
        try:
            async with self._pool_lock:
                pool, self._pool = self._pool, None
            if pool is not None:
                await pool.close()
                log.debug("Closed connection pool for %s", self.config.target)
        finally:
            self._closed = True
            self._closing = False


# Older name of the client, kept so callers can migrate gradually.
PostgresRepository = DatabaseClient


__all__ = ["DatabaseClient", "PostgresRepository", "TransactionUnit"]
