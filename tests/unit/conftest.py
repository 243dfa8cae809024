"""
In-memory stand-ins for the slice of asyncpg the client uses.

FakePool mimics ``asyncpg.Pool`` (acquire/release/execute/close and the
``init`` hook), FakeConnection mimics a pooled connection, and FakeStatement
a prepared statement. Unit tests drive the client through these without a
running database.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

import pytest

from resilient_pg.domain.models import PoolConfiguration
from resilient_pg.infrastructure.client import DatabaseClient

StatementResponse = Union[Tuple[List[Dict[str, Any]], str], BaseException]


class FakeStatement:
    def __init__(self, connection: "FakeConnection", query: str) -> None:
        self._connection = connection
        self.query = query
        self._status: Optional[str] = None

    async def fetch(self, *args: Any) -> List[Dict[str, Any]]:
        self._connection.statements.append((self.query, args))
        response = self._connection.pool.responses.get(self.query, ([], "SELECT 0"))
        if isinstance(response, BaseException):
            raise response
        records, self._status = response
        return records

    def get_statusmsg(self) -> Optional[str]:
        return self._status


class FakeConnection:
    def __init__(self, pool: "FakePool") -> None:
        self.pool = pool
        self.statements: List[Tuple[str, Tuple[Any, ...]]] = []
        self.prepared: List[str] = []
        self.termination_listeners: List[Any] = []

    async def prepare(self, query: str) -> FakeStatement:
        self.prepared.append(query)
        return FakeStatement(self, query)

    async def execute(self, query: str, *args: Any) -> str:
        self.statements.append((query, args))
        error = self.pool.statement_errors.get(query)
        if error is not None:
            raise error
        return self.pool.statuses.get(query, query)

    def add_termination_listener(self, callback: Any) -> None:
        self.termination_listeners.append(callback)

    def terminate(self) -> None:
        for callback in self.termination_listeners:
            callback(self)

    def executed(self) -> List[str]:
        return [query for query, _ in self.statements]


class _AcquireContext:
    def __init__(self, pool: "FakePool") -> None:
        self._pool = pool
        self._connection: Optional[FakeConnection] = None

    def __await__(self):
        return self._pool._checkout().__await__()

    async def __aenter__(self) -> FakeConnection:
        self._connection = await self._pool._checkout()
        return self._connection

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        await self._pool.release(self._connection)


class FakePool:
    def __init__(self) -> None:
        self.init: Any = None
        self.connections: List[FakeConnection] = []
        self.released: List[FakeConnection] = []
        self.responses: Dict[str, StatementResponse] = {
            "SELECT 1": ([{"?column?": 1}], "SELECT 1"),
        }
        self.statement_errors: Dict[str, BaseException] = {}
        self.statuses: Dict[str, str] = {}
        self.acquire_error: Optional[BaseException] = None
        self.ping_errors: List[BaseException] = []
        self.ping_calls = 0
        self.close_calls = 0
        self.closed = False

    def acquire(self) -> _AcquireContext:
        return _AcquireContext(self)

    async def _checkout(self) -> FakeConnection:
        if self.closed:
            raise RuntimeError("pool is closed")
        if self.acquire_error is not None:
            raise self.acquire_error
        connection = FakeConnection(self)
        if self.init is not None:
            await self.init(connection)
        self.connections.append(connection)
        return connection

    async def release(self, connection: FakeConnection) -> None:
        self.released.append(connection)

    async def execute(self, query: str) -> str:
        self.ping_calls += 1
        if self.ping_errors:
            raise self.ping_errors.pop(0)
        return query

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakePoolFactory:
    """Stands in for ``asyncpg.create_pool``."""

    def __init__(self, pool: FakePool) -> None:
        self.pool = pool
        self.calls: List[Dict[str, Any]] = []
        self.errors: List[BaseException] = []

    async def __call__(self, **kwargs: Any) -> FakePool:
        self.calls.append(kwargs)
        if self.errors:
            raise self.errors.pop(0)
        self.pool.init = kwargs.get("init")
        return self.pool


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def pool_factory(fake_pool: FakePool) -> FakePoolFactory:
    return FakePoolFactory(fake_pool)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def client(pool_factory: FakePoolFactory, recording_sleep: RecordingSleep) -> DatabaseClient:
    config = PoolConfiguration(host="db.internal", user="app", password="secret", database="app")
    return DatabaseClient(config, pool_factory=pool_factory, sleep=recording_sleep)
