"""
Domain models for resilient-pg.

``PoolConfiguration`` describes where the pool connects and how it is tuned;
``QueryResult`` is the immutable outcome of one statement.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from resilient_pg.config import Settings


class PoolConfiguration(BaseModel):
    """
    Connection target and pool tuning, passed through to ``asyncpg.create_pool``.

    Only types are checked here; the driver validates the values themselves.
    """

    host: str = Field("localhost", description="Database server host.")
    port: int = Field(5432, description="Database server port.")
    user: str = Field("postgres", description="Login role.")
    password: str = Field("", repr=False, description="Login password.")
    database: str = Field("postgres", description="Target database name.")
    min_size: int = Field(0, description="Connections opened when the pool is created.")
    max_size: int = Field(10, description="Upper bound of pooled connections.")
    max_inactive_connection_lifetime: float = Field(
        0.0,
        description="Seconds before an idle connection is closed; 0 keeps them open.",
    )
    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Extra keyword arguments for asyncpg.create_pool (command_timeout, ssl, ...).",
    )

    model_config = {
        "frozen": True,
    }

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PoolConfiguration":
        """Build a configuration from environment settings."""
        options: Dict[str, Any] = {}
        if settings.db_command_timeout is not None:
            options["command_timeout"] = settings.db_command_timeout
        return cls(
            host=settings.db_host,
            port=settings.db_port,
            user=settings.db_user,
            password=settings.db_password,
            database=settings.db_name,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            options=options,
        )

    @property
    def target(self) -> str:
        """Printable ``user@host:port/database``, without the password."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"

    def to_pool_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``asyncpg.create_pool``."""
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": self.database,
            "min_size": self.min_size,
            "max_size": self.max_size,
            "max_inactive_connection_lifetime": self.max_inactive_connection_lifetime,
        }
        kwargs.update(self.options)
        return kwargs


def _parse_status(status: Optional[str]) -> Tuple[Optional[str], Optional[int]]:
    """
    Split a command status tag into command and row count.

    "INSERT 0 2" -> ("INSERT", 2), "SELECT 1" -> ("SELECT", 1),
    "CREATE TABLE" -> ("CREATE TABLE", None).
    """
    if not status:
        return None, None
    words = status.split()
    count: Optional[int] = None
    if len(words) > 1 and words[-1].isdigit():
        count = int(words[-1])
    command = " ".join(word for word in words if not word.isdigit())
    return command or None, count


class QueryResult(BaseModel):
    """
    Rows and row count of one executed statement.
    """

    rows: Tuple[Dict[str, Any], ...] = Field(default_factory=tuple, description="Result rows in order.")
    row_count: Optional[int] = Field(
        None, description="Rows returned or affected; None if the command reports no count."
    )
    command: Optional[str] = Field(None, description="Command word of the status tag, e.g. SELECT.")

    model_config = {
        "frozen": True,
    }

    @classmethod
    def from_records(
        cls, records: Iterable[Mapping[str, Any]], status: Optional[str] = None
    ) -> "QueryResult":
        """Build a result from driver records and the command status tag."""
        rows = tuple(dict(record.items()) for record in records)
        command, count = _parse_status(status)
        if count is None and command is None:
            count = len(rows)
        return cls(rows=rows, row_count=count, command=command)

    def column(self, name: str) -> list:
        """Values of one column across all rows."""
        return [row[name] for row in self.rows]


__all__ = ["PoolConfiguration", "QueryResult"]
