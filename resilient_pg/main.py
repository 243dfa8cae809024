from __future__ import annotations

import asyncio
import json
import sys
from typing import List, Optional

import typer

from resilient_pg.config import get_settings
from resilient_pg.domain.models import PoolConfiguration
from resilient_pg.infrastructure.client import DatabaseClient
from resilient_pg.utils.logging import configure_logging

app = typer.Typer(help="resilient-pg CLI.")


def _client() -> DatabaseClient:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return DatabaseClient(PoolConfiguration.from_settings(settings))


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    config = PoolConfiguration.from_settings(settings)
    typer.echo(
        f"DB={config.target} | pool=({config.min_size},{config.max_size}) "
        f"retries={settings.db_connection_retries} backoff_ms={settings.db_connection_backoff_ms}"
    )


@app.command()
def wait(
    retries: Optional[int] = typer.Option(
        None,
        "--retries",
        "-r",
        help="Number of connection attempts (default from settings).",
    ),
    backoff_ms: Optional[int] = typer.Option(
        None,
        "--backoff-ms",
        "-b",
        help="Milliseconds between attempts (default from settings).",
    ),
) -> None:
    """
    Block until the database accepts queries; exit with status 1 if it never does.
    """
    settings = get_settings()
    attempts = settings.db_connection_retries if retries is None else retries
    backoff = settings.db_connection_backoff_ms if backoff_ms is None else backoff_ms

    async def _wait() -> None:
        async with _client() as client:
            await client.wait_for_connection(attempts, backoff)

    try:
        asyncio.run(_wait())
    except Exception as exc:
        typer.echo(f"Database not reachable: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo("Database is reachable.")


@app.command()
def query(
    sql: str = typer.Argument(..., help="Statement with $1-style placeholders."),
    params: Optional[List[str]] = typer.Argument(None, help="Positional parameter values."),
) -> None:
    """
    Run one statement and print the result as JSON.
    """

    async def _query():
        async with _client() as client:
            return await client.execute_query(sql, params or [])

    try:
        result = asyncio.run(_query())
    except Exception as exc:
        typer.echo(f"Query failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(result.model_dump(), indent=2, default=str))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
