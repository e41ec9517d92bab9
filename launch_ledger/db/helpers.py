"""
Database helper functions for common patterns.
Reduces boilerplate in the repository layer.
"""

import asyncio
import functools
from collections.abc import Iterable
from typing import Any

import psycopg

from launch_ledger.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    """Raised for any durable store failure."""

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        recoverable: bool = True,
        constraint: str | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable
        self.constraint = constraint


def _wrap_error(e: psycopg.Error, operation: str, query: str) -> DatabaseError:
    """Translate a psycopg error, keeping the violated constraint for callers."""
    constraint = None
    if isinstance(e, psycopg.IntegrityError) and e.diag is not None:
        constraint = e.diag.constraint_name

    logger.error(
        f"Database {operation} error",
        query=query[:100],
        error=str(e),
        constraint=constraint,
    )
    return DatabaseError(
        f"Query failed: {e}",
        operation=operation,
        recoverable=isinstance(e, psycopg.OperationalError),
        constraint=constraint,
    )


async def fetch_one(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Pool connection (rows are dicts)

    Returns:
        Dict with row data or None if no results
    """
    try:
        async with connection.cursor() as cur:
            await cur.execute(query, params)
            row = await cur.fetchone()
            return row if row else None
    except psycopg.Error as e:
        raise _wrap_error(e, "fetch_one", query) from e


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection
) -> list[dict[str, Any]]:
    """
    Execute query and return all rows as list of dicts.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Pool connection (rows are dicts)

    Returns:
        List of dicts with row data
    """
    try:
        async with connection.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()
    except psycopg.Error as e:
        raise _wrap_error(e, "fetch_all", query) from e


async def execute_query(query: str, params: tuple = (), *, connection: psycopg.AsyncConnection) -> int:
    """
    Execute query and return number of affected rows.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Pool connection

    Returns:
        Number of affected rows
    """
    try:
        cursor = await connection.execute(query, params)
        return cursor.rowcount
    except psycopg.Error as e:
        raise _wrap_error(e, "execute", query) from e


async def execute_many(
    query: str, params_seq: Iterable[tuple], *, connection: psycopg.AsyncConnection
) -> int:
    """
    Execute the same statement once per parameter tuple.

    Run inside db_pool.transaction() when the batch must be all-or-nothing.

    Returns:
        Total number of affected rows
    """
    try:
        async with connection.cursor() as cur:
            await cur.executemany(query, list(params_seq))
            return cur.rowcount
    except psycopg.Error as e:
        raise _wrap_error(e, "execute_many", query) from e


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Decorator to retry database operations on temporary failures.

    Only recoverable DatabaseErrors (connection drops, timeouts) are retried;
    integrity/data errors and non-database exceptions propagate immediately.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries (exponential backoff)
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)

                except DatabaseError as e:
                    if not e.recoverable or attempt >= max_retries:
                        if e.recoverable:
                            logger.error(
                                "Database operation failed after all retries",
                                operation=func.__name__,
                                attempts=attempt + 1,
                                error=str(e),
                            )
                        raise

                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Database operation failed, retrying",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
