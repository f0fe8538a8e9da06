import logging
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_MARKERS = (
    "connection lost",
    "lost connection",
    "connection reset",
    "connection was closed",
    "connection is closed",
    "connection refused",
    "server closed the connection",
    "connection does not exist",
    "timed out",
    "timeout",
)


def is_transient_error(exc: BaseException) -> bool:
    """Connection-level failures worth one more attempt on a fresh connection."""
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True

    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        if isinstance(exc.orig, (ConnectionError, TimeoutError)):
            return True
        if isinstance(exc, (OperationalError, InterfaceError)):
            message = str(exc.orig or exc).lower()
            return any(marker in message for marker in _TRANSIENT_MARKERS)

    return False


async def run_in_transaction(
    engine: AsyncEngine,
    work: Callable[[AsyncConnection], Awaitable[T]],
    *,
    retries: int = 1,
    label: str = "query",
) -> T:
    """
    Run `work` inside one transaction on a pooled connection.

    The connection goes back to the pool on every exit path. Transient
    connectivity errors are retried `retries` times on a new connection;
    anything else propagates after the rollback.
    """
    attempt = 0
    while True:
        try:
            async with engine.begin() as conn:
                return await work(conn)
        except Exception as exc:
            if attempt >= retries or not is_transient_error(exc):
                raise
            attempt += 1
            logger.warning(
                "Transient database error during %s (attempt %s/%s): %s",
                label,
                attempt,
                retries + 1,
                exc,
            )


async def fetch_all(engine: AsyncEngine, statement: Any, params: dict | None = None) -> list:
    async def _work(conn: AsyncConnection):
        result = await conn.execute(statement, params or {})
        return result.mappings().all()

    return await run_in_transaction(engine, _work, label="select")
