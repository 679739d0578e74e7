"""Bounded-retry transactions.

Every inventory mutation runs inside ``run_in_transaction``: the callback gets a
session with an open transaction, and the whole callback is replayed when the
backend reports contention (lock timeout, deadlock, serialization failure,
SQLite busy) or when an optimistic version guard misses. Any other database
error propagates unchanged. After ``max_attempts`` the caller gets
``ConcurrentModification`` and may retry the whole operation.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from room_inventory.exceptions import ConcurrentModification

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StaleRowError(Exception):
    """A guarded UPDATE matched no row: someone else changed it first."""


# lock_not_available, deadlock_detected, serialization_failure
CONTENTION_SQLSTATES = frozenset({"55P03", "40P01", "40001"})
SQLITE_BUSY_MESSAGES = ("database is locked", "database table is locked", "database is busy")


def is_contention(exc: OperationalError) -> bool:
    """True when the backend gave up waiting for another transaction, not for any other failure."""
    orig = exc.orig
    if getattr(orig, "sqlstate", None) in CONTENTION_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(busy in message for busy in SQLITE_BUSY_MESSAGES)


async def _apply_lock_timeout(session: AsyncSession, lock_timeout_ms: int) -> None:
    if session.bind.dialect.name == "postgresql":
        await session.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))


async def run_in_transaction(
    session_factory: sessionmaker,
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    max_attempts: int = 5,
    retry_delay: float = 0.05,
    lock_timeout_ms: int = 5000,
    operation: str = "transaction",
) -> T:
    attempt = 0
    while True:
        attempt += 1
        try:
            async with session_factory() as session:
                async with session.begin():
                    await _apply_lock_timeout(session, lock_timeout_ms)
                    return await work(session)
        except (StaleRowError, OperationalError) as exc:
            if isinstance(exc, OperationalError) and not is_contention(exc):
                raise
            if attempt >= max_attempts:
                logger.error("%s gave up after %d attempts: %s", operation, attempt, exc)
                raise ConcurrentModification(operation=operation, attempts=attempt) from exc
            logger.warning("%s conflicted (attempt %d/%d): %s", operation, attempt, max_attempts, exc)
            await asyncio.sleep(retry_delay * attempt)
