import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import ConcurrentModificationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ER_LOCK_WAIT_TIMEOUT, ER_LOCK_DEADLOCK. InnoDB rolls back the whole transaction on both.
LOCK_CONFLICT_CODES = frozenset({1205, 1213})


def is_lock_conflict(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    args = getattr(orig, "args", ())
    return bool(args) and args[0] in LOCK_CONFLICT_CODES


async def _attempt(session: AsyncSession, work: Callable[[], Awaitable[T]]) -> T:
    async with session.begin():
        return await work()


async def run_in_transaction(session: AsyncSession, work: Callable[[], Awaitable[T]], *, action: str) -> T:
    """Run `work` in one transaction; rerun it once from scratch after a deadlock or lock-wait timeout."""
    try:
        return await _attempt(session, work)
    except DBAPIError as exc:
        if not is_lock_conflict(exc):
            raise
        logger.info("lock conflict during %s, rerunning the transaction", action)
    try:
        return await _attempt(session, work)
    except DBAPIError as exc:
        if not is_lock_conflict(exc):
            raise
        logger.warning("lock conflict during %s persisted after rerun", action)
        raise ConcurrentModificationError() from exc
