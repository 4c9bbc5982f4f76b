import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from coin_arena.domain.trading.errors import LedgerConflictError
from coin_arena.infrastructure.database.client import DatabaseClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Lost update on the portfolio version, or a racing insert on a unique key
RETRYABLE_ERRORS = (StaleDataError, IntegrityError)


async def run_ledger_transaction(
    db_client: DatabaseClient,
    work: Callable[[AsyncSession], Awaitable[T]],
    max_retries: int = 3,
    label: str = "ledger",
) -> T:
    """
    Run `work` inside one transaction, re-running it from a fresh session
    when a concurrent writer got there first.

    Raises:
        LedgerConflictError: if every attempt conflicted; nothing is committed
    """
    attempts = max(1, max_retries)
    last_error: Exception = None

    for attempt in range(1, attempts + 1):
        try:
            async with db_client.get_session() as session:
                async with session.begin():
                    return await work(session)
        except RETRYABLE_ERRORS as e:
            last_error = e
            logger.warning(
                f"♻️ {label}: concurrent update detected "
                f"(attempt {attempt}/{attempts}): {e}"
            )

    raise LedgerConflictError(
        f"{label}: gave up after {attempts} conflicting attempts"
    ) from last_error
