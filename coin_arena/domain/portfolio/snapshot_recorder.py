import logging
from datetime import date, datetime, timezone
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.domain.ledger.ledger_math import equity_breakdown
from coin_arena.domain.ledger.transaction import run_ledger_transaction
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.database.repositories.portfolio_repository import PortfolioRepository
from coin_arena.infrastructure.database.repositories.snapshot_repository import SnapshotRepository

logger = logging.getLogger(__name__)


def snapshot_date() -> date:
    """Snapshots are keyed by the UTC calendar date."""
    return datetime.now(timezone.utc).date()


class SnapshotRecorder:
    def __init__(self, db_client: DatabaseClient, max_retries: int = 3):
        self.db_client = db_client
        self.max_retries = max_retries

    async def record_daily(
        self,
        prices: Mapping[str, float],
        portfolio_id: Optional[str] = None,
    ) -> int:
        """
        Upsert today's equity point for one portfolio, or for every
        portfolio when `portfolio_id` is None. Symbols missing from
        `prices` are left out of the valuation.

        Returns:
            Number of snapshot rows written
        """
        today = snapshot_date()
        count = await run_ledger_transaction(
            self.db_client,
            lambda session: self._record(session, prices, portfolio_id, today),
            max_retries=self.max_retries,
            label="daily snapshot",
        )
        logger.info(f"📸 Recorded {count} snapshots for {today.isoformat()}")
        return count

    async def _record(
        self,
        session: AsyncSession,
        prices: Mapping[str, float],
        portfolio_id: Optional[str],
        today: date,
    ) -> int:
        portfolios = PortfolioRepository(session)
        if portfolio_id is not None:
            dto = await portfolios.get_dto(portfolio_id)
            targets = [dto] if dto else []
        else:
            targets = await portfolios.list_dtos()

        snapshots = SnapshotRepository(session)
        for p in targets:
            equity = equity_breakdown(
                p.cash_balance, p.holdings, prices, liquidated=p.is_liquidated
            )
            await snapshots.upsert(
                portfolio_id=p.id,
                snapshot_date=today,
                **equity,
            )
        return len(targets)
