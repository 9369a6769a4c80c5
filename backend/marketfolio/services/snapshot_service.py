from datetime import date
from typing import Callable, Optional

from marketfolio.schemas.portfolio import PerformanceSnapshot, SnapshotSweepResult
from marketfolio.services.performance import calculate_total_value
from marketfolio.services.portfolio_repository import PortfolioRepository
from marketfolio.services.portfolio_service import PortfolioService
from shared.logging_config import get_logger
from shared.utils import to_money

logger = get_logger("snapshots")


class SnapshotRecorder:
    """Records one total-value snapshot per portfolio per day."""

    def __init__(
        self,
        portfolio_service: PortfolioService,
        repository: PortfolioRepository,
        today: Callable[[], date] = date.today,
    ):
        self.portfolio_service = portfolio_service
        self.repository = repository
        self.today = today

    async def record_daily_snapshot(
        self, portfolio_id: int, on_date: Optional[date] = None
    ) -> Optional[PerformanceSnapshot]:
        """
        Record today's snapshot for one portfolio.

        Returns the existing snapshot when today's is already recorded, and
        None when the portfolio has no positive value to record. Raises
        PortfolioNotFoundError for an unknown portfolio.
        """
        on_date = on_date or self.today()
        existing = await self.repository.get_snapshot(portfolio_id, on_date)
        if existing is not None:
            logger.info(f"Snapshot for portfolio {portfolio_id} on {on_date} already recorded")
            return existing

        holdings = await self.portfolio_service.get_holdings(portfolio_id)
        total_value = to_money(calculate_total_value(holdings))
        if total_value <= 0:
            logger.warning(
                f"Skipping snapshot for portfolio {portfolio_id}: total value is {total_value}"
            )
            return None

        snapshot = await self.repository.add_snapshot(
            PerformanceSnapshot(portfolio_id=portfolio_id, date=on_date, total_value=total_value)
        )
        logger.info(f"Recorded snapshot for portfolio {portfolio_id}: total_value={total_value}")
        return snapshot

    async def record_daily_snapshots_for_all(self) -> SnapshotSweepResult:
        logger.info("Starting daily snapshot sweep")
        on_date = self.today()
        result = SnapshotSweepResult()

        for portfolio_id in await self.repository.list_portfolio_ids():
            try:
                snapshot = await self.record_daily_snapshot(portfolio_id, on_date)
            except Exception as e:
                logger.error(f"Error recording snapshot for portfolio {portfolio_id}: {str(e)}")
                result.failed.append(portfolio_id)
                continue

            if snapshot is None:
                result.skipped.append(portfolio_id)
            else:
                result.recorded.append(portfolio_id)

        logger.info(
            f"Daily snapshot sweep finished: recorded={len(result.recorded)}, "
            f"skipped={len(result.skipped)}, failed={len(result.failed)}"
        )
        return result
