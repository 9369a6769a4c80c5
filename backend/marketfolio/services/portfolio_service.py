from datetime import date
from typing import Callable, List, Optional

from marketfolio.exceptions import PortfolioNotFoundError
from marketfolio.schemas.portfolio import (
    Holding,
    InvestmentPerformance,
    PortfolioInfo,
    PortfolioSummary,
)
from marketfolio.services.market_data_service import CachedMarketDataService
from marketfolio.services.performance import (
    build_portfolio_summary,
    calculate_holding_performance,
)
from marketfolio.services.portfolio_repository import PortfolioRepository
from shared.logging_config import get_logger
from shared.utils import normalize_symbol


logger = get_logger("portfolio")


class PortfolioService:
    def __init__(
        self,
        market_data_service: CachedMarketDataService,
        repository: PortfolioRepository,
        today: Callable[[], date] = date.today,
    ):
        self.market_data_service = market_data_service
        self.repository = repository
        self.today = today

    async def get_portfolio(self, portfolio_id: int) -> PortfolioInfo:
        portfolio = await self.repository.get_portfolio(portfolio_id)
        if portfolio is None:
            raise PortfolioNotFoundError(portfolio_id)
        return portfolio

    async def get_holdings(self, portfolio_id: int) -> List[Holding]:
        """
        Holdings of a portfolio priced with the latest market data.

        A symbol the market data service cannot price keeps the price stored
        on the investment.
        """
        await self.get_portfolio(portfolio_id)
        return await self._priced_investments(portfolio_id)

    async def _priced_investments(self, portfolio_id: int) -> List[Holding]:
        investments = await self.repository.get_investments(portfolio_id)
        if not investments:
            logger.warning(f"No investments found for portfolio {portfolio_id}")
            return []

        prices = await self.market_data_service.get_current_prices(
            [inv.symbol for inv in investments]
        )
        holdings = []
        for inv in investments:
            latest_price = prices.get(normalize_symbol(inv.symbol))
            if latest_price:
                inv = inv.model_copy(update={"current_price": latest_price})
            elif not inv.current_price:
                logger.warning(f"No price found for {inv.symbol} in portfolio {portfolio_id}")
            holdings.append(inv)
        return holdings

    async def compute_portfolio_summary(
        self, portfolio_id: int, today: Optional[date] = None
    ) -> PortfolioSummary:
        portfolio = await self.get_portfolio(portfolio_id)
        holdings = await self._priced_investments(portfolio_id)
        snapshots = await self.repository.get_snapshots(portfolio_id)

        summary = build_portfolio_summary(portfolio, holdings, snapshots, today or self.today())
        logger.info(
            f"Computed summary for portfolio {portfolio_id}: "
            f"total_value={summary.total_value}, "
            f"daily_change={summary.daily_change}, "
            f"ytd_return={summary.ytd_return}"
        )
        return summary

    async def list_investments_with_performance(
        self, portfolio_id: int
    ) -> List[InvestmentPerformance]:
        holdings = await self.get_holdings(portfolio_id)

        today = self.today()
        performance = []
        for holding in holdings:
            # quote cache only, no provider calls
            quote = await self.market_data_service.get_cached_quote(holding.symbol)
            history = quote.historical_prices if quote is not None else None
            performance.append(calculate_holding_performance(holding, history, today))
        return performance
