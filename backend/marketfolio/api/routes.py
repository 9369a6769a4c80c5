from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from marketfolio.dependencies import market_data_service, portfolio_service, snapshot_recorder
from marketfolio.exceptions import PortfolioNotFoundError
from marketfolio.schemas.market_data import (
    HistoricalPricesResponse,
    PriceResponse,
    PricesResponse,
)
from marketfolio.schemas.portfolio import (
    InvestmentPerformance,
    PerformanceSnapshot,
    PortfolioSummary,
    SnapshotSweepResult,
)
from marketfolio.services.market_data_service import clamp_days
from shared.logging_config import get_logger
from shared.utils import normalize_symbol

logger = get_logger("api")
router = APIRouter()


@router.get("/market-data/quotes", response_model=PricesResponse)
async def get_current_prices(symbols: str = Query(..., min_length=1)) -> PricesResponse:
    requested = [s for s in symbols.split(",") if s.strip()]
    prices = await market_data_service.get_current_prices(requested)
    return PricesResponse(prices=prices)


@router.get("/market-data/quotes/{symbol}", response_model=PriceResponse)
async def get_current_price(symbol: str) -> PriceResponse:
    price = await market_data_service.get_current_price(symbol)
    return PriceResponse(symbol=normalize_symbol(symbol), price=price, available=price > 0)


@router.get("/market-data/history/{symbol}", response_model=HistoricalPricesResponse)
async def get_historical_prices(symbol: str, days: int = 30) -> HistoricalPricesResponse:
    days = clamp_days(days)
    prices = await market_data_service.get_historical_prices(symbol, days)
    return HistoricalPricesResponse(symbol=normalize_symbol(symbol), days=days, prices=prices)


@router.get("/portfolios/{portfolio_id}/summary", response_model=PortfolioSummary)
async def get_portfolio_summary(portfolio_id: int) -> PortfolioSummary:
    try:
        return await portfolio_service.compute_portfolio_summary(portfolio_id)
    except PortfolioNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error computing summary for portfolio {portfolio_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/portfolios/{portfolio_id}/investments", response_model=List[InvestmentPerformance]
)
async def get_portfolio_investments(portfolio_id: int) -> List[InvestmentPerformance]:
    try:
        return await portfolio_service.list_investments_with_performance(portfolio_id)
    except PortfolioNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error listing investments for portfolio {portfolio_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/portfolios/snapshots", response_model=SnapshotSweepResult)
async def record_snapshots_for_all() -> SnapshotSweepResult:
    return await snapshot_recorder.record_daily_snapshots_for_all()


@router.post(
    "/portfolios/{portfolio_id}/snapshots",
    response_model=PerformanceSnapshot,
    status_code=status.HTTP_201_CREATED,
)
async def record_snapshot(portfolio_id: int) -> PerformanceSnapshot:
    try:
        snapshot = await snapshot_recorder.record_daily_snapshot(portfolio_id)
    except PortfolioNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error recording snapshot for portfolio {portfolio_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")

    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Portfolio has no positive value to record",
        )
    return snapshot
