from datetime import timedelta

from marketfolio.db.database import AsyncSessionLocal
from marketfolio.schemas.market_data import DataSource
from marketfolio.services.market_data_service import CachedMarketDataService
from marketfolio.services.portfolio_repository import SqlPortfolioRepository
from marketfolio.services.portfolio_service import PortfolioService
from marketfolio.services.price_providers import AlphaVantageProvider, YahooFinanceProvider
from marketfolio.services.quote_cache import (
    InMemoryQuoteCacheStore,
    QuoteCacheStore,
    SqlQuoteCacheStore,
    TieredQuoteCacheStore,
)
from marketfolio.services.snapshot_service import SnapshotRecorder
from shared.config import settings
from shared.utils import local_today


def build_quote_cache() -> QuoteCacheStore:
    store = SqlQuoteCacheStore(AsyncSessionLocal)
    if settings.QUOTE_CACHE_MEMORY_TIER:
        return TieredQuoteCacheStore(front=InMemoryQuoteCacheStore(), back=store)
    return store


def build_market_data_service() -> CachedMarketDataService:
    return CachedMarketDataService(
        cache_store=build_quote_cache(),
        providers=[
            (DataSource.PRIMARY, YahooFinanceProvider(timeout=settings.PROVIDER_TIMEOUT_SECONDS)),
            (
                DataSource.BACKUP,
                AlphaVantageProvider(
                    api_key=settings.ALPHAVANTAGE_API_KEY,
                    timeout=settings.PROVIDER_TIMEOUT_SECONDS,
                    min_interval=settings.ALPHAVANTAGE_MIN_INTERVAL_SECONDS,
                ),
            ),
        ],
        ttl=timedelta(minutes=settings.QUOTE_CACHE_TTL_MINUTES),
    )


def today():
    return local_today(settings.TIMEZONE)


market_data_service = build_market_data_service()
portfolio_repository = SqlPortfolioRepository(AsyncSessionLocal)
portfolio_service = PortfolioService(market_data_service, portfolio_repository, today=today)
snapshot_recorder = SnapshotRecorder(portfolio_service, portfolio_repository, today=today)
