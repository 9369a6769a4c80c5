import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault(
    "LOG_FILE", os.path.join(tempfile.gettempdir(), "marketfolio-tests", "app.log")
)

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketfolio.exceptions import ProviderUnavailableError
from marketfolio.models.base import Base
from marketfolio.models import market_data, portfolio  # noqa: F401
from marketfolio.schemas.market_data import DataSource
from marketfolio.schemas.portfolio import Holding, PerformanceSnapshot, PortfolioInfo
from marketfolio.services.market_data_service import CachedMarketDataService
from marketfolio.services.portfolio_repository import PortfolioRepository
from marketfolio.services.price_providers import PriceProvider
from marketfolio.services.quote_cache import InMemoryQuoteCacheStore


class FakeProvider(PriceProvider):
    """Provider answering from canned data; None means "cannot answer"."""

    def __init__(self, name, price=None, history=None, error=None):
        self.name = name
        self.price = price
        self.history = history
        self.error = error
        self.current_calls: List[str] = []
        self.history_calls: List[tuple] = []

    async def _fetch_current_price(self, symbol):
        self.current_calls.append(symbol)
        if self.error:
            raise self.error
        if self.price is None:
            raise ProviderUnavailableError(f"no price for {symbol}")
        return Decimal(self.price)

    async def _fetch_historical_prices(self, symbol, days):
        self.history_calls.append((symbol, days))
        if self.error:
            raise self.error
        if not self.history:
            raise ProviderUnavailableError(f"no history for {symbol}")
        return {d: Decimal(p) for d, p in self.history.items()}


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakePortfolioRepository(PortfolioRepository):
    def __init__(self):
        self.portfolios: Dict[int, PortfolioInfo] = {}
        self.investments: Dict[int, List[Holding]] = {}
        self.snapshots: Dict[int, List[PerformanceSnapshot]] = {}

    def add_portfolio(self, portfolio_id, name="Growth", holdings=(), risk_level="MEDIUM"):
        self.portfolios[portfolio_id] = PortfolioInfo(
            id=portfolio_id, name=name, risk_level=risk_level
        )
        self.investments[portfolio_id] = list(holdings)
        self.snapshots.setdefault(portfolio_id, [])

    async def get_portfolio(self, portfolio_id):
        return self.portfolios.get(portfolio_id)

    async def list_portfolio_ids(self):
        return sorted(self.portfolios)

    async def get_investments(self, portfolio_id):
        return list(self.investments.get(portfolio_id, []))

    async def list_symbols(self):
        return sorted({h.symbol for holdings in self.investments.values() for h in holdings})

    async def get_snapshots(self, portfolio_id):
        return sorted(self.snapshots.get(portfolio_id, []), key=lambda s: s.date)

    async def get_snapshot(self, portfolio_id, on_date) -> Optional[PerformanceSnapshot]:
        for snapshot in self.snapshots.get(portfolio_id, []):
            if snapshot.date == on_date:
                return snapshot
        return None

    async def add_snapshot(self, snapshot):
        existing = await self.get_snapshot(snapshot.portfolio_id, snapshot.date)
        if existing is not None:
            return existing
        self.snapshots.setdefault(snapshot.portfolio_id, []).append(snapshot)
        return snapshot


def make_holding(symbol, shares, purchase_price, current_price, type="Stock", name=None):
    return Holding(
        symbol=symbol,
        name=name or symbol,
        type=type,
        shares=Decimal(str(shares)),
        purchase_price=Decimal(str(purchase_price)),
        current_price=Decimal(str(current_price)),
    )


def make_snapshot(portfolio_id, on_date, total_value):
    return PerformanceSnapshot(
        portfolio_id=portfolio_id,
        date=date.fromisoformat(on_date),
        total_value=Decimal(str(total_value)),
    )


@pytest.fixture
def clock():
    return Clock(datetime(2024, 6, 2, 15, 30))


@pytest.fixture
def cache_store():
    return InMemoryQuoteCacheStore()


@pytest.fixture
def primary():
    return FakeProvider("primary")


@pytest.fixture
def backup():
    return FakeProvider("backup")


@pytest.fixture
def market_data(cache_store, primary, backup, clock):
    return CachedMarketDataService(
        cache_store,
        [(DataSource.PRIMARY, primary), (DataSource.BACKUP, backup)],
        ttl=timedelta(minutes=15),
        clock=clock,
    )


@pytest.fixture
def repository():
    return FakePortfolioRepository()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()
