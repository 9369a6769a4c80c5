from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import asyncio

from marketfolio.schemas.market_data import DataSource, QuoteRecord
from marketfolio.services.price_providers import PriceProvider
from marketfolio.services.quote_cache import QuoteCacheStore
from shared.logging_config import get_logger
from shared.utils import ZERO, normalize_symbol, utcnow

logger = get_logger("market_data")

MIN_HISTORY_DAYS = 1
MAX_HISTORY_DAYS = 365
DEFAULT_TTL = timedelta(minutes=15)


def clamp_days(days: int) -> int:
    return max(MIN_HISTORY_DAYS, min(int(days), MAX_HISTORY_DAYS))


def _within_window(prices: Dict[str, Decimal], since: date) -> Dict[str, Decimal]:
    cutoff = since.isoformat()
    return {d: p for d, p in prices.items() if d >= cutoff}


class CachedMarketDataService:
    """
    Quote lookups backed by a cache and an ordered chain of providers.

    A fresh cache entry answers without touching any provider. On a miss or a
    stale entry the providers are tried in order and the first usable answer
    is written back. When every provider fails, a stale entry is still
    preferred over the zero / empty "no data" result.
    """

    def __init__(
        self,
        cache_store: QuoteCacheStore,
        providers: Sequence[Tuple[DataSource, PriceProvider]],
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.cache_store = cache_store
        self.providers = list(providers)
        self.ttl = ttl
        self.clock = clock

    def is_fresh(self, record: QuoteRecord) -> bool:
        return self.clock() - record.last_updated <= self.ttl

    async def _read_cache(self, symbol: str) -> Optional[QuoteRecord]:
        try:
            return await self.cache_store.get(symbol)
        except Exception as e:
            logger.error(f"Error reading cache for {symbol}: {str(e)}")
            return None

    async def _write_back(
        self,
        symbol: str,
        source: DataSource,
        current_price: Optional[Decimal] = None,
        historical_prices: Optional[Dict[str, Decimal]] = None,
    ) -> None:
        """Update only the fetched field; the other one is kept as cached."""
        try:
            record = await self.cache_store.get(symbol)
            now = self.clock()
            if record is None:
                record = QuoteRecord(symbol=symbol, last_updated=now, data_source=source)
            if current_price is not None:
                record.current_price = current_price
            if historical_prices is not None:
                record.historical_prices = dict(historical_prices)
            record.last_updated = now
            record.data_source = source
            await self.cache_store.put(record)
        except Exception as e:
            logger.error(f"Error updating cache for symbol {symbol}: {str(e)}")

    async def get_current_price(self, symbol: str) -> Decimal:
        symbol = normalize_symbol(symbol)
        cached = await self._read_cache(symbol)

        try:
            if cached is not None and cached.current_price > 0 and self.is_fresh(cached):
                logger.info(f"Using cached market data for symbol: {symbol}")
                return cached.current_price

            for source, provider in self.providers:
                price = await provider.get_current_price(symbol)
                if price > 0:
                    await self._write_back(symbol, source, current_price=price)
                    return price
                logger.warning(f"{source.value} provider has no price for {symbol}")
        except Exception as e:
            logger.error(f"Error fetching current price for {symbol}: {str(e)}")

        if cached is not None and cached.current_price > 0:
            logger.warning(f"Using stale cached data for symbol: {symbol}")
            return cached.current_price

        logger.warning(f"No price available for symbol: {symbol}")
        return ZERO

    async def get_current_prices(self, symbols: Iterable[str]) -> Dict[str, Decimal]:
        unique: List[str] = list(dict.fromkeys(normalize_symbol(s) for s in symbols))
        prices = await asyncio.gather(*[self.get_current_price(s) for s in unique])
        return dict(zip(unique, prices))

    async def get_historical_prices(self, symbol: str, days: int) -> Dict[str, Decimal]:
        symbol = normalize_symbol(symbol)
        days = clamp_days(days)
        since = self.clock().date() - timedelta(days=days)
        cached = await self._read_cache(symbol)

        try:
            if cached is not None and self.is_fresh(cached):
                window = _within_window(cached.historical_prices, since)
                if window:
                    logger.info(f"Using cached historical prices for symbol: {symbol}")
                    return window

            for source, provider in self.providers:
                prices = await provider.get_historical_prices(symbol, days)
                if prices:
                    await self._write_back(symbol, source, historical_prices=prices)
                    return prices
                logger.warning(f"{source.value} provider has no history for {symbol}")
        except Exception as e:
            logger.error(f"Error fetching historical prices for {symbol}: {str(e)}")

        if cached is not None and cached.historical_prices:
            logger.warning(f"Using stale cached historical data for symbol: {symbol}")
            return _within_window(cached.historical_prices, since) or dict(cached.historical_prices)

        return {}

    async def get_cached_quote(self, symbol: str) -> Optional[QuoteRecord]:
        """Read the cache only; never calls a provider."""
        return await self._read_cache(normalize_symbol(symbol))

    async def purge_stale_quotes(self, retention: timedelta) -> int:
        cutoff = self.clock() - retention
        deleted = await self.cache_store.delete_older_than(cutoff)
        logger.info(f"Purged {deleted} cached quotes last updated before {cutoff}")
        return deleted
