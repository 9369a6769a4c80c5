from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional
import asyncio
import math
import time

import httpx
import yfinance as yf

from marketfolio.exceptions import ProviderUnavailableError
from shared.logging_config import get_logger
from shared.utils import ZERO, utcnow

logger = get_logger("providers")


def _cutoff(days: int) -> date:
    return utcnow().date() - timedelta(days=days)


def _to_price(raw) -> Decimal:
    try:
        price = Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        raise ProviderUnavailableError(f"Unparseable price {raw!r}")
    if not price.is_finite() or price <= 0:
        raise ProviderUnavailableError(f"Unusable price {raw!r}")
    return price


class PriceProvider(ABC):
    """
    A single upstream quote source.

    Public calls never raise: a provider that cannot answer returns the
    sentinel zero price or an empty mapping, and the caller moves on to the
    next source.
    """

    name = "provider"

    async def get_current_price(self, symbol: str) -> Decimal:
        try:
            price = await self._fetch_current_price(symbol)
            logger.info(f"{self.name}: received price for {symbol}: {price}")
            return price
        except Exception as e:
            logger.error(f"{self.name}: error fetching current price for {symbol}: {str(e)}")
            return ZERO

    async def get_historical_prices(self, symbol: str, days: int) -> Dict[str, Decimal]:
        try:
            prices = await self._fetch_historical_prices(symbol, days)
            logger.info(f"{self.name}: received {len(prices)} historical prices for {symbol}")
            return prices
        except Exception as e:
            logger.error(f"{self.name}: error fetching historical prices for {symbol}: {str(e)}")
            return {}

    @abstractmethod
    async def _fetch_current_price(self, symbol: str) -> Decimal: ...

    @abstractmethod
    async def _fetch_historical_prices(self, symbol: str, days: int) -> Dict[str, Decimal]: ...


class YahooFinanceProvider(PriceProvider):
    name = "yahoo"

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def _history(self, symbol: str, **kwargs):
        ticker = yf.Ticker(symbol)
        return await asyncio.wait_for(
            asyncio.to_thread(ticker.history, timeout=self.timeout, **kwargs),
            timeout=self.timeout,
        )

    async def _fetch_current_price(self, symbol: str) -> Decimal:
        data = await self._history(symbol, period="5d")
        if data.empty:
            raise ProviderUnavailableError(f"No price data received for {symbol}")
        return _to_price(round(float(data["Close"].iloc[-1]), 4))

    async def _fetch_historical_prices(self, symbol: str, days: int) -> Dict[str, Decimal]:
        cutoff = _cutoff(days)
        data = await self._history(symbol, start=cutoff.isoformat())
        if data.empty:
            raise ProviderUnavailableError(f"No historical data received for {symbol}")

        prices = {}
        for timestamp, close in data["Close"].items():
            if timestamp.date() < cutoff or math.isnan(float(close)):
                continue
            prices[timestamp.strftime("%Y-%m-%d")] = _to_price(round(float(close), 4))
        return prices


class AlphaVantageProvider(PriceProvider):
    """
    Alpha Vantage REST client.

    The free tier allows only a handful of requests per minute, so requests
    are spaced by at least ``min_interval`` seconds across all callers.
    """

    name = "alpha_vantage"
    BASE_URL = "https://www.alphavantage.co/query"
    COMPACT_OUTPUT_DAYS = 100

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        min_interval: float = 1.2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.min_interval = min_interval
        self.transport = transport
        self._lock = asyncio.Lock()
        self._last_request = None

    async def _throttle(self) -> None:
        async with self._lock:
            if self._last_request is not None:
                wait = self._last_request + self.min_interval - time.monotonic()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_request = time.monotonic()

    async def _query(self, **params) -> dict:
        await self._throttle()
        params["apikey"] = self.api_key
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(self.BASE_URL, params=params)
            response.raise_for_status()
            payload = response.json()

        # rate limiting and bad keys come back as 200 with a message
        for key in ("Note", "Information", "Error Message"):
            if key in payload:
                raise ProviderUnavailableError(payload[key])
        return payload

    async def _fetch_current_price(self, symbol: str) -> Decimal:
        payload = await self._query(function="GLOBAL_QUOTE", symbol=symbol)
        quote = payload.get("Global Quote") or {}
        if "05. price" not in quote:
            raise ProviderUnavailableError(f"No quote returned for {symbol}")
        return _to_price(quote["05. price"])

    async def _fetch_historical_prices(self, symbol: str, days: int) -> Dict[str, Decimal]:
        payload = await self._query(
            function="TIME_SERIES_DAILY",
            symbol=symbol,
            outputsize="full" if days > self.COMPACT_OUTPUT_DAYS else "compact",
        )
        time_series = payload.get("Time Series (Daily)")
        if not time_series:
            raise ProviderUnavailableError(f"No time series returned for {symbol}")

        cutoff = _cutoff(days)
        return {
            date_str: _to_price(bar["4. close"])
            for date_str, bar in time_series.items()
            if datetime.strptime(date_str, "%Y-%m-%d").date() >= cutoff
        }
