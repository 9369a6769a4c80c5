from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketfolio.models.market_data import CachedMarketData
from marketfolio.schemas.market_data import DataSource, QuoteRecord
from shared.logging_config import get_logger

logger = get_logger("quote_cache")


class QuoteCacheStore(ABC):
    """Symbol-keyed store of the last known quote for each instrument."""

    @abstractmethod
    async def get(self, symbol: str) -> Optional[QuoteRecord]: ...

    @abstractmethod
    async def put(self, record: QuoteRecord) -> None:
        """Insert or replace the record for ``record.symbol``."""

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Remove records last updated before ``cutoff``; return how many."""


class InMemoryQuoteCacheStore(QuoteCacheStore):
    def __init__(self):
        self._records: Dict[str, QuoteRecord] = {}

    async def get(self, symbol: str) -> Optional[QuoteRecord]:
        record = self._records.get(symbol)
        return record.model_copy(deep=True) if record is not None else None

    async def put(self, record: QuoteRecord) -> None:
        self._records[record.symbol] = record.model_copy(deep=True)

    async def delete_older_than(self, cutoff: datetime) -> int:
        expired = [s for s, r in self._records.items() if r.last_updated < cutoff]
        for symbol in expired:
            del self._records[symbol]
        return len(expired)


class SqlQuoteCacheStore(QuoteCacheStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _to_record(row: CachedMarketData) -> QuoteRecord:
        return QuoteRecord(
            symbol=row.symbol,
            current_price=Decimal(row.current_price),
            historical_prices={d: Decimal(p) for d, p in (row.historical_prices or {}).items()},
            last_updated=row.last_updated,
            data_source=DataSource(row.data_source),
        )

    @staticmethod
    def _apply(row: CachedMarketData, record: QuoteRecord) -> None:
        row.current_price = record.current_price
        row.historical_prices = {d: str(p) for d, p in record.historical_prices.items()}
        row.last_updated = record.last_updated
        row.data_source = record.data_source.value

    async def get(self, symbol: str) -> Optional[QuoteRecord]:
        async with self.session_factory() as db:
            row = await db.get(CachedMarketData, symbol)
            return self._to_record(row) if row is not None else None

    async def put(self, record: QuoteRecord) -> None:
        async with self.session_factory() as db:
            try:
                row = await db.get(CachedMarketData, record.symbol)
                if row is None:
                    row = CachedMarketData(symbol=record.symbol)
                    db.add(row)
                self._apply(row, record)
                await db.commit()
            except IntegrityError:
                # another writer inserted the symbol first
                await db.rollback()
                row = await db.get(CachedMarketData, record.symbol)
                self._apply(row, record)
                await db.commit()
        logger.info(f"Updated cache for symbol: {record.symbol}")

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                delete(CachedMarketData).where(CachedMarketData.last_updated < cutoff)
            )
            await db.commit()
            return result.rowcount or 0


class TieredQuoteCacheStore(QuoteCacheStore):
    """In-memory tier in front of a durable store. Writes go to both tiers."""

    def __init__(self, front: QuoteCacheStore, back: QuoteCacheStore):
        self.front = front
        self.back = back

    async def get(self, symbol: str) -> Optional[QuoteRecord]:
        record = await self.front.get(symbol)
        if record is not None:
            return record
        record = await self.back.get(symbol)
        if record is not None:
            await self.front.put(record)
        return record

    async def put(self, record: QuoteRecord) -> None:
        await self.back.put(record)
        await self.front.put(record)

    async def delete_older_than(self, cutoff: datetime) -> int:
        await self.front.delete_older_than(cutoff)
        return await self.back.delete_older_than(cutoff)
