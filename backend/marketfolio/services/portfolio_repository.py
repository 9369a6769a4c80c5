from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from marketfolio.models.portfolio import Investment, PerformanceSnapshot as SnapshotRow, Portfolio
from marketfolio.schemas.portfolio import Holding, PerformanceSnapshot, PortfolioInfo
from shared.logging_config import get_logger

logger = get_logger("portfolio")


class PortfolioRepository(ABC):
    """Read access to portfolios and holdings, plus the snapshot series."""

    @abstractmethod
    async def get_portfolio(self, portfolio_id: int) -> Optional[PortfolioInfo]: ...

    @abstractmethod
    async def list_portfolio_ids(self) -> List[int]: ...

    @abstractmethod
    async def get_investments(self, portfolio_id: int) -> List[Holding]: ...

    @abstractmethod
    async def list_symbols(self) -> List[str]: ...

    @abstractmethod
    async def get_snapshots(self, portfolio_id: int) -> List[PerformanceSnapshot]:
        """Snapshots in ascending date order."""

    @abstractmethod
    async def get_snapshot(self, portfolio_id: int, on_date: date) -> Optional[PerformanceSnapshot]: ...

    @abstractmethod
    async def add_snapshot(self, snapshot: PerformanceSnapshot) -> PerformanceSnapshot:
        """Append a snapshot; if one exists for that day, return it unchanged."""


def _snapshot(row: SnapshotRow) -> PerformanceSnapshot:
    return PerformanceSnapshot(
        portfolio_id=row.portfolio_id, date=row.date, total_value=Decimal(row.total_value)
    )


class SqlPortfolioRepository(PortfolioRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_portfolio(self, portfolio_id: int) -> Optional[PortfolioInfo]:
        async with self.session_factory() as db:
            portfolio = await db.get(Portfolio, portfolio_id)
            if portfolio is None:
                return None
            return PortfolioInfo(
                id=portfolio.id, name=portfolio.name, risk_level=portfolio.risk_level
            )

    async def list_portfolio_ids(self) -> List[int]:
        async with self.session_factory() as db:
            result = await db.execute(select(Portfolio.id).order_by(Portfolio.id))
            return list(result.scalars().all())

    async def get_investments(self, portfolio_id: int) -> List[Holding]:
        async with self.session_factory() as db:
            stmt = (
                select(Investment)
                .filter(Investment.portfolio_id == portfolio_id)
                .order_by(Investment.id)
            )
            result = await db.execute(stmt)
            return [
                Holding(
                    investment_id=inv.id,
                    symbol=inv.symbol,
                    name=inv.name,
                    type=inv.type,
                    shares=Decimal(inv.shares),
                    purchase_price=Decimal(inv.purchase_price),
                    current_price=Decimal(inv.current_price or 0),
                )
                for inv in result.scalars().all()
            ]

    async def list_symbols(self) -> List[str]:
        async with self.session_factory() as db:
            result = await db.execute(select(Investment.symbol).distinct())
            return list(result.scalars().all())

    async def get_snapshots(self, portfolio_id: int) -> List[PerformanceSnapshot]:
        async with self.session_factory() as db:
            stmt = (
                select(SnapshotRow)
                .filter(SnapshotRow.portfolio_id == portfolio_id)
                .order_by(SnapshotRow.date.asc())
            )
            result = await db.execute(stmt)
            return [_snapshot(row) for row in result.scalars().all()]

    async def get_snapshot(self, portfolio_id: int, on_date: date) -> Optional[PerformanceSnapshot]:
        async with self.session_factory() as db:
            stmt = select(SnapshotRow).filter(
                SnapshotRow.portfolio_id == portfolio_id, SnapshotRow.date == on_date
            )
            result = await db.execute(stmt)
            row = result.scalar_one_or_none()
            return _snapshot(row) if row is not None else None

    async def add_snapshot(self, snapshot: PerformanceSnapshot) -> PerformanceSnapshot:
        async with self.session_factory() as db:
            db.add(
                SnapshotRow(
                    portfolio_id=snapshot.portfolio_id,
                    date=snapshot.date,
                    total_value=snapshot.total_value,
                )
            )
            try:
                await db.commit()
                logger.info(f"Added snapshot for portfolio {snapshot.portfolio_id} on {snapshot.date}")
                return snapshot
            except IntegrityError:
                await db.rollback()
                logger.info(
                    f"Snapshot for portfolio {snapshot.portfolio_id} on {snapshot.date} already exists"
                )

        return await self.get_snapshot(snapshot.portfolio_id, snapshot.date)
