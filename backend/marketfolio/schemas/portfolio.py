from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class PortfolioInfo(BaseModel):
    id: int
    name: str
    risk_level: Optional[str] = None


class Holding(BaseModel):
    investment_id: Optional[int] = None
    symbol: str
    name: str = ""
    type: str
    shares: Decimal
    purchase_price: Decimal
    current_price: Decimal


class InvestmentPerformance(Holding):
    value: Decimal
    total_return: Decimal
    total_return_percent: Decimal
    daily_change: Optional[Decimal] = None
    daily_change_percent: Optional[Decimal] = None
    daily_change_available: bool = False


class PerformanceSnapshot(BaseModel):
    portfolio_id: int
    date: date
    total_value: Decimal


class PerformancePoint(BaseModel):
    date: str
    value: Decimal


class AssetAllocation(BaseModel):
    type: str
    percentage: Decimal
    value: Decimal


class PortfolioSummary(BaseModel):
    portfolio_id: int
    name: str
    risk_level: Optional[str] = None
    total_value: Decimal
    daily_change: Decimal
    daily_change_percent: Decimal
    ytd_return: Decimal
    ytd_return_value: Decimal
    performance_data: List[PerformancePoint]
    asset_allocation: List[AssetAllocation]


class SnapshotSweepResult(BaseModel):
    recorded: List[int] = []
    skipped: List[int] = []
    failed: List[int] = []
