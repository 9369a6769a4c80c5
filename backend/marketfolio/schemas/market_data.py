from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field


class DataSource(str, Enum):
    PRIMARY = "PRIMARY"
    BACKUP = "BACKUP"


class QuoteRecord(BaseModel):
    symbol: str
    current_price: Decimal = Decimal("0")
    historical_prices: Dict[str, Decimal] = Field(default_factory=dict)
    last_updated: datetime
    data_source: DataSource


class PriceResponse(BaseModel):
    symbol: str
    price: Decimal
    available: bool


class PricesResponse(BaseModel):
    prices: Dict[str, Decimal]


class HistoricalPricesResponse(BaseModel):
    symbol: str
    days: int
    prices: Dict[str, Decimal]
