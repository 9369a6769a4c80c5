from sqlalchemy import JSON, Column, DateTime, Index, Numeric, String

from marketfolio.models.base import Base


class CachedMarketData(Base):
    __tablename__ = "cached_market_data"
    __table_args__ = (Index("ix_cached_market_data_last_updated", "last_updated"),)

    symbol = Column(String, primary_key=True)
    current_price = Column(Numeric(18, 4), nullable=False, default=0)
    # ISO date -> price as string, so Decimal precision survives JSON
    historical_prices = Column(JSON, nullable=False, default=dict)
    last_updated = Column(DateTime, nullable=False)
    data_source = Column(String, nullable=False)
