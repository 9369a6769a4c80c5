from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from marketfolio.models.base import Base
from shared.utils import utcnow


class Portfolio(Base):
    __tablename__ = "portfolios"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String)
    risk_level = Column(String)
    created_at = Column(DateTime, default=utcnow)
    investments = relationship("Investment", back_populates="portfolio")
    snapshots = relationship("PerformanceSnapshot", back_populates="portfolio")


class Investment(Base):
    __tablename__ = "investments"

    id = Column(Integer, primary_key=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=False)
    name = Column(String, nullable=False)
    symbol = Column(String, nullable=False)
    type = Column(String, nullable=False)
    shares = Column(Numeric(18, 6), nullable=False)
    purchase_price = Column(Numeric(18, 4), nullable=False)
    current_price = Column(Numeric(18, 4), nullable=False, default=0)
    purchase_date = Column(DateTime, default=utcnow)
    portfolio = relationship("Portfolio", back_populates="investments")


class PerformanceSnapshot(Base):
    __tablename__ = "performance_snapshots"
    __table_args__ = (
        UniqueConstraint("portfolio_id", "date", name="uq_snapshot_portfolio_date"),
    )

    id = Column(Integer, primary_key=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=False)
    date = Column(Date, nullable=False)
    total_value = Column(Numeric(18, 2), nullable=False)
    portfolio = relationship("Portfolio", back_populates="snapshots")
