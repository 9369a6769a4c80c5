"""
Portfolio aggregation over holdings and the daily snapshot series.

Everything here is a pure function of its inputs: callers supply holdings
already priced and the snapshot series already loaded, so the same numbers
come out no matter where the data was read from.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from marketfolio.schemas.portfolio import (
    AssetAllocation,
    Holding,
    InvestmentPerformance,
    PerformancePoint,
    PerformanceSnapshot,
    PortfolioInfo,
    PortfolioSummary,
)
from shared.utils import ZERO, percentage, to_money

# a Friday close is still "the latest" on the following Tuesday
RECENT_CLOSE_DAYS = 4


def holding_value(holding: Holding) -> Decimal:
    return holding.shares * holding.current_price


def calculate_total_value(holdings: Sequence[Holding]) -> Decimal:
    return sum((holding_value(h) for h in holdings), ZERO)


def calculate_daily_change(snapshots: Sequence[PerformanceSnapshot]) -> Tuple[Decimal, Decimal]:
    """
    Change between the two most recent snapshot dates.

    The change is read from the recorded series only, so today's value
    shows up here once today's snapshot has been recorded.
    """
    if not snapshots:
        return to_money(ZERO), to_money(ZERO)

    latest = max(snapshots, key=lambda s: s.date)
    earlier = [s for s in snapshots if s.date < latest.date]
    if not earlier:
        return to_money(ZERO), to_money(ZERO)

    previous = max(earlier, key=lambda s: s.date)
    change = latest.total_value - previous.total_value
    return to_money(change), percentage(change, previous.total_value)


def calculate_ytd_return(
    total_value: Decimal, snapshots: Sequence[PerformanceSnapshot], today: date
) -> Tuple[Decimal, Decimal]:
    """Return (percent, value) relative to the first snapshot of today's year."""
    this_year = [s for s in snapshots if s.date.year == today.year]
    if not this_year:
        return to_money(ZERO), to_money(ZERO)

    first = min(this_year, key=lambda s: s.date)
    value = total_value - first.total_value
    return percentage(value, first.total_value), to_money(value)


def calculate_asset_allocation(
    holdings: Sequence[Holding], total_value: Decimal
) -> List[AssetAllocation]:
    by_type: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for holding in holdings:
        by_type[holding.type] += holding_value(holding)

    allocation = [
        AssetAllocation(
            type=investment_type,
            percentage=percentage(value, total_value),
            value=to_money(value),
        )
        for investment_type, value in by_type.items()
    ]
    return sorted(allocation, key=lambda a: (-a.value, a.type))


def build_performance_series(snapshots: Sequence[PerformanceSnapshot]) -> List[PerformancePoint]:
    return [
        PerformancePoint(date=s.date.isoformat(), value=to_money(s.total_value))
        for s in sorted(snapshots, key=lambda s: s.date)
    ]


def build_portfolio_summary(
    portfolio: PortfolioInfo,
    holdings: Sequence[Holding],
    snapshots: Sequence[PerformanceSnapshot],
    today: date,
) -> PortfolioSummary:
    total_value = calculate_total_value(holdings)
    daily_change, daily_change_percent = calculate_daily_change(snapshots)
    ytd_return, ytd_return_value = calculate_ytd_return(total_value, snapshots, today)

    return PortfolioSummary(
        portfolio_id=portfolio.id,
        name=portfolio.name,
        risk_level=portfolio.risk_level,
        total_value=to_money(total_value),
        daily_change=daily_change,
        daily_change_percent=daily_change_percent,
        ytd_return=ytd_return,
        ytd_return_value=ytd_return_value,
        performance_data=build_performance_series(snapshots),
        asset_allocation=calculate_asset_allocation(holdings, total_value),
    )


def calculate_holding_performance(
    holding: Holding, historical_prices: Optional[Dict[str, Decimal]], today: date
) -> InvestmentPerformance:
    """
    Per-holding value and returns.

    Daily change uses the two most recent closes of the cached price
    history, provided the latest close is no older than RECENT_CLOSE_DAYS
    before today. Otherwise it is reported as unavailable rather than
    guessed.
    """
    value = holding_value(holding)
    cost_basis = holding.shares * holding.purchase_price
    total_return = value - cost_basis

    daily_change = daily_change_percent = None
    closes = sorted((historical_prices or {}).items())
    earliest_recent = (today - timedelta(days=RECENT_CLOSE_DAYS)).isoformat()
    if len(closes) >= 2 and closes[-1][0] >= earliest_recent:
        (_, previous_close), (_, last_close) = closes[-2:]
        move = last_close - previous_close
        daily_change = to_money(holding.shares * move)
        daily_change_percent = percentage(move, previous_close)

    return InvestmentPerformance(
        **holding.model_dump(),
        value=to_money(value),
        total_return=to_money(total_return),
        total_return_percent=percentage(total_return, cost_basis),
        daily_change=daily_change,
        daily_change_percent=daily_change_percent,
        daily_change_available=daily_change is not None,
    )
