from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

import pytz

ZERO = Decimal("0")
CENT = Decimal("0.01")
RATIO_PLACES = Decimal("0.0001")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Round a monetary amount to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """
    Express part as a percentage of whole.

    The ratio is rounded to 4 places before scaling so that a set of
    percentages over the same whole does not compound rounding error.
    Returns 0.00 when whole is not positive.
    """
    if whole <= 0:
        return to_money(ZERO)
    ratio = (Decimal(part) / Decimal(whole)).quantize(RATIO_PLACES, rounding=ROUND_HALF_UP)
    return to_money(ratio * HUNDRED)


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


def utcnow() -> datetime:
    # naive UTC, matching the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_today(tz_name: str) -> date:
    return datetime.now(pytz.timezone(tz_name)).date()
