from datetime import timedelta
from decimal import Decimal

import pytest

from marketfolio.schemas.market_data import DataSource, QuoteRecord
from marketfolio.services.market_data_service import clamp_days


async def seed(cache_store, clock, age_minutes, price="150.00", history=None, source=DataSource.PRIMARY):
    await cache_store.put(
        QuoteRecord(
            symbol="AAPL",
            current_price=Decimal(price),
            historical_prices={d: Decimal(p) for d, p in (history or {}).items()},
            last_updated=clock() - timedelta(minutes=age_minutes),
            data_source=source,
        )
    )


async def test_fresh_cache_entry_is_returned_without_provider_calls(
    market_data, cache_store, clock, primary, backup
):
    await seed(cache_store, clock, age_minutes=5)
    primary.price = "999"

    assert await market_data.get_current_price("AAPL") == Decimal("150.00")
    assert primary.current_calls == []
    assert backup.current_calls == []


async def test_symbol_is_case_normalized(market_data, cache_store, clock, primary):
    await seed(cache_store, clock, age_minutes=1)

    assert await market_data.get_current_price("  aapl ") == Decimal("150.00")
    assert primary.current_calls == []


async def test_cache_miss_uses_primary_and_writes_back(market_data, cache_store, clock, primary, backup):
    primary.price = "187.12"

    assert await market_data.get_current_price("MSFT") == Decimal("187.12")
    assert backup.current_calls == []

    record = await cache_store.get("MSFT")
    assert record.current_price == Decimal("187.12")
    assert record.data_source == DataSource.PRIMARY
    assert record.last_updated == clock()


async def test_primary_failure_falls_back_to_backup(market_data, cache_store, primary, backup):
    backup.price = "186.50"

    assert await market_data.get_current_price("MSFT") == Decimal("186.50")
    assert primary.current_calls == ["MSFT"]

    record = await cache_store.get("MSFT")
    assert record.data_source == DataSource.BACKUP


async def test_stale_entry_is_refreshed(market_data, cache_store, clock, primary):
    await seed(cache_store, clock, age_minutes=16)
    primary.price = "151.00"

    assert await market_data.get_current_price("AAPL") == Decimal("151.00")
    assert primary.current_calls == ["AAPL"]


async def test_stale_entry_is_last_resort_when_all_providers_fail(market_data, cache_store, clock):
    await seed(cache_store, clock, age_minutes=120, source=DataSource.BACKUP)

    assert await market_data.get_current_price("AAPL") == Decimal("150.00")


async def test_no_data_anywhere_returns_sentinel(market_data, primary, backup):
    assert await market_data.get_current_price("NOPE") == Decimal("0")
    assert primary.current_calls == ["NOPE"]
    assert backup.current_calls == ["NOPE"]


async def test_unexpected_provider_exception_degrades_to_stale_cache(
    market_data, cache_store, clock, primary, mocker
):
    await seed(cache_store, clock, age_minutes=60)
    mocker.patch.object(primary, "get_current_price", side_effect=RuntimeError("boom"))

    assert await market_data.get_current_price("AAPL") == Decimal("150.00")


async def test_cache_read_failure_still_reaches_providers(market_data, cache_store, primary, mocker):
    mocker.patch.object(cache_store, "get", side_effect=RuntimeError("store down"))
    primary.price = "10.5"

    assert await market_data.get_current_price("AAPL") == Decimal("10.5")


async def test_repeated_calls_within_ttl_hit_provider_once(market_data, clock, primary):
    primary.price = "42.00"

    first = await market_data.get_current_price("IBM")
    clock.advance(minutes=10)
    second = await market_data.get_current_price("IBM")

    assert first == second == Decimal("42.00")
    assert primary.current_calls == ["IBM"]


async def test_current_price_write_back_keeps_history(market_data, cache_store, clock, primary):
    history = {"2024-05-31": "148.00", "2024-06-01": "149.00"}
    await seed(cache_store, clock, age_minutes=30, history=history)
    primary.price = "152.00"

    await market_data.get_current_price("AAPL")

    record = await cache_store.get("AAPL")
    assert record.current_price == Decimal("152.00")
    assert record.historical_prices == {d: Decimal(p) for d, p in history.items()}


async def test_history_write_back_keeps_current_price(market_data, cache_store, clock, primary):
    await seed(cache_store, clock, age_minutes=30)
    primary.history = {"2024-05-31": "148.00", "2024-06-01": "149.00"}

    prices = await market_data.get_historical_prices("AAPL", 30)

    assert prices == {"2024-05-31": Decimal("148.00"), "2024-06-01": Decimal("149.00")}
    record = await cache_store.get("AAPL")
    assert record.current_price == Decimal("150.00")
    assert record.historical_prices == prices


async def test_fresh_history_is_served_from_cache_within_window(market_data, cache_store, clock, primary):
    history = {"2024-01-02": "120.00", "2024-05-31": "148.00", "2024-06-01": "149.00"}
    await seed(cache_store, clock, age_minutes=2, history=history)

    prices = await market_data.get_historical_prices("AAPL", 7)

    assert prices == {"2024-05-31": Decimal("148.00"), "2024-06-01": Decimal("149.00")}
    assert primary.history_calls == []


async def test_fresh_record_without_history_fetches_history(market_data, cache_store, clock, primary):
    await seed(cache_store, clock, age_minutes=2)
    primary.history = {"2024-06-01": "149.00"}

    assert await market_data.get_historical_prices("AAPL", 5) == {"2024-06-01": Decimal("149.00")}
    assert primary.history_calls == [("AAPL", 5)]


async def test_history_backup_and_stale_fallback(market_data, cache_store, clock, backup):
    backup.history = {"2024-06-01": "301.00"}
    assert await market_data.get_historical_prices("MSFT", 10) == {"2024-06-01": Decimal("301.00")}
    assert (await cache_store.get("MSFT")).data_source == DataSource.BACKUP

    clock.advance(days=2)
    backup.history = None
    assert await market_data.get_historical_prices("MSFT", 10) == {"2024-06-01": Decimal("301.00")}


async def test_history_without_cache_or_providers_is_empty(market_data):
    assert await market_data.get_historical_prices("NOPE", 30) == {}


@pytest.mark.parametrize("requested, expected", [(0, 1), (-5, 1), (1, 1), (90, 90), (365, 365), (1000, 365)])
async def test_history_days_are_clamped_before_reaching_providers(market_data, primary, requested, expected):
    await market_data.get_historical_prices("AAPL", requested)

    assert primary.history_calls == [("AAPL", expected)]


def test_clamp_days():
    assert clamp_days(0) == 1
    assert clamp_days(1000) == 365
    assert clamp_days(30) == 30


async def test_get_current_prices_resolves_each_symbol(market_data, cache_store, clock, primary):
    await seed(cache_store, clock, age_minutes=1)
    primary.price = "10.00"

    prices = await market_data.get_current_prices(["aapl", "MSFT", "AAPL"])

    assert prices == {"AAPL": Decimal("150.00"), "MSFT": Decimal("10.00")}
    assert primary.current_calls == ["MSFT"]


async def test_purge_stale_quotes(market_data, cache_store, clock):
    await seed(cache_store, clock, age_minutes=60 * 24 * 8)

    assert await market_data.purge_stale_quotes(timedelta(days=7)) == 1
    assert await cache_store.get("AAPL") is None


async def test_write_back_failure_still_returns_price(market_data, cache_store, primary, mocker):
    mocker.patch.object(cache_store, "put", side_effect=RuntimeError("store down"))
    primary.price = "99.99"

    assert await market_data.get_current_price("AAPL") == Decimal("99.99")
