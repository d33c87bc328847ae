"""
Tests for MockDataProvider.

**Purpose**: Verify the deterministic stand-in provider:
  1. Weekday-only bars in ascending order, canonical columns
  2. Reproducible per (seed, ticker), independent of fetch order
  3. UnknownTickerError for symbols outside the catalogue
  4. Catalogue helpers (asset info, validity, listing)
"""

import datetime as dt

import pandas as pd
import pytest

from portfolio_sim.data.schemas import PRICE_COLUMNS, validate_price_history
from portfolio_sim.venues.base import PriceDataError, UnknownTickerError
from portfolio_sim.venues.mock_data_provider import (
    MOCK_ASSETS,
    MockDataProvider,
    available_tickers,
    get_asset_info,
    is_valid_ticker,
)

START = dt.date(2023, 1, 1)
END = dt.date(2023, 3, 31)


def test_fetch_returns_canonical_weekday_bars():
    bars = MockDataProvider(seed=42).fetch_daily_bars("AAPL", START, END)

    assert list(bars.columns) == PRICE_COLUMNS
    validate_price_history(bars, context="AAPL")
    assert (bars['timestamp'].dt.dayofweek < 5).all()
    assert len(bars) == len(pd.bdate_range(START, END))
    assert bars['timestamp'].iloc[0] == pd.Timestamp("2023-01-02")


def test_first_bar_opens_at_80_percent_of_reference_price():
    bars = MockDataProvider(seed=1).fetch_daily_bars("MSFT", START, END)
    assert bars['open_price'].iloc[0] == pytest.approx(MOCK_ASSETS['MSFT'].price * 0.8, abs=0.01)


def test_same_seed_is_reproducible():
    a = MockDataProvider(seed=42).fetch_daily_bars("NVDA", START, END)
    b = MockDataProvider(seed=42).fetch_daily_bars("NVDA", START, END)
    pd.testing.assert_frame_equal(a, b)


def test_different_seeds_differ():
    a = MockDataProvider(seed=1).fetch_daily_bars("NVDA", START, END)
    b = MockDataProvider(seed=2).fetch_daily_bars("NVDA", START, END)
    assert not a['closing_price'].equals(b['closing_price'])


def test_ticker_series_independent_of_fetch_order():
    """A ticker's bars do not depend on which tickers were fetched before it."""
    provider = MockDataProvider(seed=42)
    provider.fetch_daily_bars("TSLA", START, END)
    after_other = provider.fetch_daily_bars("AAPL", START, END)

    fresh = MockDataProvider(seed=42).fetch_daily_bars("AAPL", START, END)
    pd.testing.assert_frame_equal(after_other, fresh)


def test_ticker_is_case_insensitive():
    provider = MockDataProvider(seed=42)
    pd.testing.assert_frame_equal(
        provider.fetch_daily_bars(" aapl ", START, END),
        provider.fetch_daily_bars("AAPL", START, END),
    )


def test_unknown_ticker_raises():
    with pytest.raises(UnknownTickerError) as exc_info:
        MockDataProvider().fetch_daily_bars("ZZZZ", START, END)

    assert exc_info.value.ticker == "ZZZZ"
    assert isinstance(exc_info.value, PriceDataError)


def test_invalid_inputs_raise_value_error():
    provider = MockDataProvider()
    with pytest.raises(ValueError, match="empty"):
        provider.fetch_daily_bars("  ", START, END)
    with pytest.raises(ValueError, match="start_date"):
        provider.fetch_daily_bars("AAPL", END, START)


def test_weekend_only_range_is_empty():
    bars = MockDataProvider().fetch_daily_bars("AAPL", dt.date(2023, 1, 7), dt.date(2023, 1, 8))
    assert bars.empty


def test_catalogue_helpers():
    assert available_tickers() == ["AAPL", "MSFT", "GOOGL", "TSLA", "NVDA", "AMZN", "META", "BTC", "ETH"]
    assert is_valid_ticker("btc")
    assert not is_valid_ticker("DOGE")
    info = get_asset_info("eth")
    assert info.name == "Ethereum"
    assert info.price == pytest.approx(3456.78)
    with pytest.raises(UnknownTickerError):
        get_asset_info("DOGE")
