"""
Tests for CsvDataProvider (uses tmp_path, no network).
"""

import datetime as dt

import numpy as np
import pandas as pd
import pytest

from portfolio_sim.data.io import write_price_csv
from portfolio_sim.venues.base import PriceDataError, UnknownTickerError
from portfolio_sim.venues.csv_data_provider import CsvDataProvider


def make_price_df(n_rows: int = 20) -> pd.DataFrame:
    return pd.DataFrame({
        'timestamp': pd.bdate_range("2024-01-01", periods=n_rows),
        'open_price': np.linspace(10.0, 20.0, n_rows),
        'high_price': np.linspace(11.0, 21.0, n_rows),
        'low_price': np.linspace(9.0, 19.0, n_rows),
        'closing_price': np.linspace(10.5, 20.5, n_rows),
        'volume': np.full(n_rows, 1_000_000),
    })


def test_fetch_slices_to_window(tmp_path):
    write_price_csv(make_price_df(), tmp_path / "AAPL.csv")
    provider = CsvDataProvider(tmp_path)

    bars = provider.fetch_daily_bars("aapl", dt.date(2024, 1, 3), dt.date(2024, 1, 9))

    assert bars['timestamp'].dt.date.tolist() == [
        dt.date(2024, 1, 3), dt.date(2024, 1, 4), dt.date(2024, 1, 5),
        dt.date(2024, 1, 8), dt.date(2024, 1, 9),
    ]


def test_missing_file_is_unknown_ticker(tmp_path):
    with pytest.raises(UnknownTickerError) as exc_info:
        CsvDataProvider(tmp_path).fetch_daily_bars("MSFT", dt.date(2024, 1, 1), dt.date(2024, 2, 1))
    assert exc_info.value.ticker == "MSFT"


def test_malformed_file_is_price_data_error(tmp_path):
    (tmp_path / "BAD.csv").write_text("timestamp,closing_price\n2024-01-02,10\n")
    with pytest.raises(PriceDataError):
        CsvDataProvider(tmp_path).fetch_daily_bars("BAD", dt.date(2024, 1, 1), dt.date(2024, 2, 1))


def test_window_outside_data_returns_empty(tmp_path):
    write_price_csv(make_price_df(5), tmp_path / "AAPL.csv")
    bars = CsvDataProvider(tmp_path).fetch_daily_bars("AAPL", dt.date(2025, 1, 1), dt.date(2025, 2, 1))
    assert bars.empty
