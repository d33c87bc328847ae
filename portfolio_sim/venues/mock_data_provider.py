"""
Deterministic mock price provider.

**Conceptual**: A stand-in for a market data vendor that needs no network
access. It knows a small fixed catalogue of instruments, generates weekday-only
daily bars with a GBM close path, and raises `UnknownTickerError` for anything
outside the catalogue, exactly like a real provider would for a bad symbol.

**Reproducibility**: Each ticker draws from its own random generator seeded by
(provider seed, ticker). The same provider seed therefore yields the same bars
for a ticker regardless of which other tickers are fetched, in which order, or
on which thread.

**Price model** (per ticker):
  - Starts at 80% of the catalogue reference price.
  - Daily drift 0.0003.
  - Daily volatility 0.05 for BTC, 0.04 for TSLA, 0.02 for everything else.
"""

import datetime as dt
import zlib
from dataclasses import dataclass
from typing import Dict, List

import numpy as np
import pandas as pd

from portfolio_sim.analytics.synthetic_data import generate_ohlcv_bars
from portfolio_sim.venues.base import UnknownTickerError


@dataclass(frozen=True)
class AssetInfo:
    """
    Static description of a catalogue instrument.

    Attributes:
        ticker: Symbol.
        name: Display name.
        price: Reference (latest) price.
        change: Absolute change on the reference day.
        change_percent: Percentage change on the reference day.
    """
    ticker: str
    name: str
    price: float
    change: float
    change_percent: float


MOCK_ASSETS: Dict[str, AssetInfo] = {
    'AAPL': AssetInfo('AAPL', 'Apple Inc.', 175.43, 2.34, 1.35),
    'MSFT': AssetInfo('MSFT', 'Microsoft Corp.', 378.85, -1.23, -0.32),
    'GOOGL': AssetInfo('GOOGL', 'Alphabet Inc.', 142.56, 0.89, 0.63),
    'TSLA': AssetInfo('TSLA', 'Tesla Inc.', 248.91, 12.45, 5.26),
    'NVDA': AssetInfo('NVDA', 'NVIDIA Corp.', 875.28, 15.67, 1.82),
    'AMZN': AssetInfo('AMZN', 'Amazon.com Inc.', 151.94, -2.11, -1.37),
    'META': AssetInfo('META', 'Meta Platforms Inc.', 484.20, 8.93, 1.88),
    'BTC': AssetInfo('BTC', 'Bitcoin', 67845.32, 1234.56, 1.85),
    'ETH': AssetInfo('ETH', 'Ethereum', 3456.78, -123.45, -3.44),
}

DAILY_DRIFT = 0.0003
DEFAULT_DAILY_VOLATILITY = 0.02
DAILY_VOLATILITY_OVERRIDES = {'BTC': 0.05, 'TSLA': 0.04}
START_PRICE_FRACTION = 0.8


def is_valid_ticker(ticker: str) -> bool:
    """Return True if `ticker` is in the mock catalogue (case-insensitive)."""
    return ticker.strip().upper() in MOCK_ASSETS


def available_tickers() -> List[str]:
    """Return every catalogue symbol, in catalogue order."""
    return list(MOCK_ASSETS.keys())


def get_asset_info(ticker: str) -> AssetInfo:
    """
    Look up the catalogue entry for a ticker.

    Raises:
        UnknownTickerError: If the ticker is not in the catalogue.
    """
    symbol = ticker.strip().upper()
    if symbol not in MOCK_ASSETS:
        raise UnknownTickerError(symbol)
    return MOCK_ASSETS[symbol]


class MockDataProvider:
    """
    Synthetic price provider over the fixed `MOCK_ASSETS` catalogue.

    **Example usage**:
        >>> provider = MockDataProvider(seed=42)
        >>> bars = provider.fetch_daily_bars("AAPL", dt.date(2023, 1, 1), dt.date(2023, 3, 31))
        >>> bars['timestamp'].dt.dayofweek.max() <= 4   # weekdays only
        True
    """

    def __init__(self, seed: int = 42):
        """
        Args:
            seed: Base seed; combined with each ticker to seed its generator.
        """
        self.seed = seed

    def _rng_for(self, ticker: str) -> np.random.Generator:
        # crc32 is stable across processes, unlike hash()
        return np.random.default_rng([self.seed, zlib.crc32(ticker.encode("utf-8"))])

    def fetch_daily_bars(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.DataFrame:
        """
        Generate weekday bars for `ticker` over [start_date, end_date].

        Args:
            ticker: Catalogue symbol (case-insensitive).
            start_date: First calendar date (inclusive).
            end_date: Last calendar date (inclusive).

        Returns:
            Canonical price DataFrame, ascending. May be empty if the range
            contains no weekdays.

        Raises:
            ValueError: If ticker is empty or start_date > end_date.
            UnknownTickerError: If the ticker is not in the catalogue.
        """
        if not ticker or not ticker.strip():
            raise ValueError("Ticker cannot be empty")
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) must be <= end_date ({end_date})"
            )

        asset = get_asset_info(ticker)
        dates = pd.bdate_range(start=start_date, end=end_date)

        return generate_ohlcv_bars(
            dates=dates,
            initial_price=asset.price * START_PRICE_FRACTION,
            daily_drift=DAILY_DRIFT,
            daily_volatility=DAILY_VOLATILITY_OVERRIDES.get(asset.ticker, DEFAULT_DAILY_VOLATILITY),
            rng=self._rng_for(asset.ticker),
        )
