"""
Base abstractions for historical price providers.

**Conceptual**: The simulation engine never talks to Yahoo Finance, CSV files
or a random generator directly. It depends on the `PriceDataProvider`
protocol: anything with a `fetch_daily_bars(ticker, start_date, end_date)`
method returning a canonical price DataFrame can feed a simulation.

**Provider guarantees**:
All implementations MUST:
  1. Return the canonical columns (timestamp, open_price, high_price,
     low_price, closing_price, volume). See `portfolio_sim.data.schemas`.
  2. Sort rows by timestamp in ASCENDING order (oldest first).
  3. Contain no duplicate dates for a ticker.
  4. Raise `UnknownTickerError` for symbols the source does not recognise.
  5. Raise `PriceDataError` for every other fetch failure (network, parsing).

**Teaching note**: This is a Protocol (structural typing). Test doubles only
need a matching method; they do not inherit from anything.
"""

import datetime as dt
from typing import Protocol

import pandas as pd


class PriceDataError(RuntimeError):
    """
    Generic failure while fetching historical prices.

    Raised for network errors, malformed responses, or data quality problems
    in the source. The simulation treats it as fatal for the whole run.
    """
    pass


class UnknownTickerError(PriceDataError):
    """
    Raised when the source does not recognise a ticker or has no data for it.

    Kept distinct from `PriceDataError` so callers can tell "bad symbol"
    apart from "source temporarily broken".
    """

    def __init__(self, ticker: str, message: str | None = None):
        self.ticker = ticker
        super().__init__(message or f"Unknown ticker: {ticker}")


class PriceDataProvider(Protocol):
    """
    Protocol for fetching daily OHLCV history for one ticker.

    **Example usage**:
        >>> from portfolio_sim.venues.mock_data_provider import MockDataProvider
        >>> provider = MockDataProvider(seed=7)
        >>> bars = provider.fetch_daily_bars(
        ...     "AAPL", dt.date(2024, 1, 1), dt.date(2024, 1, 31)
        ... )
        >>> bars.iloc[0]["timestamp"] < bars.iloc[-1]["timestamp"]
        True

    **Testing strategy**: a mock only needs the method:
        >>> class FixedProvider:
        ...     def fetch_daily_bars(self, ticker, start_date, end_date):
        ...         return make_price_frame(...)
    """

    def fetch_daily_bars(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.DataFrame:
        """
        Fetch daily bars for `ticker` between `start_date` and `end_date` (both inclusive).

        Args:
            ticker: Ticker symbol (e.g. "AAPL").
            start_date: First date to include.
            end_date: Last date to include.

        Returns:
            Canonical price DataFrame sorted ascending by timestamp.

        Raises:
            ValueError: If start_date > end_date or ticker is empty.
            UnknownTickerError: If the ticker is not recognised by the source.
            PriceDataError: For any other failure.
        """
        ...
