"""
In-memory price history for the simulation loop.

`PriceHistory` wraps the per-ticker canonical price frames once, before the
daily loop starts, and answers the two questions the loop asks every day:

  - Which tickers have a close today, and at what price? (`prices_on`)
  - What are a ticker's last N closes up to and including today? (`recent_closes`)

Lookups are by each ticker's OWN bar sequence: a window of 20 closes is 20 bars
of that ticker, not 20 days of the combined calendar.
"""

import datetime as dt
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd


class PriceHistory:
    """
    Read-only index over per-ticker close prices.

    **Example usage**:
        >>> history = PriceHistory({"AAPL": aapl_df, "MSFT": msft_df})
        >>> history.prices_on(dt.date(2024, 1, 2))
        {'AAPL': 185.64, 'MSFT': 370.87}
        >>> history.recent_closes("AAPL", dt.date(2024, 2, 1), 20)   # None if < 20 bars
        array([...])
    """

    def __init__(self, frames: Mapping[str, pd.DataFrame]):
        """
        Args:
            frames: ticker -> canonical price frame (ascending, no duplicates).
        """
        self._tickers: List[str] = list(frames.keys())
        self._dates: Dict[str, List[dt.date]] = {}
        self._closes: Dict[str, np.ndarray] = {}
        self._index: Dict[str, Dict[dt.date, int]] = {}

        for ticker, df in frames.items():
            dates = [ts.date() for ts in pd.to_datetime(df['timestamp'])]
            self._dates[ticker] = dates
            self._closes[ticker] = df['closing_price'].to_numpy(dtype=float)
            self._index[ticker] = {d: i for i, d in enumerate(dates)}

    @property
    def tickers(self) -> List[str]:
        return list(self._tickers)

    def dates_for(self, ticker: str) -> List[dt.date]:
        """Trading dates of one ticker, ascending."""
        return list(self._dates.get(ticker, []))

    def all_dates(self) -> Iterable[List[dt.date]]:
        """Per-ticker date lists, in ticker order."""
        return (self._dates[t] for t in self._tickers)

    def close_on(self, ticker: str, date: dt.date) -> Optional[float]:
        """Close of `ticker` on `date`, or None if it has no bar that day."""
        i = self._index.get(ticker, {}).get(date)
        if i is None:
            return None
        return float(self._closes[ticker][i])

    def prices_on(self, date: dt.date) -> Dict[str, float]:
        """Map of ticker -> close for every ticker with a bar on `date`."""
        prices = {}
        for ticker in self._tickers:
            price = self.close_on(ticker, date)
            if price is not None:
                prices[ticker] = price
        return prices

    def recent_closes(self, ticker: str, date: dt.date, window: int) -> Optional[np.ndarray]:
        """
        The last `window` closes of `ticker` ending at `date` (inclusive).

        Returns None if the ticker has no bar on `date` or fewer than `window`
        bars up to it.
        """
        i = self._index.get(ticker, {}).get(date)
        if i is None or i < window - 1:
            return None
        return self._closes[ticker][i - window + 1:i + 1]
