"""
Local CSV price provider.

Reads `<data_dir>/<TICKER>.csv` files in the canonical price format (see
`portfolio_sim.data.io.write_price_csv`) and slices them to the requested
window. Useful for offline, fully reproducible runs on downloaded history.
"""

import datetime as dt
from pathlib import Path

import pandas as pd

from portfolio_sim.data.io import read_price_csv
from portfolio_sim.data.schemas import SchemaValidationError
from portfolio_sim.venues.base import PriceDataError, UnknownTickerError


class CsvDataProvider:
    """
    Price provider over a directory of per-ticker CSV files.

    **Example usage**:
        >>> provider = CsvDataProvider("data/raw")
        >>> provider.fetch_daily_bars("AAPL", dt.date(2023, 1, 1), dt.date(2023, 12, 31))
    """

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)

    def path_for(self, ticker: str) -> Path:
        return self.data_dir / f"{ticker.strip().upper()}.csv"

    def fetch_daily_bars(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.DataFrame:
        """
        Bars of `ticker` within [start_date, end_date], ascending.

        Raises:
            ValueError: If ticker is empty or start_date > end_date.
            UnknownTickerError: If there is no CSV for the ticker.
            PriceDataError: If the CSV is malformed.
        """
        if not ticker or not ticker.strip():
            raise ValueError("Ticker cannot be empty")
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) must be <= end_date ({end_date})"
            )

        symbol = ticker.strip().upper()
        path = self.path_for(symbol)
        if not path.exists():
            raise UnknownTickerError(symbol, f"No price file for '{symbol}' at {path}")

        try:
            df = read_price_csv(path, ticker=symbol)
        except SchemaValidationError as e:
            raise PriceDataError(str(e)) from e

        window = (df['timestamp'] >= pd.Timestamp(start_date)) & (
            df['timestamp'] <= pd.Timestamp(end_date)
        )
        return df[window].reset_index(drop=True)
