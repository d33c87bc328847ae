"""
YFinance price provider.

**Conceptual**: Live daily bars from Yahoo Finance via the yfinance library.
No API key is required, which makes it the natural "real data" counterpart to
`MockDataProvider` for research runs.

**Limitations**:
  - yfinance scrapes Yahoo Finance; there is no SLA and the site can change.
  - Corporate-action adjustment depends on `YFinanceSettings.auto_adjust`.
  - Yahoo returns an empty frame (rather than an error) for unknown symbols;
    this provider maps that to `UnknownTickerError`.

**Teaching note**: The provider only fetches and reshapes. Sorting, timestamp
normalisation and schema checks are delegated to `portfolio_sim.data.schemas`
so every provider produces the exact same canonical frame.
"""

import datetime as dt

import pandas as pd
import yfinance as yf

from portfolio_sim.config.settings import YFinanceSettings
from portfolio_sim.data.schemas import (
    PRICE_COLUMNS,
    SchemaValidationError,
    normalize_price_frame,
)
from portfolio_sim.utils.logger import logger
from portfolio_sim.venues.base import PriceDataError, UnknownTickerError

YFINANCE_COLUMN_MAP = {
    "Date": "timestamp",
    "Datetime": "timestamp",
    "Open": "open_price",
    "High": "high_price",
    "Low": "low_price",
    "Close": "closing_price",
    "Volume": "volume",
}


class YFinanceDataProvider:
    """
    Price provider backed by `yfinance.download`.

    **Data transformation pipeline**:
      1. Validate inputs (ticker, date range).
      2. Call yf.download() (end date +1 day because yfinance's end is exclusive).
      3. Empty result -> UnknownTickerError.
      4. Flatten MultiIndex columns, move the date index into a column.
      5. Rename to canonical names, drop "Adj Close".
      6. Normalise (UTC tz-naive, midnight, ascending) and filter to the window.
      7. Check for missing or non-positive prices.

    **Example usage**:
        >>> from portfolio_sim.config.settings import get_settings
        >>> provider = YFinanceDataProvider(get_settings().yfinance)
        >>> bars = provider.fetch_daily_bars("AAPL", dt.date(2024, 1, 1), dt.date(2024, 1, 31))
        >>> bars.columns.tolist()
        ['timestamp', 'open_price', 'high_price', 'low_price', 'closing_price', 'volume']
    """

    def __init__(self, settings: YFinanceSettings | None = None):
        """
        Args:
            settings: yfinance options; defaults to `YFinanceSettings()`.
        """
        self.settings = settings or YFinanceSettings()

    def fetch_daily_bars(
        self,
        ticker: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> pd.DataFrame:
        """
        Fetch daily bars for `ticker` over [start_date, end_date].

        Returns:
            Canonical price DataFrame sorted ascending.

        Raises:
            ValueError: If ticker is empty or start_date > end_date.
            UnknownTickerError: If Yahoo returns no rows for the ticker/window.
            PriceDataError: On download failures or bad data.
        """
        if not ticker or not ticker.strip():
            raise ValueError("Ticker cannot be empty")
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) must be <= end_date ({end_date})"
            )

        symbol = ticker.strip().upper()
        logger.debug("Downloading {} from yfinance [{} .. {}]", symbol, start_date, end_date)

        try:
            df = yf.download(
                symbol,
                start=start_date.strftime("%Y-%m-%d"),
                end=(end_date + dt.timedelta(days=1)).strftime("%Y-%m-%d"),
                interval=self.settings.interval,
                auto_adjust=self.settings.auto_adjust,
                back_adjust=self.settings.back_adjust,
                prepost=self.settings.prepost,
                progress=False,
                threads=self.settings.threads,
            )
        except Exception as e:
            raise PriceDataError(
                f"Error fetching data from yfinance for ticker '{symbol}': {e}"
            ) from e

        if df is None or df.empty:
            raise UnknownTickerError(
                symbol,
                f"No data returned from yfinance for ticker '{symbol}' "
                f"in date range [{start_date}, {end_date}]. "
                f"Ticker may be invalid or delisted.",
            )

        # Single-ticker downloads can still come back with (field, ticker) columns
        if isinstance(df.columns, pd.MultiIndex):
            df.columns = df.columns.get_level_values(0)

        df = df.reset_index().rename(columns=YFINANCE_COLUMN_MAP)
        if "Adj Close" in df.columns:
            df = df.drop(columns=["Adj Close"])

        try:
            df = normalize_price_frame(df, context=symbol)
        except SchemaValidationError as e:
            raise PriceDataError(f"Unexpected yfinance response for '{symbol}': {e}") from e

        window = (df["timestamp"] >= pd.Timestamp(start_date)) & (
            df["timestamp"] <= pd.Timestamp(end_date)
        )
        df = df[window].drop_duplicates(subset="timestamp", keep="last").reset_index(drop=True)

        if df.empty:
            raise UnknownTickerError(
                symbol,
                f"No data for ticker '{symbol}' in date range [{start_date}, {end_date}] "
                f"after filtering.",
            )

        price_cols = [c for c in PRICE_COLUMNS if c.endswith("_price")]
        nan_counts = df[price_cols].isna().sum()
        if nan_counts.any():
            raise PriceDataError(
                f"{symbol}: yfinance response has missing prices: "
                f"{nan_counts[nan_counts > 0].to_dict()}"
            )
        if (df[price_cols] <= 0).any().any():
            raise PriceDataError(f"{symbol}: yfinance response has non-positive prices.")

        return df
