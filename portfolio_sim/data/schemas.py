"""
Canonical price schema, the `Bar` record, and validation.

**Conceptual**: Every price source (mock generator, Yahoo Finance, CSV files)
hands the engine the same shape of data: one DataFrame per ticker with the
canonical OHLCV columns and one row per trading day. This module defines that
contract and the checks that enforce it.

**Schema**:
  - Columns: timestamp, open_price, high_price, low_price, closing_price, volume.
  - `timestamp` is a tz-naive datetime64 column normalised to midnight.
  - Rows are sorted in strictly ASCENDING order by timestamp (oldest first),
    so the last row is the most recent bar. No duplicate dates.
  - `closing_price` is strictly positive (it is used as a divisor when sizing trades).

**Teaching note**: The engine iterates forward in time, so ascending order is
the natural layout for this project; positional lookback windows
(`iloc[i - 19 : i + 1]`) then read directly as "the last 20 bars up to today".
"""

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, List

import pandas as pd


class SchemaValidationError(Exception):
    """
    Raised when a price DataFrame does not conform to the canonical schema.

    Messages include the context (ticker or file path) and the specific
    violation so the offending source can be fixed quickly.
    """
    pass


PRICE_COLUMNS = [
    'timestamp',
    'open_price',
    'high_price',
    'low_price',
    'closing_price',
    'volume',
]


@dataclass(frozen=True)
class Bar:
    """
    One trading day of OHLCV data for a single instrument.

    Bars are owned by the price provider; the simulation only reads them.

    Attributes:
        date: Trading date.
        open: Opening price.
        high: Highest traded price.
        low: Lowest traded price.
        close: Closing price (used for signals, execution and valuation).
        volume: Shares traded.
    """
    date: dt.date
    open: float
    high: float
    low: float
    close: float
    volume: float


def bars_to_frame(bars: Iterable[Bar]) -> pd.DataFrame:
    """
    Convert a sequence of `Bar` records into a canonical price DataFrame.

    The input order is preserved; call `normalize_price_frame` if the bars
    may be unsorted.
    """
    rows = [
        {
            'timestamp': pd.Timestamp(bar.date),
            'open_price': float(bar.open),
            'high_price': float(bar.high),
            'low_price': float(bar.low),
            'closing_price': float(bar.close),
            'volume': bar.volume,
        }
        for bar in bars
    ]
    if not rows:
        return pd.DataFrame(columns=PRICE_COLUMNS)
    return pd.DataFrame(rows, columns=PRICE_COLUMNS)


def frame_to_bars(df: pd.DataFrame) -> List[Bar]:
    """Convert a canonical price DataFrame back into `Bar` records (row order preserved)."""
    return [
        Bar(
            date=pd.Timestamp(row.timestamp).date(),
            open=float(row.open_price),
            high=float(row.high_price),
            low=float(row.low_price),
            close=float(row.closing_price),
            volume=row.volume,
        )
        for row in df.itertuples(index=False)
    ]


def normalize_price_frame(df: pd.DataFrame, context: str | None = None) -> pd.DataFrame:
    """
    Bring a price DataFrame into canonical form without validating it.

    **Functionally**:
      - Parses `timestamp` to datetime if it is not already (ISO 8601 strings accepted).
      - Converts tz-aware timestamps to UTC and drops the timezone.
      - Normalises timestamps to midnight (daily bars carry no time of day).
      - Sorts ascending by timestamp and resets the index.
      - Keeps only the canonical columns, in canonical order.

    Args:
        df: Raw price DataFrame containing at least the canonical columns.
        context: Optional ticker or path for error messages.

    Returns:
        New DataFrame in canonical form (the input is not modified).

    Raises:
        SchemaValidationError: If columns are missing or timestamps cannot be parsed.
    """
    ctx = f"{context}: " if context else ""

    missing_cols = set(PRICE_COLUMNS) - set(df.columns)
    if missing_cols:
        raise SchemaValidationError(
            f"{ctx}Missing required columns: {sorted(missing_cols)}. "
            f"Expected columns: {PRICE_COLUMNS}. "
            f"Found columns: {list(df.columns)}."
        )

    normalized = df[PRICE_COLUMNS].copy()

    if not pd.api.types.is_datetime64_any_dtype(normalized['timestamp']):
        try:
            normalized['timestamp'] = pd.to_datetime(normalized['timestamp'], format='ISO8601')
        except (ValueError, TypeError) as e:
            raise SchemaValidationError(
                f"{ctx}'timestamp' column contains non-parseable values. "
                f"Expected ISO 8601 date strings. Error: {e}"
            )

    if normalized['timestamp'].dt.tz is not None:
        normalized['timestamp'] = normalized['timestamp'].dt.tz_convert('UTC').dt.tz_localize(None)

    normalized['timestamp'] = normalized['timestamp'].dt.normalize()

    return normalized.sort_values('timestamp', ascending=True).reset_index(drop=True)


def validate_price_history(df: pd.DataFrame, context: str | None = None) -> None:
    """
    Validate that a DataFrame satisfies the canonical price schema.

    **Checks**:
      1. All canonical columns are present.
      2. `timestamp` is a tz-naive datetime column.
      3. The frame is not empty (an empty series for the requested range is
         treated as unavailable data by the engine).
      4. Timestamps are strictly ascending (which also rules out duplicates).
      5. `closing_price` has no missing values and is strictly positive.

    Args:
        df: Price DataFrame to validate.
        context: Optional ticker or path included in error messages.

    Raises:
        SchemaValidationError: On the first violation found.
    """
    ctx = f"{context}: " if context else ""

    missing_cols = set(PRICE_COLUMNS) - set(df.columns)
    if missing_cols:
        raise SchemaValidationError(
            f"{ctx}Missing required columns: {sorted(missing_cols)}. "
            f"Found columns: {list(df.columns)}."
        )

    if not pd.api.types.is_datetime64_any_dtype(df['timestamp']):
        raise SchemaValidationError(
            f"{ctx}'timestamp' column must be datetime64, got {df['timestamp'].dtype}. "
            f"Hint: pass the frame through normalize_price_frame() first."
        )

    if df['timestamp'].dt.tz is not None:
        raise SchemaValidationError(
            f"{ctx}'timestamp' must be tz-naive, got tz={df['timestamp'].dt.tz}. "
            f"Hint: pass the frame through normalize_price_frame() first."
        )

    if df.empty:
        raise SchemaValidationError(f"{ctx}Price history is empty.")

    if len(df) > 1:
        diffs = df['timestamp'].diff().iloc[1:]
        if not (diffs > pd.Timedelta(0)).all():
            bad_indices = diffs[diffs <= pd.Timedelta(0)].index.tolist()
            raise SchemaValidationError(
                f"{ctx}Timestamps are not in strictly ascending order. "
                f"Violations found at row indices: {bad_indices[:5]} (showing first 5). "
                f"Hint: sort oldest first and remove duplicate dates."
            )

    closes = df['closing_price']
    if closes.isna().any():
        raise SchemaValidationError(
            f"{ctx}'closing_price' has {int(closes.isna().sum())} missing values."
        )
    if (closes <= 0).any():
        raise SchemaValidationError(f"{ctx}'closing_price' has non-positive values.")
