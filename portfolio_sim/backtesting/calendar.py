"""
Trading calendar construction.

The simulation iterates over ONE timeline: the sorted, duplicate-free union of
every date on which any configured ticker has a bar. A ticker without a bar
on some calendar date simply has no price that day.
"""

import datetime as dt
from typing import Iterable, List, Mapping

import pandas as pd


def build_trading_calendar(frames: Mapping[str, pd.DataFrame]) -> List[dt.date]:
    """
    Union of all tickers' bar dates, ascending.

    Args:
        frames: ticker -> price frame with a `timestamp` column.

    Returns:
        Sorted list of unique dates.

    Example:
        >>> build_trading_calendar({"A": a_df, "B": b_df})
        [datetime.date(2024, 1, 2), datetime.date(2024, 1, 3), ...]
    """
    return merge_date_sequences(
        (ts.date() for ts in pd.to_datetime(df['timestamp'])) for df in frames.values()
    )


def merge_date_sequences(sequences: Iterable[Iterable[dt.date]]) -> List[dt.date]:
    """Sorted union of several date sequences."""
    all_dates = set()
    for dates in sequences:
        all_dates.update(dates)
    return sorted(all_dates)
