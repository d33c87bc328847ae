#!/usr/bin/env python3
"""
Fetch daily price history and save it to data/raw/ for the CSV provider.

**Conceptual**: Simulations can read prices from local CSV files
(PORTFOLIO_SIM_PROVIDER=csv), which makes runs fully offline and repeatable.
This script fills data/raw/{TICKER}.csv from Yahoo Finance or from the
deterministic mock source. Existing files are updated incrementally (new dates
only) unless --force is given.

**Usage**:
    # Default universe (AAPL, MSFT, GOOGL) for 2023 from Yahoo Finance
    python actions/fetch_price_history.py

    # Specific tickers and range
    python actions/fetch_price_history.py --tickers NVDA,TSLA --start 2022-01-01 --end 2024-01-01

    # Synthetic data (no network)
    python actions/fetch_price_history.py --source mock --tickers BTC,ETH

    # Overwrite the requested range in existing files
    python actions/fetch_price_history.py --tickers AAPL --force

**Exit codes**:
  - 0: All tickers fetched
  - 1: Some tickers failed
  - 2: All tickers failed or invalid arguments
"""

import argparse
import datetime as dt
import sys
from pathlib import Path

import pandas as pd

# Add project root to Python path so we can import portfolio_sim modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from portfolio_sim.config.settings import (
    ConfigurationError,
    SimulationConfig,
    get_settings,
    parse_date,
)
from portfolio_sim.data.io import read_price_csv, write_price_csv
from portfolio_sim.data.schemas import SchemaValidationError
from portfolio_sim.utils.logger import configure_logging, logger
from portfolio_sim.venues.base import PriceDataError, PriceDataProvider, UnknownTickerError
from portfolio_sim.venues.mock_data_provider import MockDataProvider
from portfolio_sim.venues.yfinance_data_provider import YFinanceDataProvider


def merge_price_history(
    existing: pd.DataFrame,
    new: pd.DataFrame,
    start_date: dt.date,
    end_date: dt.date,
    force: bool = False,
) -> pd.DataFrame:
    """
    Merge existing and newly fetched bars.

    **Incremental mode (force=False)**: keep every existing bar, add new bars
    only for dates not already present.

    **Force mode (force=True)**: drop existing bars inside
    [start_date, end_date] and replace them with the new ones; bars outside
    the range are kept.

    Returns:
        Merged DataFrame sorted ascending by timestamp, one row per date.
    """
    if existing.empty:
        return new.sort_values('timestamp').reset_index(drop=True)
    if new.empty:
        return existing.sort_values('timestamp').reset_index(drop=True)

    if force:
        start_ts = pd.Timestamp(start_date)
        end_ts = pd.Timestamp(end_date)
        outside_range = existing[
            (existing['timestamp'] < start_ts) | (existing['timestamp'] > end_ts)
        ]
        merged = pd.concat([outside_range, new], ignore_index=True)
    else:
        new_bars = new[~new['timestamp'].isin(set(existing['timestamp']))]
        merged = pd.concat([existing, new_bars], ignore_index=True)

    merged = merged.sort_values('timestamp', kind='stable')
    return merged.drop_duplicates(subset=['timestamp'], keep='last').reset_index(drop=True)


def fetch_and_save_ticker(
    provider: PriceDataProvider,
    ticker: str,
    start_date: dt.date,
    end_date: dt.date,
    output_dir: Path,
    force: bool = False,
) -> bool:
    """
    Fetch one ticker, merge with any existing CSV, and write it back.

    Returns:
        True on success, False if the ticker could not be fetched or written.
    """
    output_file = output_dir / f"{ticker}.csv"
    print(f"\n[{ticker}] Fetching data from {start_date} to {end_date}...")

    try:
        new_bars = provider.fetch_daily_bars(ticker, start_date, end_date)
    except UnknownTickerError as e:
        print(f"[{ticker}] No data available - {e}. Skipping.")
        return False
    except PriceDataError as e:
        print(f"[{ticker}] ERROR: {e}")
        return False

    print(f"[{ticker}] Fetched {len(new_bars)} bars.")

    final_bars = new_bars
    if output_file.exists():
        try:
            existing_bars = read_price_csv(output_file, ticker=ticker)
        except SchemaValidationError as e:
            logger.warning("{}: existing file unreadable, overwriting ({})", ticker, e)
        else:
            final_bars = merge_price_history(existing_bars, new_bars, start_date, end_date, force)
            print(f"[{ticker}] Merged with {len(existing_bars)} existing bars "
                  f"({'force' if force else 'incremental'}): {len(final_bars)} total.")

    try:
        write_price_csv(final_bars, output_file)
    except (SchemaValidationError, OSError) as e:
        print(f"[{ticker}] ERROR: Failed to write {output_file}: {e}")
        return False

    print(f"[{ticker}] ✓ Wrote {len(final_bars)} bars to {output_file}")
    return True


def main():
    defaults = SimulationConfig.defaults()
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Fetch daily price history into data/raw/ for the CSV provider.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--tickers", type=str, default=",".join(defaults.tickers),
                        help="Comma-separated tickers.")
    parser.add_argument("--start", type=str, default=defaults.start_date.isoformat(),
                        help="Start date (YYYY-MM-DD).")
    parser.add_argument("--end", type=str, default=defaults.end_date.isoformat(),
                        help="End date (YYYY-MM-DD).")
    parser.add_argument("--source", type=str, default="yfinance", choices=["yfinance", "mock"],
                        help="Where to fetch from. Default: yfinance.")
    parser.add_argument("--output-dir", type=str, default=str(settings.simulation.data_dir),
                        help="Directory for CSV files. Default: PORTFOLIO_SIM_DATA_DIR.")
    parser.add_argument("--force", action="store_true",
                        help="Overwrite existing bars in [start, end]. Default: incremental.")
    args = parser.parse_args()

    configure_logging(settings.simulation.log_level)

    try:
        start_date = parse_date(args.start, "start")
        end_date = parse_date(args.end, "end")
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        sys.exit(2)
    if start_date > end_date:
        print(f"ERROR: start_date ({start_date}) must be <= end_date ({end_date}).")
        sys.exit(2)

    tickers = [t.strip().upper() for t in args.tickers.split(",") if t.strip()]
    if not tickers:
        print("ERROR: No tickers specified.")
        sys.exit(2)

    if args.source == "mock":
        provider = MockDataProvider(seed=settings.simulation.mock_seed)
    else:
        provider = YFinanceDataProvider(settings.yfinance)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print(f"Price history fetch ({args.source})")
    print("=" * 60)
    print(f"Date range: {start_date} to {end_date}")
    print(f"Tickers: {', '.join(tickers)}")
    print(f"Mode: {'FORCE (overwrite)' if args.force else 'INCREMENTAL (fill gaps)'}")
    print(f"Output directory: {output_dir.absolute()}")
    print("=" * 60)

    success_count = 0
    for ticker in tickers:
        if fetch_and_save_ticker(provider, ticker, start_date, end_date, output_dir, args.force):
            success_count += 1
    failure_count = len(tickers) - success_count

    print("\n" + "=" * 60)
    print(f"Success: {success_count}/{len(tickers)} tickers")
    print(f"Failures: {failure_count}/{len(tickers)} tickers")
    print("=" * 60)

    if failure_count == 0:
        sys.exit(0)
    elif success_count == 0:
        sys.exit(2)
    else:
        sys.exit(1)


if __name__ == "__main__":
    main()
