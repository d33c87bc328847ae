"""
CSV and JSON readers/writers with schema enforcement.

**Conceptual**: This module is the only file I/O boundary of the project.
Price CSVs (read by `CsvDataProvider`, written by fetch scripts) and simulation
outputs (trade log, equity curve, metrics) all go through these functions so
their formats stay consistent.

**Formats**:
  - Price CSV: canonical columns, timestamp as "YYYY-MM-DD HH:MM:SS", sorted
    ascending (oldest first).
  - Trade log CSV: Date, Ticker, Action, Quantity, Price, Value, Reason.
  - Equity curve CSV: date, value, drawdown, benchmark (drawdown in percent).
  - Metrics JSON: flat object of metric name -> value, plus optional extras.

**Rule**: Strategies and the engine never call pd.read_csv / to_csv directly.
"""

import json
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import pandas as pd

from portfolio_sim.data.schemas import (
    PRICE_COLUMNS,
    SchemaValidationError,
    normalize_price_frame,
    validate_price_history,
)

TRADE_LOG_COLUMNS = ['Date', 'Ticker', 'Action', 'Quantity', 'Price', 'Value', 'Reason']
EQUITY_CURVE_COLUMNS = ['date', 'value', 'drawdown', 'benchmark']


def read_price_csv(path: Path | str, ticker: str | None = None) -> pd.DataFrame:
    """
    Read a canonical price CSV and validate it.

    **Functionally**:
      - Reads the CSV with pandas.
      - Parses timestamps (ISO 8601, with or without time part).
      - Sorts ascending and validates the schema.

    Args:
        path: CSV file (e.g. "data/raw/AAPL.csv").
        ticker: Optional symbol for error messages; defaults to the path.

    Returns:
        Canonical price DataFrame, ascending.

    Raises:
        FileNotFoundError: If the file does not exist.
        SchemaValidationError: If the file cannot be parsed or breaks the schema.
    """
    path = Path(path)
    context = ticker or str(path)

    if not path.exists():
        raise FileNotFoundError(
            f"Price CSV not found: {path}. "
            f"Ensure the file exists and the path is correct."
        )

    try:
        df = pd.read_csv(path)
    except Exception as e:
        raise SchemaValidationError(f"{context}: Failed to read CSV. Error: {e}") from e

    df = normalize_price_frame(df, context=context)
    validate_price_history(df, context=context)
    return df


def write_price_csv(df: pd.DataFrame, path: Path | str) -> None:
    """
    Write a price DataFrame as a canonical CSV (ascending, stable column order).

    Creates parent directories as needed.

    Raises:
        SchemaValidationError: If the frame breaks the price schema.
    """
    path = Path(path)
    context = str(path)

    df_to_write = normalize_price_frame(df, context=context)
    validate_price_history(df_to_write, context=context)
    df_to_write['timestamp'] = df_to_write['timestamp'].dt.strftime('%Y-%m-%d %H:%M:%S')

    path.parent.mkdir(parents=True, exist_ok=True)
    df_to_write.to_csv(path, index=False, columns=PRICE_COLUMNS)


def trades_to_frame(trades: Sequence[Any]) -> pd.DataFrame:
    """Trade log as a DataFrame with the export column names."""
    rows = [
        {
            'Date': trade.date.isoformat(),
            'Ticker': trade.ticker,
            'Action': getattr(trade.action, 'value', trade.action),
            'Quantity': trade.quantity,
            'Price': trade.price,
            'Value': trade.value,
            'Reason': trade.reason,
        }
        for trade in trades
    ]
    return pd.DataFrame(rows, columns=TRADE_LOG_COLUMNS)


def write_trade_log_csv(trades: Sequence[Any], path: Path | str) -> Path:
    """
    Export the trade log.

    Price and Value are written with two decimals; reasons are quoted by the
    csv writer when they contain commas.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    trades_to_frame(trades).to_csv(path, index=False, float_format='%.2f')
    return path


def write_equity_curve_csv(chart_frame: pd.DataFrame, path: Path | str) -> Path:
    """
    Write the per-day chart series (date, value, drawdown, benchmark).

    Raises:
        SchemaValidationError: If required columns are missing.
    """
    missing = set(EQUITY_CURVE_COLUMNS) - set(chart_frame.columns)
    if missing:
        raise SchemaValidationError(
            f"Equity curve is missing columns: {sorted(missing)}. "
            f"Found columns: {list(chart_frame.columns)}."
        )

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    chart_frame.to_csv(path, index=False, columns=EQUITY_CURVE_COLUMNS)
    return path


def write_metrics_json(
    metrics: Mapping[str, float],
    path: Path | str,
    extra: Optional[Mapping[str, Any]] = None,
) -> Path:
    """
    Write metrics (and optional run metadata under "run") as indented JSON.

    Returns:
        The path written.
    """
    payload: dict = {'metrics': {k: float(v) for k, v in metrics.items()}}
    if extra:
        payload['run'] = dict(extra)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=str) + "\n", encoding="utf-8")
    return path
