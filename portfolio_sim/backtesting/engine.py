"""
Daily simulation engine.

**Conceptual**: The engine replays market days in order for ONE portfolio. Each
day it:
  1. Checks the cooperative cancellation hook.
  2. Collects today's closes (tickers without a bar are absent).
  3. Asks the signal generator for signals.
  4. Executes them in emission order through the `TradeExecutor`.
  5. Marks the ledger to market.
  6. Runs the `RiskManager`, which may liquidate everything.
After the last day it computes `PerformanceMetrics` and the chart series once.

**Concurrency**: The daily loop is strictly sequential (every day depends on
the ledger left by the previous one). The only parallel step is fetching each
ticker's history, done by `load_price_history` on a thread pool and joined
before the calendar is built. Each run owns its own ledger, so separate runs
may execute on separate threads without locks.

**Errors**:
  - `ConfigurationError`: raised by `SimulationConfig` before anything runs.
  - `DataUnavailableError`: any ticker that cannot be fetched, or has no bars
    in the window, fails the whole run. There is no partial-universe fallback.
  - `SimulationCancelled`: the cancellation hook returned True.
Unfillable signals and risk liquidations are normal control flow and never raise.
"""

import datetime as dt
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from portfolio_sim.analytics.performance import (
    ChartPoint,
    MetricsCalculator,
    PerformanceMetrics,
    build_chart_series,
    chart_series_to_frame,
)
from portfolio_sim.analytics.risk_metrics import compute_cagr
from portfolio_sim.backtesting.calendar import build_trading_calendar
from portfolio_sim.config.settings import (
    Settings,
    SimulationConfig,
    SimulationSettings,
    YFinanceSettings,
    get_settings,
)
from portfolio_sim.data.io import trades_to_frame
from portfolio_sim.data.price_history import PriceHistory
from portfolio_sim.data.schemas import SchemaValidationError, validate_price_history
from portfolio_sim.execution.ledger import LedgerState, PortfolioLedger, Trade
from portfolio_sim.execution.trade_executor import TradeExecutor
from portfolio_sim.risk.risk_manager import RiskEvent, RiskManager
from portfolio_sim.strategies.base import DayContext, SignalGenerator
from portfolio_sim.strategies.registry import create_signal_generator
from portfolio_sim.utils.logger import logger
from portfolio_sim.venues.base import PriceDataProvider

CancelCheck = Callable[[], bool]


class DataUnavailableError(RuntimeError):
    """
    Price data for a configured ticker could not be obtained.

    Attributes:
        ticker: The offending ticker (None if not ticker-specific).
    """

    def __init__(self, message: str, ticker: str | None = None):
        self.ticker = ticker
        super().__init__(message)


class SimulationCancelled(RuntimeError):
    """Raised when the cancellation hook asks the run to stop."""

    def __init__(self, date: dt.date, days_completed: int):
        self.date = date
        self.days_completed = days_completed
        super().__init__(
            f"Simulation cancelled before {date} after {days_completed} trading days"
        )


@dataclass(frozen=True)
class SimulationResult:
    """
    Everything a finished run produces.

    Attributes:
        config: The configuration that was simulated.
        ledger: Final ledger snapshot (cash, positions, valuation history, returns).
        trades: Full trade log, in execution order.
        metrics: End-of-run performance metrics.
        chart_series: Per-day {date, value, drawdown %, benchmark}.
        risk_events: Forced liquidations, in date order.
    """
    config: SimulationConfig
    ledger: LedgerState
    trades: Tuple[Trade, ...]
    metrics: PerformanceMetrics
    chart_series: Tuple[ChartPoint, ...]
    risk_events: Tuple[RiskEvent, ...] = field(default_factory=tuple)

    @property
    def final_value(self) -> float:
        return self.ledger.final_value

    def equity_curve(self) -> pd.Series:
        """Daily portfolio values indexed by date (seed value excluded)."""
        return pd.Series(
            self.ledger.portfolio_values[1:],
            index=pd.to_datetime(list(self.ledger.dates)),
            name='portfolio_value',
            dtype=float,
        )

    def cagr(self, periods_per_year: int = 252) -> float:
        """Compound annual growth rate measured from the initial capital."""
        return compute_cagr(pd.Series(self.ledger.portfolio_values, dtype=float), periods_per_year)

    def trades_frame(self) -> pd.DataFrame:
        return trades_to_frame(self.trades)

    def chart_frame(self) -> pd.DataFrame:
        return chart_series_to_frame(self.chart_series)


def _fetch_one(
    provider: PriceDataProvider,
    ticker: str,
    start_date: dt.date,
    end_date: dt.date,
) -> pd.DataFrame:
    df = provider.fetch_daily_bars(ticker, start_date, end_date)
    if df is None or df.empty:
        raise DataUnavailableError(
            f"No price data for '{ticker}' between {start_date} and {end_date}",
            ticker=ticker,
        )
    validate_price_history(df, context=ticker)
    return df


def load_price_history(
    provider: PriceDataProvider,
    tickers: Sequence[str],
    start_date: dt.date,
    end_date: dt.date,
    max_workers: int = 8,
) -> Dict[str, pd.DataFrame]:
    """
    Fetch every ticker's history concurrently and join the results.

    Fetches are independent, so they run on a thread pool. The first failure
    cancels the fetches that have not started yet and fails the whole load.

    Args:
        provider: Price source.
        tickers: Symbols to fetch.
        start_date: First date (inclusive).
        end_date: Last date (inclusive).
        max_workers: Thread pool size.

    Returns:
        ticker -> canonical price frame, in the order of `tickers`.

    Raises:
        DataUnavailableError: If any ticker fails or comes back empty.
    """
    frames: Dict[str, pd.DataFrame] = {}
    workers = max(1, min(max_workers, len(tickers)))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(_fetch_one, provider, ticker, start_date, end_date): ticker
            for ticker in tickers
        }
        for future in as_completed(futures):
            ticker = futures[future]
            try:
                frames[ticker] = future.result()
            except DataUnavailableError:
                for pending in futures:
                    pending.cancel()
                raise
            except (SchemaValidationError, ValueError, RuntimeError) as e:
                for pending in futures:
                    pending.cancel()
                raise DataUnavailableError(
                    f"Failed to load price data for '{ticker}': {e}", ticker=ticker
                ) from e
            logger.debug("Fetched {} bars for {}", len(frames[ticker]), ticker)

    return {ticker: frames[ticker] for ticker in tickers}


def create_price_provider(
    settings: SimulationSettings,
    yfinance_settings: YFinanceSettings | None = None,
) -> PriceDataProvider:
    """Build the provider named by `settings.provider` ("mock", "yfinance" or "csv")."""
    if settings.provider == "yfinance":
        from portfolio_sim.venues.yfinance_data_provider import YFinanceDataProvider
        return YFinanceDataProvider(yfinance_settings)
    if settings.provider == "csv":
        from portfolio_sim.venues.csv_data_provider import CsvDataProvider
        return CsvDataProvider(settings.data_dir)

    from portfolio_sim.venues.mock_data_provider import MockDataProvider
    return MockDataProvider(seed=settings.mock_seed)


def _clip_to_window(
    config: SimulationConfig,
    price_data: Mapping[str, pd.DataFrame],
) -> Dict[str, pd.DataFrame]:
    """Validate the supplied frames and restrict them to the config's date window."""
    start = pd.Timestamp(config.start_date)
    end = pd.Timestamp(config.end_date)

    clipped = {}
    for ticker in config.tickers:
        if ticker not in price_data:
            raise DataUnavailableError(f"No price data supplied for '{ticker}'", ticker=ticker)

        df = price_data[ticker]
        try:
            validate_price_history(df, context=ticker)
        except SchemaValidationError as e:
            raise DataUnavailableError(str(e), ticker=ticker) from e

        in_window = df[(df['timestamp'] >= start) & (df['timestamp'] <= end)].reset_index(drop=True)
        if in_window.empty:
            raise DataUnavailableError(
                f"No price data for '{ticker}' between {config.start_date} and {config.end_date}",
                ticker=ticker,
            )
        clipped[ticker] = in_window
    return clipped


class SimulationEngine:
    """
    Runs one simulation for one config over pre-loaded price data.

    **Example usage**:
        >>> config = SimulationConfig.defaults()
        >>> frames = load_price_history(MockDataProvider(42), config.tickers,
        ...                             config.start_date, config.end_date)
        >>> result = SimulationEngine(config, frames).run()
        >>> result.ledger.portfolio_values[0]
        100000.0

    Args:
        config: Validated simulation config.
        price_data: ticker -> canonical price frame for every configured ticker.
        signal_generator: Override the strategy chosen by `config.strategy`.
        executor: Override the trade executor.
        metrics_calculator: Override the metrics constants.
        cancel_check: Called at the top of every day; returning True stops the
            run with `SimulationCancelled`. Pass `event.is_set` to drive it
            from a `threading.Event`.
    """

    def __init__(
        self,
        config: SimulationConfig,
        price_data: Mapping[str, pd.DataFrame],
        signal_generator: SignalGenerator | None = None,
        executor: TradeExecutor | None = None,
        metrics_calculator: MetricsCalculator | None = None,
        cancel_check: CancelCheck | None = None,
    ):
        self.config = config
        self.price_data = _clip_to_window(config, price_data)
        self.history = PriceHistory(self.price_data)
        self.calendar: List[dt.date] = build_trading_calendar(self.price_data)
        self.signal_generator = signal_generator or create_signal_generator(
            config.strategy, config.tickers
        )
        self.executor = executor or TradeExecutor()
        self.metrics_calculator = metrics_calculator or MetricsCalculator()
        self.cancel_check = cancel_check

    def run(self) -> SimulationResult:
        """Replay every calendar day and return the result."""
        config = self.config
        ledger = PortfolioLedger(config.initial_capital)
        risk_manager = RiskManager(config.risk_controls)
        risk_events: List[RiskEvent] = []

        logger.info(
            "Simulating {} on {} from {} to {} ({} trading days, capital {:.2f})",
            config.strategy,
            ",".join(config.tickers),
            config.start_date,
            config.end_date,
            len(self.calendar),
            config.initial_capital,
        )

        for day_index, date in enumerate(self.calendar):
            if self.cancel_check is not None and self.cancel_check():
                raise SimulationCancelled(date, day_index)

            prices = self.history.prices_on(date)
            context = DayContext(
                day_index=day_index,
                date=date,
                prices=prices,
                history=self.history,
                ledger=ledger,
            )

            for signal in self.signal_generator.generate_signals(context):
                self.executor.execute(signal, ledger, date, prices)

            ledger.mark_to_market(date, prices)

            event = risk_manager.check(ledger, date)
            if event is not None:
                risk_events.append(event)

        state = ledger.snapshot()
        trades = tuple(ledger.trades)
        metrics = self.metrics_calculator.compute(state, trades)

        logger.info(
            "Finished: final value {:.2f}, total return {:.2%}, {} trades, {} liquidations",
            state.final_value,
            metrics.total_return,
            len(trades),
            len(risk_events),
        )

        return SimulationResult(
            config=config,
            ledger=state,
            trades=trades,
            metrics=metrics,
            chart_series=tuple(build_chart_series(state)),
            risk_events=tuple(risk_events),
        )


def simulate(
    config: SimulationConfig,
    price_data: Mapping[str, pd.DataFrame],
    **kwargs,
) -> SimulationResult:
    """Shorthand for `SimulationEngine(config, price_data, **kwargs).run()`."""
    return SimulationEngine(config, price_data, **kwargs).run()


def run_simulation(
    config: SimulationConfig,
    provider: PriceDataProvider | None = None,
    settings: Settings | None = None,
    cancel_check: CancelCheck | None = None,
) -> SimulationResult:
    """
    Fetch prices (concurrently) and run a simulation end to end.

    Args:
        config: Simulation config.
        provider: Price source; defaults to the one named in settings.
        settings: Global settings; defaults to `get_settings()`.
        cancel_check: Optional cooperative cancellation hook.

    Raises:
        DataUnavailableError: If any ticker's data cannot be loaded.
        SimulationCancelled: If the hook stops the run.
    """
    settings = settings or get_settings()
    provider = provider or create_price_provider(settings.simulation, settings.yfinance)

    price_data = load_price_history(
        provider,
        config.tickers,
        config.start_date,
        config.end_date,
        max_workers=settings.simulation.fetch_workers,
    )
    return simulate(
        config,
        price_data,
        metrics_calculator=MetricsCalculator.from_settings(settings.metrics),
        cancel_check=cancel_check,
    )
