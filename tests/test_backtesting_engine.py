"""
Tests for the simulation engine.

This module tests the engine's ability to:
  - Replay the trading calendar and keep the ledger histories aligned.
  - Execute strategy signals and enforce the risk controls.
  - Fail the whole run when any ticker's data is unavailable.
  - Load price histories concurrently and honour cancellation.

Most scenarios use flat or hand-shaped synthetic prices with known outcomes;
a few integration tests use the seeded MockDataProvider.
"""

import datetime as dt
import itertools
import threading

import numpy as np
import pandas as pd
import pytest

from portfolio_sim.backtesting.engine import (
    DataUnavailableError,
    SimulationCancelled,
    SimulationEngine,
    create_price_provider,
    load_price_history,
    run_simulation,
    simulate,
)
from portfolio_sim.config.settings import (
    ConfigurationError,
    RiskControls,
    Settings,
    SimulationConfig,
    SimulationSettings,
)
from portfolio_sim.execution.ledger import TradeAction
from portfolio_sim.risk.risk_manager import MAX_DRAWDOWN_REASON, STOP_LOSS_REASON
from portfolio_sim.strategies.equal_weight import INITIAL_ALLOCATION_REASON
from portfolio_sim.venues.base import UnknownTickerError
from portfolio_sim.venues.csv_data_provider import CsvDataProvider
from portfolio_sim.venues.mock_data_provider import MockDataProvider

START = dt.date(2024, 1, 1)


def make_price_frame(closes, start: str = "2024-01-01") -> pd.DataFrame:
    """
    Canonical price frame over consecutive business days.

    Open/high/low equal the close; only the close matters to the engine.
    """
    closes = [float(c) for c in closes]
    return pd.DataFrame({
        'timestamp': pd.bdate_range(start, periods=len(closes)),
        'open_price': closes,
        'high_price': closes,
        'low_price': closes,
        'closing_price': closes,
        'volume': [1_000_000] * len(closes),
    })


def make_config(tickers, end=dt.date(2024, 3, 29), **overrides) -> SimulationConfig:
    params = dict(
        tickers=tuple(tickers),
        start_date=START,
        end_date=end,
        initial_capital=100_000,
        strategy="equal-weight",
    )
    params.update(overrides)
    return SimulationConfig(**params)


class RecordingProvider:
    """Serves fixed frames and records which threads fetched what."""

    def __init__(self, frames, fail=None, delay=None):
        self.frames = frames
        self.fail = fail or {}
        self.delay = delay
        self.threads = set()
        self.calls = []
        self._lock = threading.Lock()

    def fetch_daily_bars(self, ticker, start_date, end_date):
        with self._lock:
            self.threads.add(threading.get_ident())
            self.calls.append(ticker)
        if self.delay is not None:
            self.delay.wait(timeout=1.0)
        if ticker in self.fail:
            raise self.fail[ticker]
        return self.frames[ticker]


# ============================================================================
# Core day loop
# ============================================================================

def test_equal_weight_day_zero_allocation():
    """
    Scenario: $100,000, three tickers at constant $150 / $300 / $120.

    Expected day-0 BUYs (target 33,333.33 each):
      AAPL 222 @ 150 = 33,300; MSFT 111 @ 300 = 33,300; GOOGL 277 @ 120 = 33,240.
    Prices never move, so the portfolio value stays at $100,000.
    """
    frames = {
        "AAPL": make_price_frame([150] * 10),
        "MSFT": make_price_frame([300] * 10),
        "GOOGL": make_price_frame([120] * 10),
    }
    result = simulate(make_config(frames), frames)

    assert len(result.trades) == 3
    assert [t.quantity for t in result.trades] == [222, 111, 277]
    assert all(t.action is TradeAction.BUY for t in result.trades)
    assert all(t.reason == INITIAL_ALLOCATION_REASON for t in result.trades)
    assert all(t.value <= 100_000 / 3 for t in result.trades)
    assert all(t.date == START for t in result.trades)
    assert result.ledger.cash == pytest.approx(160.0)
    assert result.final_value == pytest.approx(100_000.0)
    assert result.metrics.total_return == pytest.approx(0.0)


def test_histories_are_aligned():
    frames = {"AAA": make_price_frame(np.linspace(100, 130, 30))}
    result = simulate(make_config(frames), frames)
    ledger = result.ledger

    assert ledger.portfolio_values[0] == 100_000.0
    assert len(ledger.dates) == 30
    assert len(ledger.daily_returns) == len(ledger.portfolio_values) - 1
    assert len(result.chart_series) == len(ledger.dates)
    for i, r in enumerate(ledger.daily_returns):
        prev, cur = ledger.portfolio_values[i], ledger.portfolio_values[i + 1]
        assert r == pytest.approx((cur - prev) / prev)


def test_valuation_identity_at_end():
    frames = {
        "AAA": make_price_frame(np.linspace(100, 140, 45)),
        "BBB": make_price_frame(np.linspace(50, 40, 45)),
    }
    result = simulate(make_config(frames), frames)

    last_date = result.ledger.dates[-1]
    closes = {t: float(f['closing_price'].iloc[-1]) for t, f in frames.items()}
    holdings = sum(q * closes[t] for t, q in result.ledger.positions.items())
    assert last_date == frames["AAA"]['timestamp'].iloc[-1].date()
    assert result.final_value == pytest.approx(result.ledger.cash + holdings)
    assert result.ledger.cash >= 0


def test_calendar_is_union_and_missing_price_counts_as_zero():
    """
    BBB has no bar on the second business day; its holding is valued at 0
    that day and recovers the next.
    """
    aaa = make_price_frame([100] * 5)
    bbb = make_price_frame([100] * 5).drop(index=1).reset_index(drop=True)
    frames = {"AAA": aaa, "BBB": bbb}

    result = simulate(make_config(frames, risk_controls=RiskControls(90, 25, 90)), frames)

    values = result.ledger.portfolio_values
    assert len(result.ledger.dates) == 5
    assert values[2] == pytest.approx(50_000.0)
    assert values[3] == pytest.approx(100_000.0)


def test_max_drawdown_liquidation():
    """
    Scenario: one ticker, fully allocated at $100, falls to 90 then 75.

    Expected: drawdown 25% > 20% on day 2 -> liquidation at $75,000; no SELL
    trade is recorded and the value stays flat afterwards.
    """
    frames = {"AAA": make_price_frame([100, 90, 75, 60, 80, 90])}
    result = simulate(make_config(frames), frames)

    assert len(result.risk_events) == 1
    event = result.risk_events[0]
    assert event.reason == MAX_DRAWDOWN_REASON
    assert event.date == dt.date(2024, 1, 3)
    assert event.portfolio_value == pytest.approx(75_000.0)
    assert [t.action for t in result.trades] == [TradeAction.BUY]
    assert result.ledger.positions == {}
    assert result.ledger.cash == pytest.approx(75_000.0)
    assert result.ledger.portfolio_values[-3:] == pytest.approx((75_000.0,) * 3)
    assert result.metrics.max_drawdown >= max(p.drawdown for p in result.chart_series) / 100 - 1e-12


def test_stop_loss_liquidation():
    frames = {"AAA": make_price_frame([100, 95, 90, 84, 84])}
    config = make_config(frames, risk_controls=RiskControls(max_drawdown_pct=50, stop_loss_pct=15))

    result = simulate(config, frames)

    assert [e.reason for e in result.risk_events] == [STOP_LOSS_REASON]
    assert result.risk_events[0].date == dt.date(2024, 1, 4)


def test_momentum_buys_once_on_day_twenty():
    frames = {"AAA": make_price_frame([100 + i for i in range(30)])}
    result = simulate(make_config(frames, strategy="momentum"), frames)

    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.action is TradeAction.BUY
    assert trade.date == frames["AAA"]['timestamp'].iloc[20].date()
    assert trade.reason.startswith("Strong momentum")
    assert trade.value <= 0.2 * 100_000


def test_frames_are_clipped_to_config_window():
    frames = {"AAA": make_price_frame([100] * 40, start="2023-12-01")}
    config = make_config(frames, end=dt.date(2024, 1, 10))

    result = simulate(config, frames)

    assert result.ledger.dates[0] == dt.date(2024, 1, 1)
    assert result.ledger.dates[-1] == dt.date(2024, 1, 10)


def test_result_frames():
    frames = {"AAA": make_price_frame([100, 101, 102])}
    result = simulate(make_config(frames), frames)

    assert list(result.chart_frame().columns) == ['date', 'value', 'drawdown', 'benchmark']
    assert len(result.trades_frame()) == 1
    curve = result.equity_curve()
    assert len(curve) == 3
    assert curve.index[0] == pd.Timestamp("2024-01-01")


def test_cagr_is_measured_from_initial_capital():
    """
    Scenario: 1,000 shares bought at $100, then +10% twice.

    Values are (seed 100,000, 100,000, 110,000, 121,000): three intervals.
    Annualising over three periods gives back the total return.
    """
    frames = {"AAA": make_price_frame([100, 110, 121])}
    result = simulate(make_config(frames), frames)

    assert result.metrics.total_return == pytest.approx(0.21)
    assert result.cagr(periods_per_year=3) == pytest.approx(0.21)
    assert result.cagr() == pytest.approx(1.21 ** (252 / 3) - 1)


# ============================================================================
# Data availability and cancellation
# ============================================================================

def test_missing_ticker_frame_raises():
    frames = {"AAA": make_price_frame([100] * 5)}
    with pytest.raises(DataUnavailableError) as exc_info:
        SimulationEngine(make_config(["AAA", "BBB"]), frames)
    assert exc_info.value.ticker == "BBB"


def test_ticker_without_bars_in_window_raises():
    frames = {
        "AAA": make_price_frame([100] * 5),
        "BBB": make_price_frame([100] * 5, start="2025-01-01"),
    }
    with pytest.raises(DataUnavailableError, match="BBB"):
        simulate(make_config(frames), frames)


def test_invalid_frame_raises():
    frames = {"AAA": make_price_frame([100] * 5).iloc[::-1].reset_index(drop=True)}
    with pytest.raises(DataUnavailableError):
        simulate(make_config(frames), frames)


def test_tz_aware_frame_raises():
    df = make_price_frame([100] * 5)
    df['timestamp'] = df['timestamp'].dt.tz_localize("UTC")
    frames = {"AAA": df}
    with pytest.raises(DataUnavailableError, match="tz-naive"):
        simulate(make_config(frames), frames)


def test_nan_risk_limit_is_rejected_before_simulation():
    with pytest.raises(ConfigurationError, match="max_drawdown_pct"):
        make_config(["AAA"], risk_controls=RiskControls(max_drawdown_pct=float("nan")))


def test_cancellation_stops_before_the_next_day():
    frames = {"AAA": make_price_frame([100] * 10)}
    counter = itertools.count()

    with pytest.raises(SimulationCancelled) as exc_info:
        simulate(make_config(frames), frames, cancel_check=lambda: next(counter) >= 3)

    assert exc_info.value.days_completed == 3
    assert exc_info.value.date == dt.date(2024, 1, 4)


def test_cancellation_via_threading_event():
    frames = {"AAA": make_price_frame([100] * 10)}
    stop = threading.Event()
    stop.set()
    with pytest.raises(SimulationCancelled):
        simulate(make_config(frames), frames, cancel_check=stop.is_set)


# ============================================================================
# Concurrent loading
# ============================================================================

def test_load_price_history_preserves_ticker_order():
    frames = {t: make_price_frame([100] * 3) for t in ["CCC", "AAA", "BBB"]}
    provider = RecordingProvider(frames)

    loaded = load_price_history(provider, ["CCC", "AAA", "BBB"], START, dt.date(2024, 1, 31))

    assert list(loaded) == ["CCC", "AAA", "BBB"]
    assert sorted(provider.calls) == ["AAA", "BBB", "CCC"]


def test_load_price_history_runs_fetches_concurrently():
    """Every fetch blocks until the event is set, so they must overlap on several threads."""
    release = threading.Event()
    frames = {t: make_price_frame([100] * 3) for t in ["AAA", "BBB", "CCC"]}
    provider = RecordingProvider(frames, delay=release)

    timer = threading.Timer(0.2, release.set)
    timer.start()
    try:
        load_price_history(provider, list(frames), START, dt.date(2024, 1, 31), max_workers=3)
    finally:
        timer.cancel()

    assert len(provider.threads) > 1


def test_load_price_history_wraps_provider_errors():
    frames = {"AAA": make_price_frame([100] * 3)}
    provider = RecordingProvider(frames, fail={"ZZZ": UnknownTickerError("ZZZ")})

    with pytest.raises(DataUnavailableError) as exc_info:
        load_price_history(provider, ["AAA", "ZZZ"], START, dt.date(2024, 1, 31))

    assert exc_info.value.ticker == "ZZZ"
    assert isinstance(exc_info.value.__cause__, UnknownTickerError)


def test_load_price_history_rejects_empty_result():
    provider = RecordingProvider({"AAA": make_price_frame([])})
    with pytest.raises(DataUnavailableError, match="No price data"):
        load_price_history(provider, ["AAA"], START, dt.date(2024, 1, 31))


# ============================================================================
# End to end
# ============================================================================

def test_run_simulation_with_mock_provider_is_deterministic():
    config = SimulationConfig.defaults()
    settings = Settings(simulation=SimulationSettings(provider="mock", mock_seed=7))

    first = run_simulation(config, settings=settings)
    second = run_simulation(config, provider=MockDataProvider(seed=7), settings=settings)

    assert first.trades == second.trades
    assert first.ledger.portfolio_values == second.ledger.portfolio_values
    assert first.metrics == second.metrics
    assert len(first.ledger.daily_returns) == len(first.ledger.portfolio_values) - 1


@pytest.mark.parametrize("strategy", ["equal-weight", "momentum", "mean-reversion"])
def test_every_strategy_runs_on_mock_data(strategy):
    config = make_config(["AAPL", "TSLA", "BTC"], end=dt.date(2024, 6, 28), strategy=strategy)
    result = run_simulation(config, provider=MockDataProvider(seed=42), settings=Settings())

    assert result.ledger.cash >= 0
    assert all(q > 0 for q in result.ledger.positions.values())
    assert result.metrics.max_drawdown >= 0
    assert 0.0 <= result.metrics.win_rate <= 1.0


def test_run_simulation_unknown_ticker_fails_whole_run():
    config = make_config(["AAPL", "NOPE"])
    with pytest.raises(DataUnavailableError) as exc_info:
        run_simulation(config, provider=MockDataProvider(), settings=Settings())
    assert exc_info.value.ticker == "NOPE"


def test_create_price_provider(tmp_path):
    assert isinstance(create_price_provider(SimulationSettings(provider="mock")), MockDataProvider)
    csv_provider = create_price_provider(SimulationSettings(provider="csv", data_dir=tmp_path))
    assert isinstance(csv_provider, CsvDataProvider)
