"""
End-of-run performance metrics and the chart series.

**Conceptual**: Once the daily loop is finished the ledger holds the full
valuation history and the trade log. `MetricsCalculator.compute()` turns that
into a `PerformanceMetrics` record exactly once; `build_chart_series()` derives
the per-day {date, value, drawdown %, benchmark} points used for plotting.

**Alpha and beta**: without a benchmark they are the configured constants
(0.02 and 1.1 by default). Passing `benchmark_returns` switches to a
covariance beta and an annualised Jensen alpha; the record's shape does not
change.

**Benchmark line**: the chart's benchmark is a synthetic straight line
initial_capital * (1 + 0.0003 * day_index), not a market index.
"""

import datetime as dt
from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from portfolio_sim.analytics.risk_metrics import (
    compute_annualized_volatility,
    compute_beta,
    compute_jensen_alpha,
    compute_max_drawdown,
    compute_sharpe_ratio,
    compute_total_return,
    compute_win_rate,
)
from portfolio_sim.config.settings import MetricsSettings
from portfolio_sim.execution.ledger import LedgerState, Trade

BENCHMARK_DAILY_GROWTH = 0.0003


@dataclass(frozen=True)
class PerformanceMetrics:
    """
    Summary statistics of one run. All values are fractions.

    Attributes:
        total_return: (final - initial) / initial.
        sharpe_ratio: Daily Sharpe ratio (see `compute_sharpe_ratio`).
        max_drawdown: Worst peak-to-trough decline.
        win_rate: Winning SELLs / all SELLs.
        volatility: Annualised population volatility of daily returns.
        alpha: Placeholder constant, or Jensen alpha when a benchmark is given.
        beta: Placeholder constant, or covariance beta when a benchmark is given.
    """
    total_return: float
    sharpe_ratio: float
    max_drawdown: float
    win_rate: float
    volatility: float
    alpha: float
    beta: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ChartPoint:
    """One day of the chart series. `drawdown` is in percent (12.5 = 12.5%)."""
    date: dt.date
    value: float
    drawdown: float
    benchmark: float


class MetricsCalculator:
    """
    Computes `PerformanceMetrics` from a finished ledger.

    **Example usage**:
        >>> calculator = MetricsCalculator()
        >>> metrics = calculator.compute(result.ledger, result.trades)
        >>> round(metrics.total_return, 4)
        0.0831
    """

    def __init__(
        self,
        alpha: float = 0.02,
        beta: float = 1.1,
        risk_free_rate: float = 0.02,
        trading_days: int = 252,
    ):
        self.alpha = alpha
        self.beta = beta
        self.risk_free_rate = risk_free_rate
        self.trading_days = trading_days

    @classmethod
    def from_settings(cls, settings: MetricsSettings) -> "MetricsCalculator":
        return cls(
            alpha=settings.alpha,
            beta=settings.beta,
            risk_free_rate=settings.risk_free_rate,
            trading_days=settings.trading_days,
        )

    def compute(
        self,
        ledger: LedgerState,
        trades: Sequence[Trade],
        benchmark_returns: Optional[Sequence[float]] = None,
    ) -> PerformanceMetrics:
        """
        Derive the run's metrics.

        Args:
            ledger: Final ledger snapshot.
            trades: Full trade log.
            benchmark_returns: Optional daily benchmark returns aligned with
                `ledger.daily_returns`.
        """
        values = pd.Series(ledger.portfolio_values, dtype=float)
        returns = pd.Series(ledger.daily_returns, dtype=float)

        alpha, beta = self.alpha, self.beta
        if benchmark_returns is not None and len(benchmark_returns) == len(returns) and len(returns) > 1:
            bench = pd.Series(list(benchmark_returns), dtype=float)
            beta = compute_beta(returns, bench, default=self.beta)
            alpha = compute_jensen_alpha(
                returns, bench, beta, self.risk_free_rate, self.trading_days
            )

        return PerformanceMetrics(
            total_return=float(compute_total_return(values)),
            sharpe_ratio=compute_sharpe_ratio(returns, self.risk_free_rate, self.trading_days),
            max_drawdown=compute_max_drawdown(values),
            win_rate=compute_win_rate(trades),
            volatility=compute_annualized_volatility(returns, self.trading_days),
            alpha=alpha,
            beta=beta,
        )


def build_chart_series(ledger: LedgerState) -> List[ChartPoint]:
    """
    Per-day chart points from the valuation history.

    For day i: value = portfolio_values[i + 1], drawdown is measured from the
    peak of portfolio_values[0..i + 1] (seed included), and the benchmark is
    initial * (1 + 0.0003 * i).
    """
    values = np.asarray(ledger.portfolio_values, dtype=float)
    initial = float(values[0])
    peaks = np.maximum.accumulate(values)

    points = []
    for i, date in enumerate(ledger.dates):
        value = float(values[i + 1])
        peak = float(peaks[i + 1])
        drawdown = (peak - value) / peak * 100 if peak > 0 else 0.0
        points.append(ChartPoint(
            date=date,
            value=value,
            drawdown=drawdown,
            benchmark=initial * (1 + BENCHMARK_DAILY_GROWTH * i),
        ))
    return points


def chart_series_to_frame(points: Sequence[ChartPoint]) -> pd.DataFrame:
    """Chart series as a DataFrame with columns date, value, drawdown, benchmark."""
    return pd.DataFrame(
        [asdict(p) for p in points],
        columns=['date', 'value', 'drawdown', 'benchmark'],
    )
