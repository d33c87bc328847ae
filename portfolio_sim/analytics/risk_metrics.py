"""
Risk and performance metric functions.

Pure functions over pandas Series (equity curves and daily returns) and the
trade log. `portfolio_sim.analytics.performance.MetricsCalculator` combines them
into the end-of-run `PerformanceMetrics`.

Conventions used throughout:
  - Returns and drawdowns are fractions (0.05 = 5%).
  - Drawdowns are POSITIVE numbers: (peak - value) / peak.
  - Standard deviations are POPULATION standard deviations (ddof=0).
"""

from typing import Sequence

import numpy as np
import pandas as pd

from portfolio_sim.execution.ledger import Trade, TradeAction

VOLATILITY_TOLERANCE = 1e-12


def compute_total_return(equity_curve: pd.Series) -> float:
    """
    Overall return from the first to the last value of the curve.

    **Mathematical**:
        Total Return = (E_T - E_0) / E_0

    **Edge cases**:
    - A single-point curve returns 0.

    Args:
        equity_curve: Portfolio values, first element is the initial capital.

    Returns:
        Total return as a fraction (0.25 = +25%).
    """
    initial_equity = equity_curve.iloc[0]
    final_equity = equity_curve.iloc[-1]
    return (final_equity - initial_equity) / initial_equity


def compute_cagr(equity_curve: pd.Series, periods_per_year: int = 252) -> float:
    """
    Compound annual growth rate.

    **Mathematical**: CAGR = (E_T / E_0)^(periods_per_year / n) - 1, n = number
    of intervals in the curve.

    Returns 0 for curves with fewer than two points or non-positive endpoints.
    """
    initial_equity = equity_curve.iloc[0]
    final_equity = equity_curve.iloc[-1]
    n_periods = len(equity_curve) - 1

    if n_periods <= 0 or initial_equity <= 0 or final_equity <= 0:
        return 0.0

    return (final_equity / initial_equity) ** (periods_per_year / n_periods) - 1.0


def compute_annualized_volatility(
    returns: pd.Series,
    periods_per_year: int = 252,
) -> float:
    """
    Annualised volatility of periodic returns.

    **Mathematical**:
        σ_annualized = σ_population * sqrt(periods_per_year)

    **Edge cases**:
    - Empty series returns 0.
    - Constant returns give 0.

    Args:
        returns: Daily (or other periodic) returns.
        periods_per_year: Periods per year (252 for daily).

    Returns:
        Annualised volatility as a fraction.
    """
    clean_returns = returns.dropna()
    if clean_returns.empty:
        return 0.0
    return float(clean_returns.std(ddof=0) * np.sqrt(periods_per_year))


def compute_sharpe_ratio(
    returns: pd.Series,
    risk_free_rate: float = 0.02,
    periods_per_year: int = 252,
) -> float:
    """
    Sharpe ratio on a per-period basis.

    **Mathematical**:
        Sharpe = (mean(r) - r_f / periods_per_year) / σ_population(r)

    This is the daily ratio, not annualised: numerator and denominator are
    both per-period quantities.

    **Edge cases**:
    - No returns, or volatility within a tiny tolerance of 0, returns 0.

    Args:
        returns: Periodic returns.
        risk_free_rate: Annual risk-free rate (0.02 = 2%).
        periods_per_year: Periods per year.

    Returns:
        Sharpe ratio as a scalar.
    """
    clean_returns = returns.dropna()
    if clean_returns.empty:
        return 0.0

    vol_per_period = compute_annualized_volatility(clean_returns, periods_per_year) / np.sqrt(periods_per_year)
    if vol_per_period < VOLATILITY_TOLERANCE or np.isnan(vol_per_period):
        return 0.0

    excess_return = clean_returns.mean() - risk_free_rate / periods_per_year
    return float(excess_return / vol_per_period)


def compute_drawdown_series(equity_curve: pd.Series) -> pd.Series:
    """
    Drawdown from the running peak at every point of the curve.

    **Mathematical**: drawdown_t = (peak_t - equity_t) / peak_t, with
    peak_t = max(equity_0, ..., equity_t).

    Returns:
        Series of drawdowns (>= 0), same index as the input.
    """
    cumulative_peak = equity_curve.cummax()
    return (cumulative_peak - equity_curve) / cumulative_peak


def compute_max_drawdown(equity_curve: pd.Series) -> float:
    """
    Worst peak-to-trough decline over the whole curve, as a positive fraction.

    Returns 0 for an empty or monotonically rising curve.
    """
    if equity_curve.empty:
        return 0.0
    return float(max(compute_drawdown_series(equity_curve).max(), 0.0))


def compute_beta(
    returns: pd.Series,
    benchmark_returns: pd.Series,
    default: float = 1.0,
) -> float:
    """
    Beta of portfolio returns against benchmark returns.

    **Mathematical**: Beta = Cov(r_p, r_b) / Var(r_b), population moments.

    **Edge cases**:
    - Different lengths, fewer than two points, or a constant benchmark
      return `default`.

    Args:
        returns: Portfolio periodic returns.
        benchmark_returns: Benchmark periodic returns, aligned 1:1 by position.
        default: Value returned when beta is undefined.
    """
    strat_ret = np.asarray(returns, dtype=float)
    bench_ret = np.asarray(benchmark_returns, dtype=float)

    if len(strat_ret) != len(bench_ret) or len(strat_ret) < 2:
        return default

    benchmark_variance = bench_ret.var()
    if benchmark_variance < VOLATILITY_TOLERANCE ** 2:
        return default

    covariance = ((strat_ret - strat_ret.mean()) * (bench_ret - bench_ret.mean())).mean()
    return float(covariance / benchmark_variance)


def compute_jensen_alpha(
    returns: pd.Series,
    benchmark_returns: pd.Series,
    beta: float,
    risk_free_rate: float = 0.02,
    periods_per_year: int = 252,
) -> float:
    """
    Annualised Jensen's alpha.

    **Mathematical**:
        α_daily = mean(r_p) - [r_f/N + β (mean(r_b) - r_f/N)]
        α = α_daily * N
    """
    rf_per_period = risk_free_rate / periods_per_year
    expected = rf_per_period + beta * (float(np.mean(benchmark_returns)) - rf_per_period)
    return float((float(np.mean(returns)) - expected) * periods_per_year)


def compute_win_rate(trades: Sequence[Trade]) -> float:
    """
    Share of SELL trades that closed above the ticker's first earlier BUY.

    For each SELL, the reference BUY is the earliest BUY of the same ticker
    dated strictly before the SELL. It is not lot-matched, so after several
    round trips every SELL is compared with the very first entry price.
    SELLs without an earlier BUY count as losses.

    Returns:
        Winning SELLs / all SELLs, or 0 when there are no SELLs.
    """
    sells = [t for t in trades if t.action is TradeAction.SELL]
    if not sells:
        return 0.0

    wins = 0
    for sell in sells:
        first_buy = next(
            (
                t for t in trades
                if t.ticker == sell.ticker and t.action is TradeAction.BUY and t.date < sell.date
            ),
            None,
        )
        if first_buy is not None and sell.price > first_buy.price:
            wins += 1

    return wins / len(sells)
