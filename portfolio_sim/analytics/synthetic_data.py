"""
Synthetic market data generators.

This module provides reproducible price paths for the mock price provider and
for tests:
  - Geometric Brownian Motion (GBM): trending, compounding equity-like behaviour.
  - OHLCV bars derived from a close path (open = previous close, jittered high/low).

Every generator takes an explicit seed or `numpy.random.Generator` instead of
touching numpy's global random state, so concurrent fetches for different
tickers cannot interfere with each other.
"""

import numpy as np
import pandas as pd


def make_rng(seed: int | None = None, rng: np.random.Generator | None = None) -> np.random.Generator:
    """Return `rng` if given, otherwise a fresh Generator seeded with `seed`."""
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def generate_gbm_paths(
    initial_price: float,
    drift: float,
    volatility: float,
    n_steps: int,
    dt: float = 1 / 252,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> pd.Series:
    """
    Generate a price path using Geometric Brownian Motion (GBM).

    **Conceptual**: GBM is the classic model for equity prices. Log returns are
    normally distributed and independent, with constant drift (μ) and
    volatility (σ). It simulates "normal" market conditions with a steady drift
    plus noise.

    **Mathematical**: The discrete update for each step is:
        S_{t+1} = S_t * exp((μ - 0.5 * σ^2) * dt + σ * sqrt(dt) * Z_t)
    where Z_t ~ N(0, 1). The (μ - 0.5 * σ^2) term is the Itô correction.

    **Units**: drift and volatility are per unit of `dt`. With the default
    dt = 1/252 they are annualised; pass dt = 1.0 to give daily parameters
    directly (as the mock provider does).

    **Edge cases**:
    - n_steps = 0 → returns just [initial_price].
    - volatility = 0 → deterministic exponential path.

    Args:
        initial_price: Starting price of the asset (must be positive).
        drift: Drift rate per unit time.
        volatility: Volatility per unit time.
        n_steps: Number of steps to simulate.
        dt: Time increment per step.
        seed: Random seed for reproducibility (ignored when rng is given).
        rng: Optional numpy Generator to draw from.

    Returns:
        pandas Series of length n_steps + 1 indexed by step number.
    """
    generator = make_rng(seed, rng)

    prices = np.zeros(n_steps + 1)
    prices[0] = initial_price

    # Z_t ~ N(0, 1)
    Z = generator.standard_normal(n_steps)

    drift_term = (drift - 0.5 * volatility**2) * dt
    diffusion_term = volatility * np.sqrt(dt) * Z

    for t in range(n_steps):
        prices[t + 1] = prices[t] * np.exp(drift_term + diffusion_term[t])

    return pd.Series(prices, index=range(n_steps + 1), name='price')


def generate_ohlcv_bars(
    dates: pd.DatetimeIndex,
    initial_price: float,
    daily_drift: float,
    daily_volatility: float,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
    max_wick: float = 0.02,
) -> pd.DataFrame:
    """
    Generate canonical OHLCV bars for the given trading dates.

    **Functionally**:
      - Closes follow a GBM path with daily parameters starting at `initial_price`.
      - Each bar opens at the previous close (the first bar opens at `initial_price`).
      - High is max(open, close) inflated by up to `max_wick`; low is
        min(open, close) deflated by up to `max_wick`.
      - Volume is a uniform integer in [1,000,000, 11,000,000).
      - Prices are rounded to cents.

    Args:
        dates: Ascending trading dates, one bar per date.
        initial_price: Opening price of the first bar.
        daily_drift: Daily drift of the close path.
        daily_volatility: Daily volatility of the close path.
        seed: Random seed (ignored when rng is given).
        rng: Optional numpy Generator.
        max_wick: Maximum fractional distance of high/low beyond the body.

    Returns:
        DataFrame with columns timestamp, open_price, high_price, low_price,
        closing_price, volume, sorted ascending.
    """
    generator = make_rng(seed, rng)
    n_bars = len(dates)

    path = generate_gbm_paths(
        initial_price=initial_price,
        drift=daily_drift,
        volatility=daily_volatility,
        n_steps=n_bars,
        dt=1.0,
        rng=generator,
    ).to_numpy()

    opens = path[:-1]
    closes = path[1:]
    highs = np.maximum(opens, closes) * (1 + generator.random(n_bars) * max_wick)
    lows = np.minimum(opens, closes) * (1 - generator.random(n_bars) * max_wick)
    volumes = generator.integers(1_000_000, 11_000_000, size=n_bars)

    return pd.DataFrame({
        'timestamp': pd.DatetimeIndex(dates).normalize(),
        'open_price': np.round(opens, 2),
        'high_price': np.round(highs, 2),
        'low_price': np.round(lows, 2),
        'closing_price': np.round(closes, 2),
        'volume': volumes,
    })
