"""
Mean-reversion strategy.

**Conceptual**: Prices that stretch far below their recent average are bought
in the expectation that they snap back; positions are closed once the price
stretches far above the average.

**Rules** (same activation gate and window as momentum):
  - deviation = (today's close - mean(window)) / mean(window)
  - deviation < -threshold and no position -> BUY at `entry_weight` ("Oversold").
  - deviation > +threshold and a position  -> SELL ("Overbought").

The reason strings report the signed deviation, so an oversold signal reads
e.g. "Oversold: -12.3% below average".
"""

from dataclasses import dataclass
from typing import List, Sequence

from portfolio_sim.execution.ledger import TradeAction
from portfolio_sim.strategies.base import DayContext, Signal


@dataclass(frozen=True)
class MeanReversionParams:
    lookback: int = 20
    threshold: float = 0.10
    entry_weight: float = 0.2

    def __post_init__(self):
        if self.lookback < 2:
            raise ValueError(f"lookback must be >= 2, got: {self.lookback}")
        if not 0 < self.entry_weight <= 1:
            raise ValueError(f"entry_weight must be in (0, 1], got: {self.entry_weight}")


class MeanReversionStrategy:
    """Buy deep dips below the trailing mean, sell stretches above it."""

    def __init__(self, tickers: Sequence[str], params: MeanReversionParams | None = None):
        self.tickers = list(tickers)
        self.params = params or MeanReversionParams()

    def generate_signals(self, context: DayContext) -> List[Signal]:
        if context.day_index < self.params.lookback:
            return []

        signals = []
        for ticker in self.tickers:
            closes = context.history.recent_closes(ticker, context.date, self.params.lookback)
            if closes is None:
                continue

            mean = float(closes.mean())
            deviation = (float(closes[-1]) - mean) / mean
            holding = context.ledger.has_position(ticker)

            if deviation < -self.params.threshold and not holding:
                signals.append(Signal(
                    ticker,
                    TradeAction.BUY,
                    f"Oversold: {deviation * 100:.1f}% below average",
                    self.params.entry_weight,
                ))
            elif deviation > self.params.threshold and holding:
                signals.append(Signal(
                    ticker,
                    TradeAction.SELL,
                    f"Overbought: {deviation * 100:.1f}% above average",
                ))

        return signals
