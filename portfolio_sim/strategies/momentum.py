"""
Trailing-return momentum strategy.

**Conceptual**: Assets that have risen strongly over the recent window tend to
keep rising for a while; assets that have fallen tend to keep falling. The
strategy enters on strong positive momentum and exits on negative momentum.

**Rules** (active from day index `lookback` onwards):
  - window = the ticker's last `lookback` closes up to and including today.
    Fewer than `lookback` closes, or no bar today: skip the ticker.
  - momentum = (window[-1] - window[0]) / window[0]
  - momentum > +threshold and no position -> BUY at `entry_weight`.
  - momentum < -threshold and a position  -> SELL (full close).
"""

from dataclasses import dataclass
from typing import List, Sequence

from portfolio_sim.execution.ledger import TradeAction
from portfolio_sim.strategies.base import DayContext, Signal


@dataclass(frozen=True)
class MomentumParams:
    """
    Attributes:
        lookback: Window length in bars; also the first active day index.
        threshold: Absolute momentum needed to act (0.05 = 5%).
        entry_weight: Target weight of a new position.
    """
    lookback: int = 20
    threshold: float = 0.05
    entry_weight: float = 0.2

    def __post_init__(self):
        if self.lookback < 2:
            raise ValueError(f"lookback must be >= 2, got: {self.lookback}")
        if not 0 < self.entry_weight <= 1:
            raise ValueError(f"entry_weight must be in (0, 1], got: {self.entry_weight}")


def compute_momentum(closes) -> float:
    """Fractional change from the first to the last close of the window."""
    return (closes[-1] - closes[0]) / closes[0]


class MomentumStrategy:
    """Buy strong trailing winners, exit on negative momentum."""

    def __init__(self, tickers: Sequence[str], params: MomentumParams | None = None):
        self.tickers = list(tickers)
        self.params = params or MomentumParams()

    def generate_signals(self, context: DayContext) -> List[Signal]:
        if context.day_index < self.params.lookback:
            return []

        signals = []
        for ticker in self.tickers:
            closes = context.history.recent_closes(ticker, context.date, self.params.lookback)
            if closes is None:
                continue

            momentum = compute_momentum(closes)
            holding = context.ledger.has_position(ticker)

            if momentum > self.params.threshold and not holding:
                signals.append(Signal(
                    ticker,
                    TradeAction.BUY,
                    f"Strong momentum: {momentum * 100:.1f}%",
                    self.params.entry_weight,
                ))
            elif momentum < -self.params.threshold and holding:
                signals.append(Signal(
                    ticker,
                    TradeAction.SELL,
                    f"Negative momentum: {momentum * 100:.1f}%",
                ))

        return signals
