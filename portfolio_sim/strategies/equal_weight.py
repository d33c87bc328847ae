"""
Equal-weight allocation with periodic drift rebalancing.

**Rules**:
  - Day 0: BUY every ticker at weight 1/N ("initial allocation").
  - Every `rebalance_interval` days after that (day 20, 40, ...): compute each
    ticker's current weight = position value / total portfolio value. If it
    drifts from 1/N by more than `drift_tolerance`, emit SELL when over-weight
    or BUY when under-weight, both tagged with weight 1/N.

A rebalancing SELL closes the whole position (the executor never sells
partially). Re-entry happens through a BUY on a later rebalance day; there is
no same-day sell-then-buy swap.

Tickers without a close today are skipped on both paths.
"""

from dataclasses import dataclass
from typing import List, Sequence

from portfolio_sim.execution.ledger import TradeAction
from portfolio_sim.strategies.base import DayContext, Signal

INITIAL_ALLOCATION_REASON = "Initial equal weight allocation"
REBALANCE_REASON = "Rebalancing to equal weights"


@dataclass(frozen=True)
class EqualWeightParams:
    """
    Attributes:
        rebalance_interval: Rebalance on day indices that are multiples of this.
        drift_tolerance: Absolute weight deviation that triggers a rebalance.
    """
    rebalance_interval: int = 20
    drift_tolerance: float = 0.05

    def __post_init__(self):
        if self.rebalance_interval <= 0:
            raise ValueError(f"rebalance_interval must be positive, got: {self.rebalance_interval}")
        if self.drift_tolerance < 0:
            raise ValueError(f"drift_tolerance must be non-negative, got: {self.drift_tolerance}")


class EqualWeightStrategy:
    """Hold every ticker at 1/N of portfolio value."""

    def __init__(self, tickers: Sequence[str], params: EqualWeightParams | None = None):
        if not tickers:
            raise ValueError("EqualWeightStrategy needs at least one ticker")
        self.tickers = list(tickers)
        self.params = params or EqualWeightParams()
        self.target_weight = 1.0 / len(self.tickers)

    def generate_signals(self, context: DayContext) -> List[Signal]:
        if context.day_index == 0:
            return [
                Signal(ticker, TradeAction.BUY, INITIAL_ALLOCATION_REASON, self.target_weight)
                for ticker in self.tickers
                if ticker in context.prices
            ]

        if context.day_index % self.params.rebalance_interval != 0:
            return []

        total_value = context.ledger.total_value
        if total_value <= 0:
            return []

        signals = []
        for ticker in self.tickers:
            price = context.prices.get(ticker)
            if price is None:
                continue

            current_weight = context.ledger.position(ticker) * price / total_value
            drift = current_weight - self.target_weight
            if abs(drift) > self.params.drift_tolerance:
                action = TradeAction.SELL if drift > 0 else TradeAction.BUY
                signals.append(Signal(ticker, action, REBALANCE_REASON, self.target_weight))

        return signals
