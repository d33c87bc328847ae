"""
Signal generator interface.

**Conceptual**: A strategy looks at one trading day and proposes trades. It
receives a `DayContext` (day index, date, today's closes, the full price
history and read access to the ledger) and returns an ordered list of
`Signal`s. The engine hands each signal to the `TradeExecutor` in emission
order; the strategy never touches cash or positions itself.

**Why signals instead of orders?**
  - A signal is a proposal ("buy AAPL at 20% weight"), not a fill. Sizing,
    cash checks and integer share rounding live in the executor, so the three
    strategies stay small and comparable.
  - Signals that cannot be filled (no cash, zero shares) are simply dropped by
    the executor. That is routine behaviour, not an error.

**Teaching note**: `SignalGenerator` is a Protocol. Strategies are plain
classes with a `generate_signals` method and hold no state across days beyond
what the ledger already records.
"""

import datetime as dt
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Mapping, Optional, Protocol

from portfolio_sim.data.price_history import PriceHistory
from portfolio_sim.execution.ledger import TradeAction

if TYPE_CHECKING:
    from portfolio_sim.execution.ledger import PortfolioLedger


@dataclass(frozen=True)
class Signal:
    """
    A proposed trade for one ticker on one day.

    Attributes:
        ticker: Instrument symbol.
        action: BUY or SELL. SELL always means "close the whole position".
        reason: Human-readable explanation, copied onto the resulting Trade.
        weight: Target fraction of total portfolio value for BUYs, in (0, 1].
            None lets the executor fall back to its cash-based sizing.
    """
    ticker: str
    action: TradeAction
    reason: str
    weight: Optional[float] = None

    def __post_init__(self):
        if self.weight is not None and not 0 < self.weight <= 1:
            raise ValueError(f"Signal weight must be in (0, 1], got: {self.weight}")


@dataclass(frozen=True)
class DayContext:
    """
    Everything a strategy may look at on one simulated day.

    Attributes:
        day_index: 0-based position of `date` in the trading calendar.
        date: Current trading date.
        prices: Today's closes for tickers that have a bar today.
        history: Full price history (strategies only look back from `date`).
        ledger: The run's ledger. Strategies must treat it as read-only.
    """
    day_index: int
    date: dt.date
    prices: Mapping[str, float]
    history: PriceHistory
    ledger: "PortfolioLedger"


class SignalGenerator(Protocol):
    """
    Protocol for per-day signal generation.

    **Example implementation**:
        >>> class BuyEverythingOnce:
        ...     def generate_signals(self, context):
        ...         if context.day_index != 0:
        ...             return []
        ...         return [Signal(t, TradeAction.BUY, "first day") for t in context.prices]
    """

    def generate_signals(self, context: DayContext) -> List[Signal]:
        """
        Return today's signals, in the order they should be executed.

        Args:
            context: The current day's view of prices and portfolio.

        Returns:
            Possibly empty list of signals.
        """
        ...
