"""
Signal execution against the portfolio ledger.

**Financial assumptions**:
  - Fills happen at the day's close, in whole shares (floor), instantly.
  - No slippage, fees, taxes or partial fills.
  - No shorting and no borrowing: a BUY is only filled if the cash is there.

**Sizing (BUY)**:
  - With a weight: target notional = weight * total portfolio value, where
    total value is the most recent mark (yesterday's close, or the initial
    capital on day 0).
  - Without a weight: min(20% of available cash, 10,000).
  - quantity = floor(target / price); filled only if quantity > 0 and
    quantity * price <= cash.

**SELL** always closes the full position; selling a ticker that is not held
does nothing.

Unfillable signals are dropped silently. That is the normal outcome when a
strategy asks for more than the cash allows, not an error.
"""

import datetime as dt
import math
from dataclasses import dataclass
from typing import Mapping, Optional

from portfolio_sim.execution.ledger import PortfolioLedger, Trade, TradeAction
from portfolio_sim.strategies.base import Signal
from portfolio_sim.utils.logger import logger


@dataclass(frozen=True)
class ExecutionPolicy:
    """
    Sizing used for BUY signals that carry no weight.

    Attributes:
        fallback_cash_fraction: Fraction of available cash to deploy.
        fallback_max_notional: Cap on that notional.
    """
    fallback_cash_fraction: float = 0.2
    fallback_max_notional: float = 10_000.0


class TradeExecutor:
    """
    Stateless converter from `Signal` to ledger mutation.

    **Example usage**:
        >>> ledger = PortfolioLedger(100_000)
        >>> executor = TradeExecutor()
        >>> signal = Signal("AAPL", TradeAction.BUY, "test", weight=0.5)
        >>> executor.execute(signal, ledger, dt.date(2024, 1, 2), {"AAPL": 150.0}).quantity
        333
    """

    def __init__(self, policy: ExecutionPolicy | None = None):
        self.policy = policy or ExecutionPolicy()

    def buy_quantity(self, signal: Signal, ledger: PortfolioLedger, price: float) -> int:
        """Whole shares a BUY signal would purchase at `price` (before the cash check)."""
        if signal.weight is not None:
            target_notional = signal.weight * ledger.total_value
        else:
            target_notional = min(
                self.policy.fallback_cash_fraction * ledger.cash,
                self.policy.fallback_max_notional,
            )
        if target_notional <= 0:
            return 0
        return math.floor(target_notional / price)

    def execute(
        self,
        signal: Signal,
        ledger: PortfolioLedger,
        date: dt.date,
        prices: Mapping[str, float],
    ) -> Optional[Trade]:
        """
        Apply one signal to the ledger.

        Args:
            signal: The strategy's proposal.
            ledger: Ledger to mutate.
            date: Execution date.
            prices: Today's closes. A signal for a ticker without a price is dropped.

        Returns:
            The Trade appended to the log, or None if the signal was not filled.
        """
        price = prices.get(signal.ticker)
        if price is None or not price > 0:
            logger.trace("Dropping {} {}: no price on {}", signal.action.value, signal.ticker, date)
            return None

        if signal.action is TradeAction.BUY:
            quantity = self.buy_quantity(signal, ledger, price)
            if quantity <= 0 or quantity * price > ledger.cash:
                logger.trace(
                    "Skipping BUY {} on {}: quantity={} cash={:.2f}",
                    signal.ticker, date, quantity, ledger.cash,
                )
                return None
            trade = ledger.record_buy(date, signal.ticker, quantity, price, signal.reason)
        else:
            trade = ledger.record_sell(date, signal.ticker, price, signal.reason)
            if trade is None:
                return None

        logger.debug(
            "{} {} {} @ {:.2f} = {:.2f} ({})",
            trade.action.value, trade.quantity, trade.ticker, trade.price, trade.value, trade.reason,
        )
        return trade
