"""
Portfolio ledger: cash, positions, valuation history and the trade log.

**Conceptual**: The ledger is the single mutable state object of a simulation
run. It is created once per run and owned by that run only; there is no
module-level or shared ledger, so concurrent simulations never interfere.

**State**:
  - cash: float. Never driven negative by the executor (buys are checked
    against available cash).
  - positions: ticker -> integer share count. A ticker with no holding is
    ABSENT, never stored as 0.
  - portfolio_values: valuation history; element 0 is the initial capital,
    recorded before any trading day.
  - dates: one entry per mark-to-market (aligned with portfolio_values[1:]).
  - daily_returns: (v[i+1] - v[i]) / v[i], aligned with portfolio_values[1:].
  - trades: append-only trade log.

**Writers**: Only `TradeExecutor` (via `record_buy`/`record_sell`), the daily
`mark_to_market` step and risk liquidation mutate a ledger. Strategies read it.

**Teaching note**: Keeping the history as plain lists (rather than a growing
DataFrame) keeps the daily loop O(1) per append. The lists are converted to
pandas objects once, at the end, for metrics and output.
"""

import datetime as dt
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple


class TradeAction(str, Enum):
    """Direction of a signal or trade."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Trade:
    """
    One executed trade. Immutable once appended to the trade log.

    Attributes:
        id: Deterministic id "{date}-{ticker}-{sequence}" (1-based log position).
        date: Trading date of execution.
        ticker: Instrument symbol.
        action: BUY or SELL.
        quantity: Whole shares, always > 0.
        price: Execution price (that day's close).
        value: quantity * price.
        reason: Human-readable reason carried over from the signal.
    """
    id: str
    date: dt.date
    ticker: str
    action: TradeAction
    quantity: int
    price: float
    value: float
    reason: str


@dataclass(frozen=True)
class ValuationPoint:
    """Result of one mark-to-market: the day's total value and its return."""
    date: dt.date
    value: float
    daily_return: float


@dataclass(frozen=True)
class LedgerState:
    """
    Read-only snapshot of a ledger, returned as part of a simulation result.

    Attributes:
        cash: Final cash balance.
        positions: Final open positions (ticker -> shares).
        portfolio_values: Full valuation history including the seed value.
        dates: Valuation dates (one per trading day).
        daily_returns: Daily fractional returns.
    """
    cash: float
    positions: Dict[str, int]
    portfolio_values: Tuple[float, ...]
    dates: Tuple[dt.date, ...]
    daily_returns: Tuple[float, ...]

    @property
    def initial_value(self) -> float:
        return self.portfolio_values[0]

    @property
    def final_value(self) -> float:
        return self.portfolio_values[-1]


@dataclass
class PortfolioLedger:
    """
    Mutable cash/position ledger for one simulation run.

    **Example usage**:
        >>> ledger = PortfolioLedger(initial_capital=10_000)
        >>> ledger.record_buy(dt.date(2024, 1, 2), "AAPL", 10, 150.0, "test")
        Trade(id='2024-01-02-AAPL-1', ...)
        >>> ledger.cash
        8500.0
        >>> ledger.mark_to_market(dt.date(2024, 1, 2), {"AAPL": 155.0}).value
        10050.0
    """
    initial_capital: float
    cash: float = field(init=False)
    positions: Dict[str, int] = field(init=False, default_factory=dict)
    portfolio_values: List[float] = field(init=False, default_factory=list)
    dates: List[dt.date] = field(init=False, default_factory=list)
    daily_returns: List[float] = field(init=False, default_factory=list)
    trades: List[Trade] = field(init=False, default_factory=list)

    def __post_init__(self):
        if not self.initial_capital > 0:
            raise ValueError(
                f"initial_capital must be positive, got: {self.initial_capital}"
            )
        self.initial_capital = float(self.initial_capital)
        self.cash = self.initial_capital
        self.portfolio_values.append(self.initial_capital)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def total_value(self) -> float:
        """Most recent marked value (the seed value before the first day)."""
        return self.portfolio_values[-1]

    @property
    def peak_value(self) -> float:
        """Highest valuation observed so far, seed included."""
        return max(self.portfolio_values)

    def position(self, ticker: str) -> int:
        """Shares held in `ticker` (0 when there is no position)."""
        return self.positions.get(ticker, 0)

    def has_position(self, ticker: str) -> bool:
        return self.positions.get(ticker, 0) > 0

    def holdings_value(self, prices: Mapping[str, float]) -> float:
        """Sum of quantity * price over open positions; a missing price counts as 0."""
        total = 0.0
        for ticker, quantity in self.positions.items():
            price = prices.get(ticker)
            if price is None or (isinstance(price, float) and math.isnan(price)):
                continue
            total += quantity * price
        return total

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _next_trade_id(self, date: dt.date, ticker: str) -> str:
        return f"{date.isoformat()}-{ticker}-{len(self.trades) + 1}"

    def record_buy(
        self,
        date: dt.date,
        ticker: str,
        quantity: int,
        price: float,
        reason: str,
    ) -> Trade:
        """
        Add `quantity` shares at `price`, debit cash, append a BUY trade.

        Feasibility (quantity > 0, value <= cash) is the executor's decision;
        this method only rejects inputs that would corrupt the ledger.

        Raises:
            ValueError: If quantity <= 0 or price <= 0.
        """
        if quantity <= 0:
            raise ValueError(f"BUY quantity must be positive, got: {quantity}")
        if price <= 0:
            raise ValueError(f"BUY price must be positive, got: {price}")

        value = quantity * price
        self.cash -= value
        self.positions[ticker] = self.positions.get(ticker, 0) + quantity

        trade = Trade(
            id=self._next_trade_id(date, ticker),
            date=date,
            ticker=ticker,
            action=TradeAction.BUY,
            quantity=quantity,
            price=price,
            value=value,
            reason=reason,
        )
        self.trades.append(trade)
        return trade

    def record_sell(
        self,
        date: dt.date,
        ticker: str,
        price: float,
        reason: str,
    ) -> Optional[Trade]:
        """
        Close the entire position in `ticker` at `price`.

        Returns:
            The SELL trade, or None if there was no position (no-op).
        """
        quantity = self.positions.get(ticker, 0)
        if quantity <= 0:
            return None

        value = quantity * price
        self.cash += value
        del self.positions[ticker]

        trade = Trade(
            id=self._next_trade_id(date, ticker),
            date=date,
            ticker=ticker,
            action=TradeAction.SELL,
            quantity=quantity,
            price=price,
            value=value,
            reason=reason,
        )
        self.trades.append(trade)
        return trade

    def mark_to_market(self, date: dt.date, prices: Mapping[str, float]) -> ValuationPoint:
        """
        Value the portfolio at today's prices and append to the history.

        total = cash + sum(quantity * price), where a held ticker without a
        price today contributes 0 (not its last known price).

        Returns:
            The appended ValuationPoint.
        """
        previous = self.portfolio_values[-1]
        value = self.cash + self.holdings_value(prices)
        daily_return = (value - previous) / previous if previous != 0 else 0.0

        self.portfolio_values.append(value)
        self.dates.append(date)
        self.daily_returns.append(daily_return)
        return ValuationPoint(date=date, value=value, daily_return=daily_return)

    def liquidate(self) -> Dict[str, int]:
        """
        Forced liquidation: set cash to the current total value and clear positions.

        No trades are appended. The latest valuation is left untouched, so
        `cash == total_value` holds afterwards.

        Returns:
            The positions that were closed (ticker -> shares).
        """
        closed = dict(self.positions)
        self.cash = self.total_value
        self.positions.clear()
        return closed

    def snapshot(self) -> LedgerState:
        """Immutable copy of the current state."""
        return LedgerState(
            cash=self.cash,
            positions=dict(self.positions),
            portfolio_values=tuple(self.portfolio_values),
            dates=tuple(self.dates),
            daily_returns=tuple(self.daily_returns),
        )
