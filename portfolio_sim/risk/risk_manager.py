"""
Portfolio-level risk controls.

**Controls** (evaluated once per day, after mark-to-market):
  1. Max drawdown: drawdown = (peak - current) / peak, where peak is the
     highest valuation so far including the initial capital. Liquidate if
     drawdown > max_drawdown_pct / 100.
  2. Stop loss: loss = (initial - current) / initial. Liquidate if
     loss > stop_loss_pct / 100.

Both comparisons are strict: a drawdown of exactly 20.00% with a 20% limit
does not fire. Drawdown is checked first, so when both are breached on the
same day the event is attributed to the drawdown rule. At most one
liquidation happens per day.

**Liquidation** is a direct ledger reset (cash = total value, positions
cleared). It produces no Trade records; each one is returned as a
`RiskEvent` so the run keeps an audit trail. A breached control with nothing
to liquidate records nothing.

`volatility_cap_pct` is accepted in the configuration but not enforced.
"""

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from portfolio_sim.config.settings import RiskControls
from portfolio_sim.execution.ledger import PortfolioLedger
from portfolio_sim.utils.logger import logger

MAX_DRAWDOWN_REASON = "Max drawdown exceeded"
STOP_LOSS_REASON = "Stop loss triggered"


class RiskRule(str, Enum):
    MAX_DRAWDOWN = "MAX_DRAWDOWN"
    STOP_LOSS = "STOP_LOSS"


@dataclass(frozen=True)
class RiskEvent:
    """
    Record of one forced liquidation.

    Attributes:
        date: Day the control fired.
        rule: Which control fired.
        reason: Human-readable reason ("Max drawdown exceeded" / "Stop loss triggered").
        drawdown: Drawdown from peak at the time, as a fraction.
        loss: Loss versus initial capital at the time, as a fraction.
        portfolio_value: Total value at liquidation (becomes the cash balance).
        liquidated_positions: Positions closed (ticker -> shares).
    """
    date: dt.date
    rule: RiskRule
    reason: str
    drawdown: float
    loss: float
    portfolio_value: float
    liquidated_positions: Dict[str, int] = field(default_factory=dict)


def current_drawdown(ledger: PortfolioLedger) -> float:
    """(peak - current) / peak over the ledger's valuation history."""
    peak = ledger.peak_value
    if peak <= 0:
        return 0.0
    return (peak - ledger.total_value) / peak


def current_loss(ledger: PortfolioLedger) -> float:
    """(initial - current) / initial; negative when the portfolio is up."""
    return (ledger.initial_capital - ledger.total_value) / ledger.initial_capital


class RiskManager:
    """
    Drawdown and stop-loss enforcement.

    **Example usage**:
        >>> manager = RiskManager(RiskControls(max_drawdown_pct=20, stop_loss_pct=15))
        >>> event = manager.check(ledger, dt.date(2024, 3, 1))
        >>> event.rule if event else None
        <RiskRule.STOP_LOSS: 'STOP_LOSS'>
    """

    def __init__(self, controls: RiskControls | None = None):
        self.controls = controls or RiskControls()
        self.max_drawdown = self.controls.max_drawdown_pct / 100.0
        self.stop_loss = self.controls.stop_loss_pct / 100.0
        logger.debug(
            "Risk controls: max drawdown {}%, stop loss {}%, volatility cap {}% (not enforced)",
            self.controls.max_drawdown_pct,
            self.controls.stop_loss_pct,
            self.controls.volatility_cap_pct,
        )

    def evaluate(self, ledger: PortfolioLedger) -> Optional[RiskRule]:
        """Return the rule that is breached right now, drawdown first, or None."""
        if current_drawdown(ledger) > self.max_drawdown:
            return RiskRule.MAX_DRAWDOWN
        if current_loss(ledger) > self.stop_loss:
            return RiskRule.STOP_LOSS
        return None

    def check(self, ledger: PortfolioLedger, date: dt.date) -> Optional[RiskEvent]:
        """
        Evaluate the controls and liquidate if one is breached.

        Returns:
            The RiskEvent if a liquidation happened, else None.
        """
        rule = self.evaluate(ledger)
        if rule is None or not ledger.positions:
            return None

        reason = MAX_DRAWDOWN_REASON if rule is RiskRule.MAX_DRAWDOWN else STOP_LOSS_REASON
        drawdown = current_drawdown(ledger)
        loss = current_loss(ledger)
        closed = ledger.liquidate()

        logger.warning(
            "Liquidating all positions on {} due to {} (drawdown {:.2%}, loss {:.2%}, value {:.2f})",
            date, reason, drawdown, loss, ledger.total_value,
        )
        return RiskEvent(
            date=date,
            rule=rule,
            reason=reason,
            drawdown=drawdown,
            loss=loss,
            portfolio_value=ledger.total_value,
            liquidated_positions=closed,
        )
