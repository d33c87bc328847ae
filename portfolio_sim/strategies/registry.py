"""
Strategy catalogue and factory.

`create_signal_generator()` is the only place that maps a strategy id onto a
concrete class; the engine calls it once per run.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

from portfolio_sim.config.settings import (
    ConfigurationError,
    STRATEGY_EQUAL_WEIGHT,
    STRATEGY_MEAN_REVERSION,
    STRATEGY_MOMENTUM,
)
from portfolio_sim.strategies.base import SignalGenerator
from portfolio_sim.strategies.equal_weight import EqualWeightStrategy
from portfolio_sim.strategies.mean_reversion import MeanReversionStrategy
from portfolio_sim.strategies.momentum import MomentumStrategy


@dataclass(frozen=True)
class StrategyInfo:
    id: str
    name: str
    description: str


STRATEGY_CATALOG: List[StrategyInfo] = [
    StrategyInfo(
        STRATEGY_EQUAL_WEIGHT,
        "Equal Weight",
        "Allocates equal weight to all assets and rebalances periodically to "
        "maintain target allocations.",
    ),
    StrategyInfo(
        STRATEGY_MOMENTUM,
        "Momentum",
        "Buys assets showing strong positive price momentum and sells those "
        "with negative momentum.",
    ),
    StrategyInfo(
        STRATEGY_MEAN_REVERSION,
        "Mean Reversion",
        "Buys assets that are significantly below their recent average price "
        "and sells those above.",
    ),
]

_STRATEGY_CLASSES: Dict[str, type] = {
    STRATEGY_EQUAL_WEIGHT: EqualWeightStrategy,
    STRATEGY_MOMENTUM: MomentumStrategy,
    STRATEGY_MEAN_REVERSION: MeanReversionStrategy,
}


def get_strategy_info(strategy_id: str) -> StrategyInfo:
    for info in STRATEGY_CATALOG:
        if info.id == strategy_id:
            return info
    raise ConfigurationError(
        f"Unknown strategy '{strategy_id}'. "
        f"Expected one of: {[info.id for info in STRATEGY_CATALOG]}"
    )


def create_signal_generator(strategy_id: str, tickers: Sequence[str]) -> SignalGenerator:
    """
    Build the signal generator for `strategy_id` over `tickers`.

    Raises:
        ConfigurationError: If the strategy id is unknown.
    """
    info = get_strategy_info(strategy_id.strip().lower())
    return _STRATEGY_CLASSES[info.id](tickers)
