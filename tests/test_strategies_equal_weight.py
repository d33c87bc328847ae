"""
Tests for EqualWeightStrategy: day-0 allocation and drift rebalancing.
"""

import datetime as dt

import pandas as pd
import pytest

from portfolio_sim.data.price_history import PriceHistory
from portfolio_sim.execution.ledger import PortfolioLedger, TradeAction
from portfolio_sim.strategies.base import DayContext
from portfolio_sim.strategies.equal_weight import (
    INITIAL_ALLOCATION_REASON,
    REBALANCE_REASON,
    EqualWeightParams,
    EqualWeightStrategy,
)

DATE = dt.date(2024, 1, 2)
EMPTY_HISTORY = PriceHistory({})


def make_context(day_index, prices, ledger) -> DayContext:
    return DayContext(day_index=day_index, date=DATE, prices=prices, history=EMPTY_HISTORY, ledger=ledger)


def test_day_zero_buys_every_ticker_at_one_over_n():
    strategy = EqualWeightStrategy(["AAPL", "MSFT", "GOOGL"])
    ledger = PortfolioLedger(100_000)

    signals = strategy.generate_signals(
        make_context(0, {"AAPL": 150.0, "MSFT": 300.0, "GOOGL": 120.0}, ledger)
    )

    assert [s.ticker for s in signals] == ["AAPL", "MSFT", "GOOGL"]
    assert all(s.action is TradeAction.BUY for s in signals)
    assert all(s.weight == pytest.approx(1 / 3) for s in signals)
    assert all(s.reason == INITIAL_ALLOCATION_REASON for s in signals)


def test_day_zero_skips_tickers_without_price():
    strategy = EqualWeightStrategy(["AAPL", "MSFT"])
    signals = strategy.generate_signals(make_context(0, {"MSFT": 300.0}, PortfolioLedger(100_000)))
    assert [s.ticker for s in signals] == ["MSFT"]
    assert signals[0].weight == pytest.approx(0.5)


@pytest.mark.parametrize("day_index", [1, 19, 21, 39])
def test_no_signals_between_rebalance_days(day_index):
    strategy = EqualWeightStrategy(["AAPL", "MSFT"])
    ledger = PortfolioLedger(100_000)
    assert strategy.generate_signals(make_context(day_index, {"AAPL": 1.0, "MSFT": 1.0}, ledger)) == []


def make_drifted_ledger() -> PortfolioLedger:
    """
    $100,000 with AAPL held at 60% and MSFT at 40% of a $100,000 mark.
    """
    ledger = PortfolioLedger(100_000)
    ledger.record_buy(DATE, "AAPL", 600, 100.0, "in")
    ledger.record_buy(DATE, "MSFT", 400, 100.0, "in")
    ledger.mark_to_market(DATE, {"AAPL": 100.0, "MSFT": 100.0})
    return ledger


def test_rebalance_sells_overweight_and_buys_underweight():
    strategy = EqualWeightStrategy(["AAPL", "MSFT"])
    ledger = make_drifted_ledger()

    signals = strategy.generate_signals(make_context(20, {"AAPL": 100.0, "MSFT": 100.0}, ledger))

    by_ticker = {s.ticker: s for s in signals}
    assert by_ticker["AAPL"].action is TradeAction.SELL
    assert by_ticker["MSFT"].action is TradeAction.BUY
    assert all(s.reason == REBALANCE_REASON for s in signals)
    assert all(s.weight == pytest.approx(0.5) for s in signals)


def test_drift_within_tolerance_is_left_alone():
    strategy = EqualWeightStrategy(["AAPL", "MSFT"], EqualWeightParams(drift_tolerance=0.15))
    ledger = make_drifted_ledger()
    assert strategy.generate_signals(make_context(40, {"AAPL": 100.0, "MSFT": 100.0}, ledger)) == []


def test_drift_exactly_at_tolerance_does_not_rebalance():
    strategy = EqualWeightStrategy(["AAPL", "MSFT"], EqualWeightParams(drift_tolerance=0.1))
    ledger = make_drifted_ledger()
    assert strategy.generate_signals(make_context(20, {"AAPL": 100.0, "MSFT": 100.0}, ledger)) == []


def test_rebalance_skips_ticker_without_price():
    strategy = EqualWeightStrategy(["AAPL", "MSFT"])
    ledger = make_drifted_ledger()
    signals = strategy.generate_signals(make_context(20, {"MSFT": 100.0}, ledger))
    assert [s.ticker for s in signals] == ["MSFT"]


def test_params_validation():
    with pytest.raises(ValueError):
        EqualWeightParams(rebalance_interval=0)
    with pytest.raises(ValueError):
        EqualWeightStrategy([])
