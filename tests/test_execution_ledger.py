"""
Tests for PortfolioLedger.

All scenarios use round numbers so expected values can be checked by hand.
"""

import datetime as dt

import pytest

from portfolio_sim.execution.ledger import PortfolioLedger, TradeAction

D1 = dt.date(2024, 1, 2)
D2 = dt.date(2024, 1, 3)


def test_new_ledger_is_seeded_with_initial_capital():
    ledger = PortfolioLedger(initial_capital=10_000)

    assert ledger.cash == 10_000.0
    assert ledger.positions == {}
    assert ledger.portfolio_values == [10_000.0]
    assert ledger.dates == []
    assert ledger.daily_returns == []
    assert ledger.total_value == 10_000.0


@pytest.mark.parametrize("capital", [0, -5])
def test_rejects_non_positive_capital(capital):
    with pytest.raises(ValueError):
        PortfolioLedger(initial_capital=capital)


def test_record_buy_debits_cash_and_adds_position():
    ledger = PortfolioLedger(10_000)
    trade = ledger.record_buy(D1, "AAPL", 10, 150.0, "test")

    assert ledger.cash == pytest.approx(8_500.0)
    assert ledger.positions == {"AAPL": 10}
    assert trade.id == "2024-01-02-AAPL-1"
    assert trade.action is TradeAction.BUY
    assert trade.value == pytest.approx(1_500.0)
    assert ledger.trades == [trade]


def test_buys_accumulate_and_ids_are_sequential():
    ledger = PortfolioLedger(10_000)
    ledger.record_buy(D1, "AAPL", 10, 100.0, "a")
    second = ledger.record_buy(D2, "AAPL", 5, 100.0, "b")

    assert ledger.positions["AAPL"] == 15
    assert second.id == "2024-01-03-AAPL-2"


@pytest.mark.parametrize("quantity, price", [(0, 100.0), (-1, 100.0), (5, 0.0)])
def test_record_buy_rejects_bad_inputs(quantity, price):
    ledger = PortfolioLedger(10_000)
    with pytest.raises(ValueError):
        ledger.record_buy(D1, "AAPL", quantity, price, "bad")


def test_record_sell_closes_full_position():
    ledger = PortfolioLedger(10_000)
    ledger.record_buy(D1, "AAPL", 10, 100.0, "in")
    trade = ledger.record_sell(D2, "AAPL", 120.0, "out")

    assert trade.quantity == 10
    assert trade.value == pytest.approx(1_200.0)
    assert ledger.cash == pytest.approx(10_200.0)
    assert "AAPL" not in ledger.positions


def test_record_sell_without_position_is_noop():
    ledger = PortfolioLedger(10_000)
    assert ledger.record_sell(D1, "AAPL", 120.0, "out") is None
    assert ledger.cash == 10_000.0
    assert ledger.trades == []


def test_mark_to_market_appends_value_and_return():
    ledger = PortfolioLedger(10_000)
    ledger.record_buy(D1, "AAPL", 10, 100.0, "in")

    point = ledger.mark_to_market(D1, {"AAPL": 110.0})

    assert point.value == pytest.approx(10_100.0)
    assert point.daily_return == pytest.approx(0.01)
    assert ledger.portfolio_values == [10_000.0, pytest.approx(10_100.0)]
    assert ledger.dates == [D1]
    assert len(ledger.daily_returns) == len(ledger.portfolio_values) - 1


def test_missing_price_values_position_at_zero():
    ledger = PortfolioLedger(10_000)
    ledger.record_buy(D1, "AAPL", 10, 100.0, "in")

    point = ledger.mark_to_market(D1, {"MSFT": 300.0})

    assert point.value == pytest.approx(9_000.0)
    assert point.daily_return == pytest.approx(-0.1)


def test_peak_value_includes_seed():
    ledger = PortfolioLedger(10_000)
    ledger.mark_to_market(D1, {})
    assert ledger.peak_value == 10_000.0


def test_liquidate_sets_cash_to_total_value():
    ledger = PortfolioLedger(10_000)
    ledger.record_buy(D1, "AAPL", 10, 100.0, "in")
    ledger.mark_to_market(D1, {"AAPL": 80.0})

    closed = ledger.liquidate()

    assert closed == {"AAPL": 10}
    assert ledger.positions == {}
    assert ledger.cash == pytest.approx(9_800.0)
    assert ledger.cash == pytest.approx(ledger.total_value)
    assert len(ledger.trades) == 1


def test_snapshot_is_independent_copy():
    ledger = PortfolioLedger(10_000)
    ledger.record_buy(D1, "AAPL", 10, 100.0, "in")
    ledger.mark_to_market(D1, {"AAPL": 100.0})

    state = ledger.snapshot()
    ledger.record_sell(D2, "AAPL", 100.0, "out")

    assert state.positions == {"AAPL": 10}
    assert state.initial_value == 10_000.0
    assert state.final_value == pytest.approx(10_000.0)
    assert state.dates == (D1,)
