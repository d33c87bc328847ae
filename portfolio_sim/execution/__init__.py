"""
Portfolio ledger and trade execution.

`PortfolioLedger` holds cash, positions, valuations and the trade log;
`TradeExecutor` sizes signals into whole-share trades against it.
"""
