"""
Performance metrics (returns, volatility, Sharpe, drawdown, win rate) and
synthetic price generation for the mock provider.
"""
