"""
Portfolio risk controls (max drawdown and stop-loss liquidation).
"""
