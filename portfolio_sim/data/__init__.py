"""
Price schema, in-memory price history, and CSV/JSON input-output.

Defines the canonical daily price frame every provider returns, the lookup
index the simulation loop reads closes from, and the writers used to persist
trade logs, equity curves and metrics.
"""
