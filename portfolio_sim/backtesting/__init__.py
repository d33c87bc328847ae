"""
Simulation engine, trading calendar and concurrent price loading.
"""
