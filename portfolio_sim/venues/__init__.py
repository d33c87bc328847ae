"""
Historical price providers.

Defines the provider protocol and concrete adapters (deterministic mock,
Yahoo Finance, local CSV) that the simulation engine fetches bars from.
"""
