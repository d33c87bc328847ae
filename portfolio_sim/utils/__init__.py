"""
Shared utilities: loguru logging setup and display formatting helpers.
"""
