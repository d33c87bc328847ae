"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import portfolio_sim...' works,
and resets the settings singleton between tests.
"""
import sys
from pathlib import Path

import pytest

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from portfolio_sim.config.settings import reset_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop the cached settings singleton so monkeypatched env vars take effect."""
    reset_settings()
    yield
    reset_settings()
