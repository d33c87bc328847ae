"""
Configuration objects for simulation runs and runtime settings.

**Conceptual**: This module holds two kinds of configuration:
  - Per-run inputs (`SimulationConfig`, `RiskControls`): what to simulate.
    These are validated at construction time so the engine never starts with
    an impossible request (empty universe, inverted dates, zero capital).
  - Environment-backed settings (`YFinanceSettings`, `SimulationSettings`,
    `MetricsSettings`, aggregated by `Settings`): how to run, loaded from
    environment variables and an optional `.env` file at the project root.

All objects are frozen dataclasses. Invalid values raise `ConfigurationError`
(a `ValueError`) with a message naming the offending field.

**Teaching note**: Keeping run inputs separate from process-level settings
means tests can build a `SimulationConfig` directly without touching the
environment, while scripts can still pick up defaults from `.env`.
"""

import datetime as dt
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from dotenv import load_dotenv

# Project root is 2 levels up from portfolio_sim/config/settings.py
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


# Strategy identifiers accepted by the engine (see portfolio_sim.strategies.registry)
STRATEGY_EQUAL_WEIGHT = "equal-weight"
STRATEGY_MOMENTUM = "momentum"
STRATEGY_MEAN_REVERSION = "mean-reversion"
KNOWN_STRATEGIES = (STRATEGY_EQUAL_WEIGHT, STRATEGY_MOMENTUM, STRATEGY_MEAN_REVERSION)

KNOWN_PROVIDERS = ("mock", "yfinance", "csv")

DateLike = Union[dt.date, str]


class ConfigurationError(ValueError):
    """
    Raised when a configuration value is missing or invalid.

    Configuration errors are detected before any simulation work starts, so
    no partial ledger or trade log exists when this is raised.
    """
    pass


def parse_date(value: DateLike, field_name: str) -> dt.date:
    """
    Coerce a date-like value (date, datetime, pandas Timestamp, ISO string) to `datetime.date`.

    Raises:
        ConfigurationError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value.strip())
        except ValueError:
            raise ConfigurationError(
                f"{field_name} must be an ISO date (YYYY-MM-DD), got: {value!r}"
            )
    raise ConfigurationError(
        f"{field_name} must be a date or ISO date string, got: {type(value).__name__}"
    )


def parse_positive_number(value, field_name: str) -> float:
    """
    Coerce `value` to a finite float strictly greater than zero.

    NaN and infinities are rejected along with zero and negatives.

    Raises:
        ConfigurationError: If the value is not numeric or not positive.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be a number, got: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{field_name} must be a number, got: {value!r}")
    if not math.isfinite(number) or not number > 0:
        raise ConfigurationError(f"{field_name} must be positive, got: {value}")
    return number


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got: {raw}")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got: {raw}")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class RiskControls:
    """
    Portfolio-level risk limits, expressed in percent.

    **Conceptual**: Risk controls are checked once per simulated day after the
    portfolio has been marked to market:
      - max_drawdown_pct: liquidate everything when the decline from the
        running peak is strictly greater than this percentage.
      - stop_loss_pct: liquidate everything when the loss versus initial
        capital is strictly greater than this percentage.
      - volatility_cap_pct: accepted and validated but not enforced by any
        control (see DESIGN.md).

    Attributes:
        max_drawdown_pct: Maximum tolerated drawdown from peak, in percent (e.g. 20 = 20%).
        volatility_cap_pct: Annualised volatility ceiling, in percent. Informational only.
        stop_loss_pct: Maximum tolerated loss from initial capital, in percent.
    """
    max_drawdown_pct: float = 20.0
    volatility_cap_pct: float = 25.0
    stop_loss_pct: float = 15.0

    def __post_init__(self):
        """Validate that every limit is a positive percentage."""
        for name in ("max_drawdown_pct", "volatility_cap_pct", "stop_loss_pct"):
            value = parse_positive_number(getattr(self, name), f"Risk control '{name}'")
            object.__setattr__(self, name, value)

    @classmethod
    def defaults(cls) -> "RiskControls":
        """Default limits: 20% max drawdown, 25% volatility cap, 15% stop loss."""
        return cls()


@dataclass(frozen=True)
class SimulationConfig:
    """
    Input for a single simulation run.

    **Conceptual**: Everything the engine needs to know about *what* to
    simulate: the instrument universe, the date window, starting capital, the
    strategy identifier, and the risk limits. The config is validated at
    construction time; an invalid request never reaches the engine.

    **Normalisation**:
      - Ticker symbols are stripped and upper-cased; duplicates are removed
        while preserving the first occurrence's position.
      - Dates may be given as `datetime.date`, `datetime.datetime`, pandas
        Timestamps, or ISO strings; they are stored as `datetime.date`.
      - The strategy identifier is lower-cased and stripped.

    Attributes:
        tickers: Ordered tuple of unique ticker symbols (non-empty).
        start_date: First calendar date to request (inclusive).
        end_date: Last calendar date to request (inclusive). Must be after start_date.
        initial_capital: Starting cash balance. Must be positive.
        strategy: One of "equal-weight", "momentum", "mean-reversion".
        risk_controls: Portfolio risk limits.

    Raises:
        ConfigurationError: If any field violates the constraints above.

    Example:
        >>> config = SimulationConfig(
        ...     tickers=("AAPL", "MSFT"),
        ...     start_date="2023-01-01",
        ...     end_date="2024-01-01",
        ...     initial_capital=100_000,
        ...     strategy="momentum",
        ... )
        >>> config.start_date
        datetime.date(2023, 1, 1)
    """
    tickers: Tuple[str, ...]
    start_date: dt.date
    end_date: dt.date
    initial_capital: float
    strategy: str = STRATEGY_EQUAL_WEIGHT
    risk_controls: RiskControls = field(default_factory=RiskControls)

    def __post_init__(self):
        """Normalise and validate all fields (fail fast)."""
        if isinstance(self.tickers, str) or self.tickers is None:
            raise ConfigurationError(
                "tickers must be a sequence of symbols, e.g. ('AAPL', 'MSFT')"
            )

        normalised = []
        for ticker in self.tickers:
            symbol = str(ticker).strip().upper()
            if symbol and symbol not in normalised:
                normalised.append(symbol)
        if not normalised:
            raise ConfigurationError("At least one ticker is required.")
        # frozen dataclass: write through object.__setattr__
        object.__setattr__(self, "tickers", tuple(normalised))

        start = parse_date(self.start_date, "start_date")
        end = parse_date(self.end_date, "end_date")
        if start >= end:
            raise ConfigurationError(
                f"start_date ({start}) must be before end_date ({end})"
            )
        object.__setattr__(self, "start_date", start)
        object.__setattr__(self, "end_date", end)

        capital = parse_positive_number(self.initial_capital, "initial_capital")
        object.__setattr__(self, "initial_capital", capital)

        strategy = str(self.strategy).strip().lower()
        if strategy not in KNOWN_STRATEGIES:
            raise ConfigurationError(
                f"Unknown strategy '{self.strategy}'. Expected one of: {list(KNOWN_STRATEGIES)}"
            )
        object.__setattr__(self, "strategy", strategy)

        if not isinstance(self.risk_controls, RiskControls):
            raise ConfigurationError(
                f"risk_controls must be a RiskControls instance, got: {type(self.risk_controls).__name__}"
            )

    @classmethod
    def defaults(cls) -> "SimulationConfig":
        """
        The stock configuration: AAPL/MSFT/GOOGL, calendar 2023, $100k, equal weight.
        """
        return cls(
            tickers=("AAPL", "MSFT", "GOOGL"),
            start_date=dt.date(2023, 1, 1),
            end_date=dt.date(2024, 1, 1),
            initial_capital=100_000.0,
            strategy=STRATEGY_EQUAL_WEIGHT,
            risk_controls=RiskControls.defaults(),
        )


@dataclass(frozen=True)
class YFinanceSettings:
    """
    Configuration for the Yahoo Finance data provider.

    Yahoo Finance requires no API key, so every field is optional.

    Attributes:
        interval: Bar interval passed to yfinance (default "1d").
        auto_adjust: Adjust OHLC for splits/dividends (default False).
        back_adjust: Back-adjust prices (default False, only used when auto_adjust is False).
        prepost: Include pre/post market data (default False).
        threads: Let yfinance use threads for downloads (default True).
    """
    interval: str = "1d"
    auto_adjust: bool = False
    back_adjust: bool = False
    prepost: bool = False
    threads: bool = True

    @classmethod
    def from_env(cls) -> "YFinanceSettings":
        """
        Load YFinance settings from environment variables.

        **Environment variables** (all optional):
          - YFINANCE_INTERVAL (default "1d")
          - YFINANCE_AUTO_ADJUST (default "false")
          - YFINANCE_BACK_ADJUST (default "false")
          - YFINANCE_PREPOST (default "false")
          - YFINANCE_THREADS (default "true")
        """
        return cls(
            interval=os.getenv("YFINANCE_INTERVAL", "1d"),
            auto_adjust=_env_bool("YFINANCE_AUTO_ADJUST", "false"),
            back_adjust=_env_bool("YFINANCE_BACK_ADJUST", "false"),
            prepost=_env_bool("YFINANCE_PREPOST", "false"),
            threads=_env_bool("YFINANCE_THREADS", "true"),
        )


@dataclass(frozen=True)
class SimulationSettings:
    """
    Process-level settings for running simulations.

    Attributes:
        provider: Price provider to use: "mock" (deterministic synthetic data),
                 "yfinance" (live Yahoo Finance), or "csv" (files under data_dir).
        data_dir: Directory holding <TICKER>.csv files for the CSV provider.
        fetch_workers: Maximum number of concurrent price fetches.
        mock_seed: Base seed for the mock provider.
        log_level: loguru level name for the stderr sink.
    """
    provider: str = "mock"
    data_dir: Path = PROJECT_ROOT / "data" / "raw"
    fetch_workers: int = 8
    mock_seed: int = 42
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate provider name and worker count."""
        if self.provider not in KNOWN_PROVIDERS:
            raise ConfigurationError(
                f"Unknown price provider '{self.provider}'. Expected one of: {list(KNOWN_PROVIDERS)}"
            )
        if self.fetch_workers < 1:
            raise ConfigurationError(
                f"fetch_workers must be at least 1, got: {self.fetch_workers}"
            )

    @classmethod
    def from_env(cls) -> "SimulationSettings":
        """
        Load simulation settings from environment variables.

        **Environment variables** (all optional):
          - PORTFOLIO_SIM_PROVIDER: "mock" | "yfinance" | "csv" (default "mock")
          - PORTFOLIO_SIM_DATA_DIR: CSV provider directory (default <project>/data/raw)
          - PORTFOLIO_SIM_FETCH_WORKERS: concurrent fetches (default 8)
          - PORTFOLIO_SIM_MOCK_SEED: mock provider seed (default 42)
          - PORTFOLIO_SIM_LOG_LEVEL: log level (default "INFO")
        """
        data_dir = os.getenv("PORTFOLIO_SIM_DATA_DIR")
        return cls(
            provider=os.getenv("PORTFOLIO_SIM_PROVIDER", "mock").strip().lower(),
            data_dir=Path(data_dir) if data_dir else PROJECT_ROOT / "data" / "raw",
            fetch_workers=_env_int("PORTFOLIO_SIM_FETCH_WORKERS", "8"),
            mock_seed=_env_int("PORTFOLIO_SIM_MOCK_SEED", "42"),
            log_level=os.getenv("PORTFOLIO_SIM_LOG_LEVEL", "INFO").upper(),
        )


@dataclass(frozen=True)
class MetricsSettings:
    """
    Constants used by the performance metrics.

    **Conceptual**: alpha and beta are placeholders rather than estimates unless
    a benchmark return series is supplied to the metrics calculator. They live
    here as named, overridable values so a real benchmark comparison can
    replace them without changing the metrics contract.

    Attributes:
        risk_free_rate: Annual risk-free rate used by the Sharpe ratio (default 0.02).
        trading_days: Trading days per year used to annualise (default 252).
        alpha: Reported alpha when no benchmark is supplied (default 0.02).
        beta: Reported beta when no benchmark is supplied (default 1.1).
    """
    risk_free_rate: float = 0.02
    trading_days: int = 252
    alpha: float = 0.02
    beta: float = 1.1

    def __post_init__(self):
        """Validate the annualisation factor."""
        if self.trading_days <= 0:
            raise ConfigurationError(
                f"trading_days must be positive, got: {self.trading_days}"
            )

    @classmethod
    def from_env(cls) -> "MetricsSettings":
        """
        Load metrics settings from environment variables.

        **Environment variables** (all optional):
          - PORTFOLIO_SIM_RISK_FREE_RATE (default 0.02)
          - PORTFOLIO_SIM_TRADING_DAYS (default 252)
          - PORTFOLIO_SIM_ALPHA (default 0.02)
          - PORTFOLIO_SIM_BETA (default 1.1)
        """
        return cls(
            risk_free_rate=_env_float("PORTFOLIO_SIM_RISK_FREE_RATE", "0.02"),
            trading_days=_env_int("PORTFOLIO_SIM_TRADING_DAYS", "252"),
            alpha=_env_float("PORTFOLIO_SIM_ALPHA", "0.02"),
            beta=_env_float("PORTFOLIO_SIM_BETA", "1.1"),
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings aggregating every subsystem.

    **Usage pattern**:
      ```python
      from portfolio_sim.config.settings import get_settings

      settings = get_settings()
      provider_name = settings.simulation.provider
      ```

    Attributes:
        simulation: Provider choice, worker count, logging level.
        metrics: Risk-free rate, annualisation, alpha/beta placeholders.
        yfinance: Yahoo Finance fetch options.
    """
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    metrics: MetricsSettings = field(default_factory=MetricsSettings)
    yfinance: YFinanceSettings = field(default_factory=YFinanceSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load all subsystem settings from the environment."""
        return cls(
            simulation=SimulationSettings.from_env(),
            metrics=MetricsSettings.from_env(),
            yfinance=YFinanceSettings.from_env(),
        )


# Lazily-initialised singleton. Tests construct Settings(...) directly instead.
_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings singleton, loading it from the environment on first use.

    Returns:
        The cached Settings object.

    Raises:
        ConfigurationError: If an environment variable holds an invalid value.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()

    return _default_settings


def reset_settings():
    """
    Clear the cached settings singleton so the next `get_settings()` re-reads the environment.

    Used by tests that set environment variables with monkeypatch.
    """
    global _default_settings
    _default_settings = None
