"""
portfolio_sim – Main entry point.

Runs the default simulation (AAPL, MSFT, GOOGL over 2023, $100k, equal weight)
on the configured price provider and prints the headline numbers. Use
actions/run_portfolio_simulation.py for the full CLI.
"""

from portfolio_sim.backtesting.engine import run_simulation
from portfolio_sim.config.settings import SimulationConfig, get_settings
from portfolio_sim.utils.logger import configure_logging


def main() -> None:
    """Run the default configuration and print a one-line summary."""
    settings = get_settings()
    configure_logging(settings.simulation.log_level)

    result = run_simulation(SimulationConfig.defaults(), settings=settings)
    print(
        f"final value {result.final_value:,.2f} | "
        f"total return {result.metrics.total_return:.2%} | "
        f"trades {len(result.trades)}"
    )


if __name__ == "__main__":
    main()
