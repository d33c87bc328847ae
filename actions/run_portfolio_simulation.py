#!/usr/bin/env python3
"""
Run a portfolio simulation and save the results.

**Usage**:
    From project root:
    ```bash
    # Default run: AAPL, MSFT, GOOGL / 2023 / $100k / equal weight / mock prices
    python actions/run_portfolio_simulation.py

    # Momentum on two tickers with tighter risk limits
    python actions/run_portfolio_simulation.py --tickers NVDA,TSLA --strategy momentum \
        --max-drawdown 10 --stop-loss 8

    # Live Yahoo Finance data and an equity chart
    python actions/run_portfolio_simulation.py --provider yfinance --plot
    ```

**Outputs** (saved to --output-dir, default data/results/):
  - <name>_trades.csv: Trade log (Date, Ticker, Action, Quantity, Price, Value, Reason).
  - <name>_equity_curve.csv: Per-day value, drawdown % and benchmark.
  - <name>_metrics.json: Performance metrics plus the run configuration.
  - <name>_equity_curve.png: Equity/drawdown chart (only with --plot).

**Exit codes**:
  - 0: Success
  - 1: Data could not be loaded (unknown ticker, empty range)
  - 2: Invalid arguments / configuration
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from portfolio_sim.backtesting.engine import (
    DataUnavailableError,
    SimulationResult,
    run_simulation,
)
from portfolio_sim.config.settings import (
    KNOWN_PROVIDERS,
    KNOWN_STRATEGIES,
    ConfigurationError,
    RiskControls,
    SimulationConfig,
    get_settings,
)
from portfolio_sim.data.io import (
    write_equity_curve_csv,
    write_metrics_json,
    write_trade_log_csv,
)
from portfolio_sim.strategies.registry import get_strategy_info
from portfolio_sim.utils.formatting import format_currency, format_large_number, format_percent
from portfolio_sim.utils.logger import configure_logging, logger


def build_parser() -> argparse.ArgumentParser:
    defaults = SimulationConfig.defaults()
    risk = defaults.risk_controls

    parser = argparse.ArgumentParser(
        description="Run a single-portfolio strategy simulation.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--tickers",
        type=str,
        default=",".join(defaults.tickers),
        help=f"Comma-separated tickers. Default: {','.join(defaults.tickers)}",
    )
    parser.add_argument("--start", type=str, default=defaults.start_date.isoformat(),
                        help="Start date (YYYY-MM-DD).")
    parser.add_argument("--end", type=str, default=defaults.end_date.isoformat(),
                        help="End date (YYYY-MM-DD).")
    parser.add_argument("--capital", type=float, default=defaults.initial_capital,
                        help="Initial capital. Default: 100000.")
    parser.add_argument("--strategy", type=str, default=defaults.strategy,
                        choices=list(KNOWN_STRATEGIES), help="Strategy id.")
    parser.add_argument("--max-drawdown", type=float, default=risk.max_drawdown_pct,
                        help="Max drawdown in percent before liquidation.")
    parser.add_argument("--volatility-cap", type=float, default=risk.volatility_cap_pct,
                        help="Volatility cap in percent (recorded, not enforced).")
    parser.add_argument("--stop-loss", type=float, default=risk.stop_loss_pct,
                        help="Stop loss in percent of initial capital.")
    parser.add_argument("--provider", type=str, default=None, choices=list(KNOWN_PROVIDERS),
                        help="Price provider. Default: PORTFOLIO_SIM_PROVIDER or 'mock'.")
    parser.add_argument("--output-dir", type=str, default="data/results",
                        help="Directory for result files. Default: data/results.")
    parser.add_argument("--name", type=str, default=None,
                        help="Prefix for result files. Default: the strategy id.")
    parser.add_argument("--plot", action="store_true",
                        help="Also save an equity/drawdown chart (matplotlib).")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Log level. Default: PORTFOLIO_SIM_LOG_LEVEL or INFO.")
    return parser


def print_summary(result: SimulationResult) -> None:
    """Print the metrics dashboard to stdout."""
    config = result.config
    metrics = result.metrics
    info = get_strategy_info(config.strategy)

    print("=" * 80)
    print(f"{info.name} Simulation: {', '.join(config.tickers)}")
    print(f"{config.start_date} to {config.end_date}  ({len(result.ledger.dates)} trading days)")
    print("=" * 80)
    print(f"  Initial Capital:   {format_currency(config.initial_capital):>16}")
    print(f"  Final Value:       {format_currency(result.final_value):>16}")
    print(f"  Total Return:      {format_percent(metrics.total_return):>16}")
    print(f"  CAGR:              {format_percent(result.cagr()):>16}")
    print(f"  Volatility:        {format_percent(metrics.volatility):>16}")
    print(f"  Sharpe Ratio:      {metrics.sharpe_ratio:>16.2f}")
    print(f"  Max Drawdown:      {format_percent(metrics.max_drawdown):>16}")
    print(f"  Win Rate:          {format_percent(metrics.win_rate, 1):>16}")
    print(f"  Alpha:             {format_percent(metrics.alpha):>16}")
    print(f"  Beta:              {metrics.beta:>16.2f}")
    print("-" * 80)

    buys = sum(1 for t in result.trades if t.action.value == "BUY")
    sells = len(result.trades) - buys
    traded = sum(t.value for t in result.trades)
    print(f"  Trades: {len(result.trades)} ({buys} buys, {sells} sells), "
          f"turnover ${format_large_number(traded)}")

    for event in result.risk_events:
        print(f"  ⚠ {event.date}: {event.reason} "
              f"(drawdown {format_percent(event.drawdown)}, loss {format_percent(event.loss)})")

    if result.ledger.positions:
        held = ", ".join(f"{t} x{q}" for t, q in result.ledger.positions.items())
        print(f"  Open positions: {held}")
    print(f"  Cash: {format_currency(result.ledger.cash)}")
    print("=" * 80)


def save_plot(result: SimulationResult, plot_path: Path) -> None:
    """Save the equity curve against the benchmark line, with drawdown below."""
    import matplotlib
    matplotlib.use('Agg')  # Non-interactive backend
    import matplotlib.pyplot as plt

    chart = result.chart_frame()

    fig, (ax_value, ax_dd) = plt.subplots(
        2, 1, figsize=(12, 8), sharex=True, gridspec_kw={'height_ratios': [3, 1]}
    )
    ax_value.plot(chart['date'], chart['value'], label='Portfolio', linewidth=1.5)
    ax_value.plot(chart['date'], chart['benchmark'], label='Benchmark', linestyle='--', alpha=0.7)
    for event in result.risk_events:
        ax_value.axvline(event.date, color='red', alpha=0.4, linestyle=':')
    ax_value.set_ylabel('Value ($)')
    ax_value.set_title(f"{get_strategy_info(result.config.strategy).name}: "
                       f"{', '.join(result.config.tickers)}")
    ax_value.legend()
    ax_value.grid(True, alpha=0.3)

    ax_dd.fill_between(chart['date'], -chart['drawdown'], 0, color='red', alpha=0.3)
    ax_dd.set_ylabel('Drawdown (%)')
    ax_dd.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(plot_path, dpi=150)
    plt.close(fig)


def main():
    args = build_parser().parse_args()

    settings = get_settings()
    if args.provider is not None:
        settings = replace(settings, simulation=replace(settings.simulation, provider=args.provider))
    configure_logging(args.log_level or settings.simulation.log_level)

    try:
        config = SimulationConfig(
            tickers=tuple(args.tickers.split(",")),
            start_date=args.start,
            end_date=args.end,
            initial_capital=args.capital,
            strategy=args.strategy,
            risk_controls=RiskControls(
                max_drawdown_pct=args.max_drawdown,
                volatility_cap_pct=args.volatility_cap,
                stop_loss_pct=args.stop_loss,
            ),
        )
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    try:
        result = run_simulation(config, settings=settings)
    except DataUnavailableError as e:
        logger.error("Simulation aborted: {}", e)
        print(f"ERROR: {e}")
        sys.exit(1)

    print_summary(result)

    output_dir = Path(args.output_dir)
    name = args.name or config.strategy
    trades_path = write_trade_log_csv(result.trades, output_dir / f"{name}_trades.csv")
    curve_path = write_equity_curve_csv(result.chart_frame(), output_dir / f"{name}_equity_curve.csv")
    metrics_path = write_metrics_json(
        result.metrics.to_dict(),
        output_dir / f"{name}_metrics.json",
        extra={
            'tickers': list(config.tickers),
            'start_date': config.start_date.isoformat(),
            'end_date': config.end_date.isoformat(),
            'initial_capital': config.initial_capital,
            'strategy': config.strategy,
            'provider': settings.simulation.provider,
            'final_value': result.final_value,
            'liquidations': [
                {'date': e.date.isoformat(), 'reason': e.reason} for e in result.risk_events
            ],
        },
    )
    print(f"  ✓ Saved trade log to {trades_path}")
    print(f"  ✓ Saved equity curve to {curve_path}")
    print(f"  ✓ Saved metrics to {metrics_path}")

    if args.plot:
        plot_path = output_dir / f"{name}_equity_curve.png"
        save_plot(result, plot_path)
        print(f"  ✓ Saved chart to {plot_path}")


if __name__ == "__main__":
    main()
