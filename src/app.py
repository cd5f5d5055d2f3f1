"""
Application entry point.

This module defines a simple command‑line interface for running the
stochastic trend strategy over historical data.  It loads and
validates the configuration, runs the backtest and logs the summary
metrics.
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from .config.schema import load_config
from .execution.backtest_exec import BacktestEngine
from .reporting.metrics import compute_metrics


def _setup_logging(verbose: bool) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Parse command‑line arguments and run the requested mode."""
    parser = argparse.ArgumentParser(description="Stochastic trend FX strategy")
    parser.add_argument('mode', choices=['backtest'], help="Operating mode")
    parser.add_argument('--config', default='config.yaml', help="Path to configuration YAML file")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging")
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    config = load_config(args.config)

    logging.info("Running backtest for %s...", config.instrument.symbol)
    engine = BacktestEngine(config)
    trades, equity_curve = engine.run()
    metrics = compute_metrics(
        trades,
        equity_curve,
        initial_equity=config.initial_equity,
        contract_size=config.instrument.contract_size,
    )
    for key, value in metrics.items():
        logging.info("%s: %s", key, value)
    logging.info("Backtest complete.")


if __name__ == '__main__':
    main()
