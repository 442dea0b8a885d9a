"""Run the synthetic MACD backtest from the command line.

The summary and equity curve are printed to stdout in the marker format the
dashboard's script runner parses::

    python -m tradebot.cli --seed 42 --output-dir out --plot

With ``--output-dir`` the same data is also written as ``summary.json`` and
``equity_curve.csv`` (plus ``equity_curve.png`` when ``--plot`` is given).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tradebot.engine import BacktestConfig, BacktestError, BacktestRun, run_backtest
from tradebot.reports.serializer import equity_curve_to_csv, format_script_output, serialise_summary

DEFAULTS = BacktestConfig()


def write_outputs(run: BacktestRun, output_dir: Path, plot: bool = False) -> List[Path]:
    """Persist the run's summary, equity CSV and optional chart to ``output_dir``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []

    summary_path = output_dir / "summary.json"
    summary_path.write_text(json.dumps(serialise_summary(run.summary, json_safe=True), indent=2))
    written.append(summary_path)

    csv_path = output_dir / "equity_curve.csv"
    csv_path.write_text(equity_curve_to_csv(run.equity))
    written.append(csv_path)

    if plot:
        from tradebot.reports.plotting import plot_equity_curve

        png = plot_equity_curve(run.equity, output_dir / "equity_curve.png", title="MACD backtest equity")
        if png is not None:
            written.append(png)
    for path in written:
        print(f"Wrote {path.name}", file=sys.stderr)
    return written


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synthetic MACD backtest")
    parser.add_argument("--seed", type=int, default=DEFAULTS.seed, help="Random walk seed")
    parser.add_argument("--length", type=int, default=DEFAULTS.length, help="Number of bars")
    parser.add_argument("--start-price", type=float, default=DEFAULTS.start_price, help="First bar price")
    parser.add_argument("--drift-scale", type=float, default=DEFAULTS.drift_scale, help="Per-bar shock scale")
    parser.add_argument("--fast", type=int, default=DEFAULTS.fast_period, help="Fast EMA period")
    parser.add_argument("--slow", type=int, default=DEFAULTS.slow_period, help="Slow EMA period")
    parser.add_argument("--signal", type=int, default=DEFAULTS.signal_period, help="Signal EMA period")
    parser.add_argument("--capital", type=float, default=DEFAULTS.initial_capital, help="Starting capital")
    parser.add_argument("--fee", type=float, default=DEFAULTS.fee_rate, help="Fee per position change (fraction)")
    parser.add_argument(
        "--periods-per-year", type=int, default=DEFAULTS.periods_per_year, help="Sharpe annualisation factor"
    )
    parser.add_argument("--output-dir", type=Path, default=None, help="Directory for summary/CSV outputs")
    parser.add_argument("--plot", action="store_true", help="Also save an equity curve PNG")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = BacktestConfig(
        seed=args.seed,
        length=args.length,
        start_price=args.start_price,
        drift_scale=args.drift_scale,
        fast_period=args.fast,
        slow_period=args.slow,
        signal_period=args.signal,
        initial_capital=args.capital,
        fee_rate=args.fee,
        periods_per_year=args.periods_per_year,
    )
    try:
        run = run_backtest(config)
    except BacktestError as exc:
        print(f"Backtest failed: {exc}", file=sys.stderr)
        return 1

    sys.stdout.write(format_script_output(run.summary, run.equity))
    if args.output_dir is not None:
        write_outputs(run, args.output_dir, plot=args.plot)
    return 0


if __name__ == "__main__":
    sys.exit(main())
