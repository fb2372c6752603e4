"""Command-line entry point.

Usage:
    python -m chemostat_ibm [--config base.yaml] [--scenario scenario.yaml]
                            [--steps 100] [--seed 42] [--replicates 10]
                            [--cores 4] [--out results/timeseries.csv]
"""

import argparse
import logging
import sys
from pathlib import Path

from chemostat_ibm.config import ParameterError, load_config
from chemostat_ibm.ensemble import run_replicates, summarize
from chemostat_ibm.observers import save_timeseries

logger = logging.getLogger("chemostat_ibm")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chemostat_ibm",
        description="Individual-based chemostat simulation",
    )
    parser.add_argument("--config", type=str, default=None,
                        help="Base configuration YAML (defaults built in)")
    parser.add_argument("--scenario", type=str, default=None,
                        help="Scenario override YAML")
    parser.add_argument("--steps", type=int, default=None,
                        help="Number of steps (overrides simulation.n_steps)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Master RNG seed")
    parser.add_argument("--replicates", type=int, default=None,
                        help="Number of independent replicates")
    parser.add_argument("--cores", type=int, default=None,
                        help="Number of parallel workers")
    parser.add_argument("--out", type=str, default=None,
                        help="Output CSV (default: output.directory/output.filename)")
    parser.add_argument("--summary", action="store_true",
                        help="Also print the per-time mean/std across replicates")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cli_overrides = {"simulation": {}}
    if args.steps is not None:
        cli_overrides["simulation"]["n_steps"] = args.steps
    if args.seed is not None:
        cli_overrides["simulation"]["seed"] = args.seed
    if args.replicates is not None:
        cli_overrides["simulation"]["n_replicates"] = args.replicates
    if args.cores is not None:
        cli_overrides["simulation"]["workers"] = args.cores

    try:
        config = load_config(args.config, args.scenario, cli_overrides)
    except ParameterError as e:
        logger.error("invalid parameter %s = %r: %s", e.name, e.value, e)
        return 2
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 2

    frame = run_replicates(config)

    out = Path(args.out) if args.out else (
        Path(config.output.directory) / config.output.filename
    )
    save_timeseries(frame, out)
    logger.info("wrote %d rows to %s", len(frame), out)

    if args.summary:
        print(summarize(frame).to_string())
    return 0


if __name__ == "__main__":
    sys.exit(main())
