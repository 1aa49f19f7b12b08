"""
Command-line entry point.

Runs one built-in scenario under the thread scheduler, prints the run
summary, and optionally gates it against a thresholds file::

    JWT_SECRET=... BASE_URL=http://localhost:8080 \\
        python -m contention_app --scenario select_seat_baseline

    # Shrink every stage to a tenth for a quick smoke run
    python -m contention_app --scenario select_seat_contention --time-scale 0.1

Exit codes: ``0`` pass, ``1`` threshold breach, ``2`` setup error (the
run never started).
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path

from contention_app.errors import ConfigurationError
from contention_app.run import execute_run, setup_run
from contention_app.scenario import SCENARIO_NAMES
from contention_app.thresholds import (
    EXIT_PASS,
    EXIT_SETUP_ERROR,
    EXIT_THRESHOLD_BREACH,
    evaluate,
    load_thresholds,
    print_summary,
)

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for a harness run."""
    parser = argparse.ArgumentParser(
        description="Run a seat-contention load scenario against the ticketing API."
    )
    parser.add_argument(
        "--scenario",
        required=True,
        choices=sorted(SCENARIO_NAMES),
        help="Built-in scenario to run",
    )
    parser.add_argument(
        "--env",
        default=None,
        help="Configuration environment (development, testing, production)",
    )
    parser.add_argument(
        "--time-scale",
        type=float,
        default=1.0,
        help="Multiplier applied to every ramp stage duration",
    )
    parser.add_argument(
        "--thresholds",
        type=Path,
        default=None,
        help="Path to a thresholds YAML file; omit to skip gating",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for allocation and think-time randomness",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: set up, run, summarise, gate.

    Returns:
        ``EXIT_PASS`` if the run met its thresholds (or none were given),
        ``EXIT_THRESHOLD_BREACH`` if any were exceeded, or
        ``EXIT_SETUP_ERROR`` if the run could not be set up.
    """
    args = parse_args(argv)

    try:
        thresholds = load_thresholds(args.thresholds) if args.thresholds else None
        run = setup_run(
            args.scenario,
            args.env,
            rng=random.Random(args.seed) if args.seed is not None else None,
            time_scale=args.time_scale,
        )
    except ConfigurationError as exc:
        print(f"Setup failed: {exc}", file=sys.stderr)
        return EXIT_SETUP_ERROR

    summary = execute_run(run)
    print_summary(summary, thresholds)

    if thresholds is not None and not evaluate(summary, thresholds):
        return EXIT_THRESHOLD_BREACH
    return EXIT_PASS


if __name__ == "__main__":
    raise SystemExit(main())
