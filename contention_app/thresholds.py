"""
Gate a run summary against threshold configuration.

After a run completes the CLI (or the Locust ``quitting`` hook) decides
whether the run passes.  Limits come from a YAML file such as::

    max_failure_rate_percent: 1.0
    max_p95_ms: 500

- **Failure rate (%)** -- ``(FAILED + PARSE_ERROR) / total x 100``.
  Tolerated duplicates do not count against it.
- **P95 latency (ms)** -- 95th percentile of per-request latency.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "the run could not even start".
"""

from __future__ import annotations

from pathlib import Path

import yaml

from contention_app.errors import ConfigurationError
from contention_app.models import OutcomeCategory
from contention_app.outcomes import RunSummary

EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SETUP_ERROR = 2


def load_thresholds(path: Path) -> dict[str, float]:
    """
    Read threshold limits from a YAML file.

    Raises:
        ConfigurationError: If the file cannot be read or either key is
            missing or non-numeric.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to read thresholds file {path}: {exc}") from exc

    try:
        max_failure_rate = float(data["max_failure_rate_percent"])
        max_p95_ms = float(data["max_p95_ms"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(
            "Thresholds file must define numeric max_failure_rate_percent and max_p95_ms"
        ) from exc

    return {
        "max_failure_rate_percent": max_failure_rate,
        "max_p95_ms": max_p95_ms,
    }


def evaluate(summary: RunSummary, thresholds: dict[str, float]) -> bool:
    """Return True when *summary* is within every limit."""
    return (
        summary.failure_rate_percent <= thresholds["max_failure_rate_percent"]
        and summary.p95_ms <= thresholds["max_p95_ms"]
    )


def print_summary(summary: RunSummary, thresholds: dict[str, float] | None = None) -> None:
    """Print a human-readable results table to stdout for CI logs."""
    print("Run Summary")
    print("-" * 60)
    print(f"{'Category':<22}{'Count':>12}")
    print("-" * 60)
    for category in OutcomeCategory:
        print(f"{category.value:<22}{summary.count(category):>12}")
    print(f"{'total':<22}{summary.total:>12}")
    print(f"{'distinct resources':<22}{summary.distinct_resources:>12}")
    print("-" * 60)

    if thresholds is None:
        print(f"Failure rate: {summary.failure_rate_percent:.2f}%  P95: {summary.p95_ms:.2f} ms")
        return

    max_failure_rate = thresholds["max_failure_rate_percent"]
    max_p95_ms = thresholds["max_p95_ms"]
    failure_status = "PASS" if summary.failure_rate_percent <= max_failure_rate else "FAIL"
    p95_status = "PASS" if summary.p95_ms <= max_p95_ms else "FAIL"

    print(f"{'Metric':<22}{'Actual':>12}{'Limit':>14}{'Status':>12}")
    print(
        f"{'Failure rate (%)':<22}{summary.failure_rate_percent:>12.2f}"
        f"{max_failure_rate:>14.2f}{failure_status:>12}"
    )
    print(f"{'P95 latency (ms)':<22}{summary.p95_ms:>12.2f}{max_p95_ms:>14.2f}{p95_status:>12}")
    print("-" * 60)
    print(f"Overall: {'PASS' if evaluate(summary, thresholds) else 'FAIL'}")
