"""
In-process outcome recording and run summaries.

Virtual users hand every classified outcome to an :class:`OutcomeRecorder`.
Appending to a :class:`collections.deque` is atomic, so recording never
makes one VU wait on another.  The summary is computed once the run is
over; the recorder is closed at that point so late completions of
abandoned requests are not counted.
"""

from __future__ import annotations

import statistics
from collections import Counter, defaultdict, deque
from collections.abc import Iterable
from dataclasses import dataclass

from contention_app.models import Operation, OutcomeCategory, RequestOutcome


@dataclass(frozen=True)
class RunSummary:
    """
    Aggregated view of one run.

    ``failure_rate_percent`` counts only ``FAILED`` and ``PARSE_ERROR``;
    tolerated duplicates are successes for gating purposes.
    """

    total: int
    counts: dict[OutcomeCategory, int]
    failure_rate_percent: float
    p95_ms: float
    distinct_resources: int

    def count(self, category: OutcomeCategory) -> int:
        return self.counts.get(category, 0)


def p95(values: list[float]) -> float:
    """Return the 95th percentile of *values* (``0.0`` when empty)."""
    if not values:
        return 0.0
    if len(values) == 1:
        return values[0]
    return statistics.quantiles(values, n=100, method="inclusive")[94]


class OutcomeRecorder:
    """Collects outcomes from all VUs for the end-of-run summary."""

    def __init__(self) -> None:
        self._outcomes: deque[RequestOutcome] = deque()
        self._closed = False

    def record(self, outcome: RequestOutcome) -> None:
        # Requests abandoned at run end may still complete; they are dropped.
        if self._closed:
            return
        self._outcomes.append(outcome)

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def outcomes(self) -> list[RequestOutcome]:
        return list(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def primary_outcomes(self, operations: Iterable[Operation]) -> list[RequestOutcome]:
        """Outcomes of the given operations only (e.g. excluding compensations)."""
        wanted = set(operations)
        return [outcome for outcome in self._outcomes if outcome.operation in wanted]

    def requested_resources(self, operations: Iterable[Operation] | None = None) -> set[int]:
        outcomes = self.outcomes() if operations is None else self.primary_outcomes(operations)
        return {outcome.resource_id for outcome in outcomes}

    def collisions_by_iteration(
        self, operations: Iterable[Operation] | None = None
    ) -> dict[int, set[int]]:
        """
        Map iteration index to the resource ids requested by two or more VUs.

        Only iterations that had at least one collision appear in the result.
        """
        outcomes = self.outcomes() if operations is None else self.primary_outcomes(operations)
        vus_per_resource: dict[int, dict[int, set[int]]] = defaultdict(lambda: defaultdict(set))
        for outcome in outcomes:
            vus_per_resource[outcome.iteration_index][outcome.resource_id].add(outcome.vu_index)

        collisions: dict[int, set[int]] = {}
        for iteration_index, resources in vus_per_resource.items():
            shared = {resource for resource, vus in resources.items() if len(vus) >= 2}
            if shared:
                collisions[iteration_index] = shared
        return collisions

    def summary(self) -> RunSummary:
        outcomes = self.outcomes()
        counts = Counter(outcome.category for outcome in outcomes)
        total = len(outcomes)
        failures = sum(count for category, count in counts.items() if category.is_failure)
        return RunSummary(
            total=total,
            counts=dict(counts),
            failure_rate_percent=(failures / total * 100.0) if total else 0.0,
            p95_ms=p95([outcome.elapsed_ms for outcome in outcomes]),
            distinct_resources=len({outcome.resource_id for outcome in outcomes}),
        )
