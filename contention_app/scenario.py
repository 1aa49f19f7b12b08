"""
Scenario definitions and the per-VU scenario loop.

A :class:`Scenario` names one workload: which operation each iteration
issues, how the target resource is allocated, whether a successful
selection is released again, and how long the simulated user thinks.
:class:`ScenarioLoop` drives one iteration of it for a VU::

    Idle -> RequestInFlight -> Classified -> (Compensating) -> ThinkWait -> Idle

and keeps looping until the ramp profile says the VU is done.

Key Concepts Demonstrated:
- Allocation decided by a pure strategy, execution by a shared executor
- Compensating deselect only after a successful select, which lets a
  bounded seat range sustain unbounded iterations
- Per-request failures recorded and skipped, never raised
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from config import Config
from contention_app.allocation import (
    AllocationStrategy,
    GradeSelection,
    assign,
    grades_for_iteration,
)
from contention_app.classifier import classify, describe_failure
from contention_app.errors import ConfigurationError
from contention_app.executor import RequestExecutor, build_tags
from contention_app.identity import identity_for
from contention_app.models import (
    Identity,
    Operation,
    OutcomeCategory,
    RequestOutcome,
    RunParameters,
    VUContext,
)
from contention_app.outcomes import OutcomeRecorder

logger = logging.getLogger(__name__)

Sleep = Callable[[float], None]

_SEAT_OPERATIONS = frozenset({Operation.SELECT_RESOURCE, Operation.DESELECT_RESOURCE})

# Names of the built-in scenarios, known without reading any configuration
SCENARIO_NAMES = (
    "get_event",
    "get_seats_by_grade",
    "create_pre_register",
    "create_pre_register_once",
    "select_seat",
    "select_seat_baseline",
    "select_seat_contention",
    "select_seat_rotating",
)


@dataclass(frozen=True)
class Scenario:
    """
    Static description of one workload.

    Attributes:
        name: Registry key, also sent as the ``scenario`` tag.
        operation: Primary operation of every iteration.
        strategy: How the target resource is allocated.
        event_target: Event id used by fixed-target and seat scenarios.
        resource_id_range: Upper bound of the resource id range.
        hot_set_size: Contended subset size for hot-set strategies.
        grade_selection: Grade plan for seat-listing reads.
        compensate: Release a successful selection within the iteration.
        think_time: ``(min, max)`` seconds of simulated reaction time.
        between_reads: Pause between consecutive reads of one iteration.
        cooldown: Pause after the compensating release.
        iterations: Per-VU iteration cap (fixed-iteration runs only).
        pool_cap: Upper bound on the identity pool (seeded user count).
    """

    name: str
    operation: Operation
    strategy: AllocationStrategy
    event_target: int
    resource_id_range: int
    hot_set_size: int | None = None
    grade_selection: GradeSelection = GradeSelection.NONE
    compensate: bool = False
    think_time: tuple[float, float] = (0.0, 0.0)
    between_reads: float = 0.0
    cooldown: float = 0.0
    iterations: int | None = None
    pool_cap: int | None = None

    @property
    def fixed_iterations(self) -> bool:
        return self.iterations is not None


def scenario_registry(cfg: type[Config]) -> dict[str, Scenario]:
    """Build the built-in scenarios from a configuration class."""
    think = (cfg.THINK_TIME_MIN, cfg.THINK_TIME_MAX)
    read_think = (cfg.READ_THINK_TIME, cfg.READ_THINK_TIME)
    scenarios = [
        # Users open random event detail pages.
        Scenario(
            name="get_event",
            operation=Operation.READ_EVENT,
            strategy=AllocationStrategy.UNIFORM_RANDOM,
            event_target=cfg.SEAT_EVENT_ID,
            resource_id_range=cfg.EVENT_ID_RANGE,
            think_time=read_think,
        ),
        # VIP tab first, then one of R/S/A.
        Scenario(
            name="get_seats_by_grade",
            operation=Operation.READ_SEATS,
            strategy=AllocationStrategy.FIXED_TARGET,
            event_target=cfg.SEAT_EVENT_ID,
            resource_id_range=cfg.SEAT_EVENT_ID,
            grade_selection=GradeSelection.VIP_THEN_RANDOM,
            think_time=read_think,
            between_reads=cfg.BETWEEN_READS,
        ),
        Scenario(
            name="create_pre_register",
            operation=Operation.CREATE_REGISTRATION,
            strategy=AllocationStrategy.FIXED_TARGET,
            event_target=cfg.EVENT_ID,
            resource_id_range=cfg.EVENT_ID,
            think_time=think,
            pool_cap=cfg.USER_COUNT,
        ),
        # One registration per VU, no think time: clean seed data.
        Scenario(
            name="create_pre_register_once",
            operation=Operation.CREATE_REGISTRATION,
            strategy=AllocationStrategy.FIXED_TARGET,
            event_target=cfg.EVENT_ID,
            resource_id_range=cfg.EVENT_ID,
            iterations=1,
        ),
        Scenario(
            name="select_seat",
            operation=Operation.SELECT_RESOURCE,
            strategy=AllocationStrategy.UNIFORM_RANDOM,
            event_target=cfg.SEAT_EVENT_ID,
            resource_id_range=cfg.RANDOM_SEATS,
            think_time=read_think,
        ),
        # Non-competitive baseline: each VU owns one seat.
        Scenario(
            name="select_seat_baseline",
            operation=Operation.SELECT_RESOURCE,
            strategy=AllocationStrategy.PER_VU,
            event_target=cfg.SEAT_EVENT_ID,
            resource_id_range=cfg.TOTAL_SEATS,
            compensate=True,
            think_time=think,
            cooldown=cfg.COOLDOWN,
        ),
        Scenario(
            name="select_seat_contention",
            operation=Operation.SELECT_RESOURCE,
            strategy=AllocationStrategy.HOT_SET_RANDOM,
            event_target=cfg.SEAT_EVENT_ID,
            resource_id_range=cfg.RANDOM_SEATS,
            hot_set_size=cfg.HOT_SEATS,
            think_time=think,
        ),
        Scenario(
            name="select_seat_rotating",
            operation=Operation.SELECT_RESOURCE,
            strategy=AllocationStrategy.ROTATING_HOT_SET,
            event_target=cfg.SEAT_EVENT_ID,
            resource_id_range=cfg.RANDOM_SEATS,
            hot_set_size=cfg.HOT_SEATS,
            compensate=True,
            think_time=think,
        ),
    ]
    return {scenario.name: scenario for scenario in scenarios}


def get_scenario(name: str, cfg: type[Config]) -> Scenario:
    registry = scenario_registry(cfg)
    try:
        return registry[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown scenario {name!r}; choose one of: {', '.join(sorted(registry))}"
        ) from None


class VirtualUserHandle(Protocol):
    """What the scenario loop needs from the host runtime's VU."""

    vu_index: int
    iteration_index: int

    def should_continue(self) -> bool: ...

    def sleep(self, seconds: float) -> None: ...


class ScenarioLoop:
    """
    Drives iterations of one scenario for any number of VUs.

    The loop holds no per-VU state; VU index and iteration counter come
    from the caller, so one instance is shared read-only by every VU.

    Args:
        scenario: Workload definition.
        params: Run parameters shared by all VUs.
        pool: Identity pool built at setup.
        executor: Sends the HTTP calls.
        recorder: Receives every classified outcome.
        sleep: Default sleep primitive, used when the caller supplies none.
        rng: Random source for allocation, grade choice, and think time.
    """

    def __init__(
        self,
        scenario: Scenario,
        params: RunParameters,
        pool: Sequence[Identity],
        executor: RequestExecutor,
        recorder: OutcomeRecorder,
        *,
        sleep: Sleep,
        rng: random.Random | None = None,
    ):
        if not pool:
            raise ConfigurationError("identity pool is empty")
        self.scenario = scenario
        self.params = params
        self.pool = pool
        self.executor = executor
        self.recorder = recorder
        self.sleep = sleep
        self.rng = rng or random.Random()

    def context_for(self, vu_index: int, iteration_index: int) -> VUContext:
        return VUContext(
            vu_index=vu_index,
            iteration_index=iteration_index,
            identity=identity_for(self.pool, vu_index),
        )

    def think_time(self) -> float:
        low, high = self.scenario.think_time
        if high <= low:
            return low
        return self.rng.uniform(low, high)

    def run_iteration(self, ctx: VUContext, sleep: Sleep | None = None) -> list[RequestOutcome]:
        """Run one full iteration for *ctx* and return its outcomes."""
        sleep = sleep or self.sleep
        scenario = self.scenario
        resource_id = assign(
            scenario.strategy, ctx.vu_index, ctx.iteration_index, self.params, self.rng
        )

        outcomes: list[RequestOutcome] = []
        for position, grade in enumerate(grades_for_iteration(scenario.grade_selection, self.rng)):
            if position:
                sleep(scenario.between_reads)
            outcomes.append(self._perform(scenario.operation, ctx, resource_id, grade))
        primary = outcomes[-1]

        if scenario.compensate:
            # The user looks at the held seat before letting it go.
            sleep(self.think_time())
            if primary.category is OutcomeCategory.CREATED:
                outcomes.append(self._perform(Operation.DESELECT_RESOURCE, ctx, resource_id))
            sleep(scenario.cooldown)
        else:
            sleep(self.think_time())
        return outcomes

    def run_vu(self, vu: VirtualUserHandle) -> None:
        """Loop iterations for one VU until its handle says stop."""
        while vu.should_continue():
            ctx = self.context_for(vu.vu_index, vu.iteration_index)
            self.run_iteration(ctx, sleep=vu.sleep)
            vu.iteration_index += 1

    def _perform(
        self,
        operation: Operation,
        ctx: VUContext,
        resource_id: int,
        grade: str | None = None,
    ) -> RequestOutcome:
        if operation in _SEAT_OPERATIONS:
            event_id, seat_id = self.params.event_target, resource_id
        else:
            event_id, seat_id = resource_id, None

        tags = build_tags(
            operation,
            scenario=self.scenario.name,
            run_id=self.params.run_id,
            event_id=event_id,
            resource_id=resource_id,
            identity_id=ctx.identity.id,
            seat_id=seat_id,
            grade=grade,
        )
        raw = self.executor.execute(
            operation,
            ctx.identity,
            event_id=event_id,
            seat_id=seat_id,
            grade=grade,
            tags=tags,
        )
        category = classify(operation, raw)
        outcome = RequestOutcome(
            operation=operation,
            http_status=raw.status,
            category=category,
            resource_id=resource_id,
            identity_id=ctx.identity.id,
            vu_index=ctx.vu_index,
            iteration_index=ctx.iteration_index,
            timestamp=datetime.now(timezone.utc),
            elapsed_ms=raw.elapsed_ms,
            message=raw.message,
            tags=tags,
        )

        if category.is_failure:
            logger.error(
                "%s failed [%s]: %s (eventId=%s, seatId=%s, userId=%s)",
                operation.value,
                raw.status,
                describe_failure(operation, raw),
                event_id,
                seat_id,
                ctx.identity.id,
            )
        elif category is OutcomeCategory.DUPLICATE_IGNORED:
            logger.debug(
                "PreRegister already exists for eventId=%s userId=%s (duplicate ignored)",
                event_id,
                ctx.identity.id,
            )
        else:
            logger.debug(
                "%s %s: eventId=%s, seatId=%s, userId=%s",
                operation.value,
                category.value,
                event_id,
                seat_id,
                ctx.identity.id,
            )

        self.recorder.record(outcome)
        return outcome
