"""
Resource allocation strategies.

Each strategy is a pure function of ``(vu_index, iteration_index, params)``
returning the resource id a virtual user targets on one iteration.  The
strategy is the only input that changes between a zero-contention baseline
and a contention stress test; the request and classification machinery is
shared.

Strategies:

- ``UNIFORM_RANDOM`` -- any id in the full range; collisions are expected.
- ``HOT_SET_RANDOM`` -- any id in a small hot set, inflating collisions.
- ``PER_VU`` -- one fixed id per VU, so concurrently running VUs never
  share a seat (baseline).
- ``ROTATING_HOT_SET`` -- deterministic rotation through the hot set, which
  gives a reproducible collision schedule across repeated runs.
- ``FIXED_TARGET`` -- always the scenario's event; used where the contended
  resource is the event itself (pre-registration, seat listing).
"""

from __future__ import annotations

import random
from enum import Enum

from contention_app.errors import ConfigurationError
from contention_app.models import RunParameters


class AllocationStrategy(str, Enum):
    UNIFORM_RANDOM = "uniform_random"
    HOT_SET_RANDOM = "hot_set_random"
    PER_VU = "per_vu"
    ROTATING_HOT_SET = "rotating_hot_set"
    FIXED_TARGET = "fixed_target"


class GradeSelection(str, Enum):
    """How seat-listing reads pick grades within one iteration."""

    NONE = "none"
    VIP_THEN_RANDOM = "vip_then_random"


# Every user lands on the VIP tab first, then switches to one other tab.
DEFAULT_GRADE = "VIP"
ADDITIONAL_GRADES = ("R", "S", "A")


def uniform_random(size: int, rng: random.Random) -> int:
    return int(rng.random() * size) + 1


def per_vu(vu_index: int, total: int) -> int:
    return ((vu_index - 1) % total) + 1


def rotating(vu_index: int, iteration_index: int, hot_set_size: int) -> int:
    return ((vu_index - 1 + iteration_index) % hot_set_size) + 1


def _require_positive(name: str, value: int | None) -> int:
    if value is None or int(value) <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value}")
    return int(value)


def validate(strategy: AllocationStrategy, params: RunParameters) -> None:
    """
    Check that *params* carries what *strategy* needs.

    Raises:
        ConfigurationError: If a required range or hot-set size is missing
            or not positive.
    """
    if strategy in (AllocationStrategy.HOT_SET_RANDOM, AllocationStrategy.ROTATING_HOT_SET):
        _require_positive("hot_set_size", params.hot_set_size)
    elif strategy is AllocationStrategy.FIXED_TARGET:
        _require_positive("event_target", params.event_target)
    else:
        _require_positive("resource_id_range", params.resource_id_range)


def assign(
    strategy: AllocationStrategy,
    vu_index: int,
    iteration_index: int,
    params: RunParameters,
    rng: random.Random | None = None,
) -> int:
    """
    Return the resource id for one VU iteration.

    Args:
        strategy: The scenario's allocation strategy.
        vu_index: 1-based VU number.
        iteration_index: 0-based iteration counter of that VU.
        params: Run parameters (range, hot set, event target).
        rng: Random source for the randomized strategies; defaults to the
            module-level generator.
    """
    if strategy is AllocationStrategy.UNIFORM_RANDOM:
        return uniform_random(params.resource_id_range, rng or random)
    if strategy is AllocationStrategy.HOT_SET_RANDOM:
        return uniform_random(params.hot_set_size, rng or random)
    if strategy is AllocationStrategy.PER_VU:
        return per_vu(vu_index, params.resource_id_range)
    if strategy is AllocationStrategy.ROTATING_HOT_SET:
        return rotating(vu_index, iteration_index, params.hot_set_size)
    if strategy is AllocationStrategy.FIXED_TARGET:
        return params.event_target
    raise ConfigurationError(f"Unknown allocation strategy: {strategy!r}")


def grades_for_iteration(
    selection: GradeSelection,
    rng: random.Random | None = None,
) -> list[str | None]:
    """Return the seat grades one iteration reads, in order."""
    if selection is GradeSelection.VIP_THEN_RANDOM:
        return [DEFAULT_GRADE, (rng or random).choice(ADDITIONAL_GRADES)]
    return [None]
