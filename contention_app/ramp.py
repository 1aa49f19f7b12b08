"""
Ramp profiles: how many virtual users are alive, and for how long.

A profile only gates VU population and termination.  The scenario loop
asks it two questions -- "how many VUs should be active at elapsed time
*t*?" and "may this VU run iteration *n*?" -- and behaves identically
under both variants.

- :class:`StagedProfile` ramps linearly between stage targets, starting
  from zero, the way stage-based load runtimes do.
- :class:`FixedIterationProfile` starts *N* VUs at once and lets each run
  a fixed number of iterations (one, for duplicate-free seed data).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from contention_app.errors import ConfigurationError


@dataclass(frozen=True)
class Stage:
    duration: float
    target: int


@dataclass(frozen=True)
class StagedProfile:
    stages: tuple[Stage, ...]

    def __post_init__(self) -> None:
        if not self.stages:
            raise ConfigurationError("A staged profile needs at least one stage")
        for stage in self.stages:
            if stage.duration < 0 or stage.target < 0:
                raise ConfigurationError(f"Invalid stage: {stage}")

    @property
    def max_vus(self) -> int:
        return max(stage.target for stage in self.stages)

    @property
    def total_duration(self) -> float:
        return sum(stage.duration for stage in self.stages)

    def allows(self, iteration_index: int) -> bool:
        # Staged runs are bounded by time, not by iteration count.
        return True

    def target_at(self, elapsed: float) -> int | None:
        """
        Return the number of VUs that should be active at *elapsed* seconds.

        Returns ``None`` once every stage has finished.
        """
        previous = 0
        start = 0.0
        for stage in self.stages:
            end = start + stage.duration
            if elapsed < end:
                progress = (elapsed - start) / stage.duration if stage.duration else 1.0
                return round(previous + (stage.target - previous) * progress)
            previous = stage.target
            start = end
        return None


@dataclass(frozen=True)
class FixedIterationProfile:
    vus: int
    iterations: int = 1
    max_duration: float = 300.0

    def __post_init__(self) -> None:
        if self.vus <= 0:
            raise ConfigurationError(f"VU count must be positive, got {self.vus}")
        if self.iterations <= 0:
            raise ConfigurationError(f"Iterations must be positive, got {self.iterations}")

    @property
    def max_vus(self) -> int:
        return self.vus

    @property
    def total_duration(self) -> float:
        return self.max_duration

    def allows(self, iteration_index: int) -> bool:
        return iteration_index < self.iterations

    def target_at(self, elapsed: float, finished_vus: int = 0) -> int | None:
        """
        Return the VU count, or ``None`` once the run is over.

        The run is over when *finished_vus* VUs have used up their
        iterations, or when *max_duration* has passed.
        """
        if elapsed >= self.max_duration or finished_vus >= self.vus:
            return None
        return self.vus


def default_stages(
    ramp_up_vus: int,
    peak_vus: int,
    durations: Sequence[float],
    time_scale: float = 1.0,
) -> StagedProfile:
    """
    Build the standard five-stage profile.

    Ramp up to *ramp_up_vus*, hold, climb to *peak_vus*, hold, then ramp
    down to zero.  *time_scale* multiplies every duration.
    """
    if len(durations) != 5:
        raise ConfigurationError("Five stage durations are required")
    if time_scale <= 0:
        raise ConfigurationError(f"time scale must be positive, got {time_scale}")
    targets = (ramp_up_vus, ramp_up_vus, peak_vus, peak_vus, 0)
    return StagedProfile(
        tuple(
            Stage(duration=float(duration) * time_scale, target=int(target))
            for duration, target in zip(durations, targets)
        )
    )
