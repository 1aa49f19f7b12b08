"""
Run setup and execution.

:func:`setup_run` is the setup phase: it resolves configuration, mints the
identity pool, snapshots the run parameters, and wires the scenario loop.
Every way a run can be misconfigured surfaces here as a
:class:`~contention_app.errors.ConfigurationError`, before a single VU
starts.  :func:`execute_run` then hands the loop to a scheduler and
returns the summary.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial

from config import Config, get_config, load_jwt_secret
from contention_app import configure_logging
from contention_app.allocation import AllocationStrategy, validate
from contention_app.executor import RequestExecutor
from contention_app.identity import build_identity_pool, mint_token
from contention_app.models import Identity, Operation, RunParameters
from contention_app.outcomes import OutcomeRecorder, RunSummary
from contention_app.ramp import FixedIterationProfile, StagedProfile, default_stages
from contention_app.scenario import Scenario, ScenarioLoop, get_scenario
from contention_app.scheduler import ThreadScheduler

logger = logging.getLogger(__name__)

# Event whose pre-registration window has to be opened by hand before a run.
MANUAL_WINDOW_EVENT_ID = 5
# Event whose seeded users are already pre-registered.
PRE_REGISTERED_EVENT_ID = 1


@dataclass
class Run:
    """Everything a scheduler needs to execute one scenario."""

    config: type[Config]
    scenario: Scenario
    params: RunParameters
    pool: tuple[Identity, ...]
    profile: StagedProfile | FixedIterationProfile
    loop: ScenarioLoop
    recorder: OutcomeRecorder


def new_run_id(now: datetime | None = None) -> str:
    """Return a timestamp run id such as ``2025-01-31T09-15-02-123Z``."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def max_vus_for(scenario: Scenario, cfg: type[Config]) -> int:
    if scenario.fixed_iterations:
        return cfg.VUS
    return max(cfg.RAMP_UP_VUS, cfg.PEAK_VUS)


def build_profile(
    scenario: Scenario,
    cfg: type[Config],
    time_scale: float = 1.0,
) -> StagedProfile | FixedIterationProfile:
    if scenario.fixed_iterations:
        return FixedIterationProfile(
            vus=cfg.VUS,
            iterations=scenario.iterations,
            max_duration=cfg.FIXED_RUN_MAX_DURATION,
        )
    return default_stages(cfg.RAMP_UP_VUS, cfg.PEAK_VUS, cfg.STAGE_DURATIONS, time_scale)


def build_run_parameters(scenario: Scenario, max_vus: int, run_id: str) -> RunParameters:
    """
    Snapshot the run parameters for *scenario*.

    The identity pool holds one identity per VU, capped at the number of
    seeded users where the scenario has such a cap.
    """
    pool_size = min(max_vus, scenario.pool_cap) if scenario.pool_cap else max_vus
    params = RunParameters(
        pool_size=pool_size,
        resource_id_range=scenario.resource_id_range,
        event_target=scenario.event_target,
        run_id=run_id,
        hot_set_size=scenario.hot_set_size,
    )
    validate(scenario.strategy, params)
    return params


def _log_run_banner(scenario: Scenario, params: RunParameters, max_vus: int) -> None:
    logger.info("Scenario %s: testing with %s users (run id %s)", scenario.name, params.pool_size, params.run_id)

    if scenario.strategy is AllocationStrategy.FIXED_TARGET:
        logger.info("   - Event ID: %s", params.event_target)
    if scenario.strategy in (AllocationStrategy.HOT_SET_RANDOM, AllocationStrategy.ROTATING_HOT_SET):
        logger.info(
            "Competitive test - hot seats: %s, max VUs: %s, expected contention %.2f:1",
            params.hot_set_size,
            max_vus,
            max_vus / params.hot_set_size,
        )

    if scenario.operation is Operation.CREATE_REGISTRATION:
        if params.event_target == MANUAL_WINDOW_EVENT_ID:
            logger.info(
                "Event #%s: open its pre-registration window first: UPDATE events SET "
                "pre_open_at = NOW() - INTERVAL '1 day', pre_close_at = NOW() + INTERVAL '7 days' "
                "WHERE id = %s;",
                MANUAL_WINDOW_EVENT_ID,
                MANUAL_WINDOW_EVENT_ID,
            )
        elif params.event_target == PRE_REGISTERED_EVENT_ID:
            logger.warning("Event #%s already has users 1~500 pre-registered.", PRE_REGISTERED_EVENT_ID)

    if scenario.pool_cap and max_vus > scenario.pool_cap:
        logger.warning(
            "Max VUs (%s) exceeds the seeded user count (%s); user ids will cycle.",
            max_vus,
            scenario.pool_cap,
        )


def setup_run(
    scenario_name: str,
    config_name: str | None = None,
    *,
    secret: str | None = None,
    executor: RequestExecutor | None = None,
    rng: random.Random | None = None,
    time_scale: float = 1.0,
) -> Run:
    """
    Build a ready-to-execute run.

    Args:
        scenario_name: Key of a built-in scenario.
        config_name: Configuration environment; ``None`` reads
            ``CONTENTION_ENV``.
        secret: Signing secret; ``None`` reads it from the environment.
        executor: Request executor override (tests inject fakes).
        rng: Random source for allocation and think time.
        time_scale: Multiplier applied to every stage duration.

    Raises:
        ConfigurationError: If the secret is missing, the pool would be
            empty, or the scenario parameters are invalid.
    """
    cfg = get_config(config_name)
    configure_logging(cfg.DEBUG)

    scenario = get_scenario(scenario_name, cfg)
    if secret is None:
        secret = load_jwt_secret(testing=cfg.TESTING)

    max_vus = max_vus_for(scenario, cfg)
    profile = build_profile(scenario, cfg, time_scale)
    params = build_run_parameters(scenario, max_vus, new_run_id())
    pool = tuple(
        build_identity_pool(
            params.pool_size,
            secret,
            mint=partial(mint_token, expiry_seconds=cfg.TOKEN_EXPIRY_SECONDS),
        )
    )
    _log_run_banner(scenario, params, max_vus)

    executor = executor or RequestExecutor(
        cfg.BASE_URL,
        api_prefix=cfg.API_PREFIX,
        timeout=cfg.REQUEST_TIMEOUT,
    )
    recorder = OutcomeRecorder()
    loop = ScenarioLoop(
        scenario,
        params,
        pool,
        executor,
        recorder,
        sleep=time.sleep,
        rng=rng,
    )
    return Run(
        config=cfg,
        scenario=scenario,
        params=params,
        pool=pool,
        profile=profile,
        loop=loop,
        recorder=recorder,
    )


def execute_run(run: Run, scheduler: ThreadScheduler | None = None) -> RunSummary:
    """Execute *run* under *scheduler* and return the run summary."""
    scheduler = scheduler or ThreadScheduler()
    try:
        scheduler.run(run.profile, run.loop.run_vu)
    finally:
        run.recorder.close()
    return run.recorder.summary()
