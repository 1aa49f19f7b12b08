"""
Locust as the host runtime for the contention engine.

Each Locust ``User`` is one VU.  Its single ``@task`` runs one iteration of
the shared :class:`~contention_app.scenario.ScenarioLoop`, so Locust only
decides *how many* VUs are alive (through the load shape in
:mod:`contention_app.locustfile`), never what an iteration does.

Key Concepts Demonstrated:
- ``catch_response=True`` so tolerated duplicates count as successes in
  Locust's statistics
- Request ``context`` carrying correlation tags to event listeners
- ``StopUser`` to cap fixed-iteration VUs at their iteration budget
- Identity pool minted once per process, shared read-only by every VU
"""

from __future__ import annotations

import itertools
import logging
import random
from dataclasses import dataclass
from functools import partial
from typing import Any

import gevent
from locust import HttpUser, constant, tag, task
from locust.exception import StopUser

from config import Config, get_config, load_jwt_secret
from contention_app.classifier import classify, describe_failure
from contention_app.executor import RequestExecutor
from contention_app.identity import build_identity_pool, mint_token
from contention_app.models import Identity, Operation, RunParameters
from contention_app.outcomes import OutcomeRecorder
from contention_app.ramp import FixedIterationProfile, StagedProfile
from contention_app.run import build_profile, build_run_parameters, max_vus_for, new_run_id
from contention_app.scenario import Scenario, ScenarioLoop, get_scenario

logger = logging.getLogger(__name__)

# Stats names group requests by route rather than by concrete ids.
_STAT_NAMES = {
    Operation.CREATE_REGISTRATION: "/api/v1/events/[eventId]/pre-registers [POST]",
    Operation.SELECT_RESOURCE: "/api/v1/events/[eventId]/seats/[seatId]/select [POST]",
    Operation.DESELECT_RESOURCE: "/api/v1/events/[eventId]/seats/[seatId]/deselect [DELETE]",
    Operation.READ_EVENT: "/api/v1/events/[eventId] [GET]",
    Operation.READ_SEATS: "/api/v1/events/[eventId]/seats [GET]",
}


class LocustRequestExecutor(RequestExecutor):
    """Sends through a Locust ``HttpSession`` and reports verdicts to Locust."""

    def _extra_request_kwargs(self, operation: Operation, tags: dict[str, str]) -> dict[str, Any]:
        return {"name": _STAT_NAMES[operation], "context": tags}

    def _send(
        self,
        operation: Operation,
        method: str,
        url: str,
        request_kwargs: dict[str, Any],
    ) -> Any:
        with self.session.request(method, url, catch_response=True, **request_kwargs) as response:
            raw = self.to_raw(response, 0.0)
            if classify(operation, raw).is_failure:
                response.failure(describe_failure(operation, raw))
            else:
                response.success()
        return response


@dataclass
class ScenarioState:
    """Per-process state of one scenario, built once during setup."""

    config: type[Config]
    scenario: Scenario
    params: RunParameters
    pool: tuple[Identity, ...]
    profile: StagedProfile | FixedIterationProfile
    recorder: OutcomeRecorder
    # VUs that used up their iteration budget and stopped themselves
    finished_vus: int = 0


_states: dict[str, ScenarioState] = {}


def prepare_scenario(name: str, config_name: str | None = None) -> ScenarioState:
    """
    Build (once) the shared state for scenario *name*.

    Raises:
        ConfigurationError: If the secret is missing or the scenario is
            misconfigured.
    """
    state = _states.get(name)
    if state is not None:
        return state

    cfg = get_config(config_name)
    scenario = get_scenario(name, cfg)
    secret = load_jwt_secret(testing=cfg.TESTING)
    max_vus = max_vus_for(scenario, cfg)
    params = build_run_parameters(scenario, max_vus, new_run_id())
    pool = tuple(
        build_identity_pool(
            params.pool_size,
            secret,
            mint=partial(mint_token, expiry_seconds=cfg.TOKEN_EXPIRY_SECONDS),
        )
    )
    state = ScenarioState(
        config=cfg,
        scenario=scenario,
        params=params,
        pool=pool,
        profile=build_profile(scenario, cfg),
        recorder=OutcomeRecorder(),
    )
    _states[name] = state
    logger.info(
        "Prepared scenario %s: %s identities, run id %s",
        name,
        len(pool),
        params.run_id,
    )
    return state


def prepared_states() -> dict[str, ScenarioState]:
    return dict(_states)


class ContentionUser(HttpUser):
    """
    Base VU: runs one scenario iteration per Locust task execution.

    Think time lives inside the iteration (it differs per phase of the
    select/deselect pair), so Locust's own ``wait_time`` is zero.
    """

    abstract = True
    wait_time = constant(0)
    scenario_name: str

    _vu_numbers = itertools.count(1)

    vu_index: int
    iteration_index: int
    state: ScenarioState
    loop: ScenarioLoop

    def on_start(self) -> None:
        self.state = prepare_scenario(self.scenario_name)
        self.vu_index = next(ContentionUser._vu_numbers)
        self.iteration_index = 0
        executor = LocustRequestExecutor(
            self.host or self.state.config.BASE_URL,
            api_prefix=self.state.config.API_PREFIX,
            timeout=self.state.config.REQUEST_TIMEOUT,
            session=self.client,
        )
        self.loop = ScenarioLoop(
            self.state.scenario,
            self.state.params,
            self.state.pool,
            executor,
            self.state.recorder,
            sleep=gevent.sleep,
            rng=random.Random(),
        )

    def should_continue(self) -> bool:
        return self.state.profile.allows(self.iteration_index)

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            gevent.sleep(seconds)

    @task
    def iterate(self) -> None:
        if not self.should_continue():
            self.state.finished_vus += 1
            raise StopUser()
        ctx = self.loop.context_for(self.vu_index, self.iteration_index)
        self.loop.run_iteration(ctx, sleep=self.sleep)
        self.iteration_index += 1


@tag("get_event")
class GetEventUser(ContentionUser):
    scenario_name = "get_event"


@tag("get_seats_by_grade")
class GetSeatsByGradeUser(ContentionUser):
    scenario_name = "get_seats_by_grade"


@tag("create_pre_register")
class PreRegisterUser(ContentionUser):
    scenario_name = "create_pre_register"


@tag("create_pre_register_once")
class PreRegisterOnceUser(ContentionUser):
    scenario_name = "create_pre_register_once"


@tag("select_seat")
class SelectSeatUser(ContentionUser):
    scenario_name = "select_seat"


@tag("select_seat_baseline")
class SelectSeatBaselineUser(ContentionUser):
    """Scenario A: every VU owns one seat; measures uncontended throughput."""

    scenario_name = "select_seat_baseline"


@tag("select_seat_contention")
class SelectSeatContentionUser(ContentionUser):
    """Scenario B: random picks from a small hot set of seats."""

    scenario_name = "select_seat_contention"


@tag("select_seat_rotating")
class SelectSeatRotatingUser(ContentionUser):
    """Reproducible contention: VUs rotate through the hot set in lockstep."""

    scenario_name = "select_seat_rotating"
