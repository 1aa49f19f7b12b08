"""
Concurrency tests for the thread-per-VU scheduler.

VUs run on real threads against a scripted executor, so these tests
check population control and the collision schedule without a backend.
"""

import dataclasses
import random

import pytest

from config import TestingConfig
from contention_app.models import Operation, OutcomeCategory, RunParameters
from contention_app.ramp import FixedIterationProfile, default_stages
from contention_app.scenario import ScenarioLoop, get_scenario
from contention_app.scheduler import ThreadScheduler, VirtualUser
from contention_app.identity import build_identity_pool
from tests.helpers import FakeExecutor


pytestmark = pytest.mark.integration


def _params(pool_size: int, hot_set_size: int = 50) -> RunParameters:
    return RunParameters(
        pool_size=pool_size,
        resource_id_range=500,
        event_target=3,
        run_id="scheduler-test",
        hot_set_size=hot_set_size,
    )


def test_rotating_hot_set_collides_on_every_seat(secret, recorder):
    # Arrange: 100 VUs, 2 iterations each, hot set of 50
    scenario = dataclasses.replace(get_scenario("select_seat_rotating", TestingConfig), iterations=2)
    params = _params(pool_size=100)
    executor = FakeExecutor()
    loop = ScenarioLoop(
        scenario,
        params,
        build_identity_pool(100, secret, mint=lambda claims, key: f"token-{claims['id']}"),
        executor,
        recorder,
        sleep=lambda seconds: None,
    )

    # Act
    vus = ThreadScheduler(tick=0.01).run(FixedIterationProfile(vus=100, iterations=2), loop.run_vu)

    # Assert
    assert vus == 100
    selects = recorder.primary_outcomes([Operation.SELECT_RESOURCE])
    assert len(selects) == 200
    assert recorder.requested_resources([Operation.SELECT_RESOURCE]) == set(range(1, 51))
    assert recorder.collisions_by_iteration([Operation.SELECT_RESOURCE]) == {
        0: set(range(1, 51)),
        1: set(range(1, 51)),
    }
    deselects = recorder.primary_outcomes([Operation.DESELECT_RESOURCE])
    assert {o.category for o in deselects} == {OutcomeCategory.DESELECTED}


def test_staged_run_respects_peak_population(secret, recorder):
    # Arrange
    scenario = dataclasses.replace(
        get_scenario("select_seat_contention", TestingConfig),
        think_time=(0.02, 0.02),
    )
    profile = default_stages(2, 4, (0.1, 0.2, 0.1, 0.2, 0.1))
    loop = ScenarioLoop(
        scenario,
        _params(pool_size=4),
        build_identity_pool(4, secret),
        FakeExecutor(),
        recorder,
        sleep=lambda seconds: None,
        rng=random.Random(5),
    )

    # Act
    vus = ThreadScheduler(tick=0.01).run(profile, loop.run_vu)

    # Assert
    assert vus == 4
    outcomes = recorder.outcomes()
    assert outcomes
    assert {o.vu_index for o in outcomes} <= {1, 2, 3, 4}
    assert all(1 <= o.resource_id <= 50 for o in outcomes)


def test_stopped_vu_leaves_think_time_immediately():
    # Arrange
    user = VirtualUser(1, FixedIterationProfile(vus=1, iterations=5))
    user.stop()

    # Act
    user.sleep(30)

    # Assert
    assert not user.should_continue()


def test_crashing_loop_does_not_break_the_run(caplog):
    def _boom(vu):
        raise RuntimeError("loop bug")

    vus = ThreadScheduler(tick=0.01).run(FixedIterationProfile(vus=3), _boom)

    assert vus == 3
    assert "crashed" in caplog.text
