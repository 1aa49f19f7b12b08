# ruff: noqa: E402
"""
Locust entrypoint for the contention scenarios.

This is the file the ``locust`` CLI loads.  It imports every concrete user
class, maps ``--tags`` values to user classes, mints the identity pools
before any user spawns, and drives VU population with
:class:`ContentionShape`.

Usage examples::

    # Scenario A (baseline) against a local backend:
    JWT_SECRET=... locust -f contention_app/locustfile.py --headless \\
        --host http://localhost:8080 --tags select_seat_baseline

    # Scenario B with a 100-seat hot set:
    HOT_SEATS=100 locust -f contention_app/locustfile.py --tags select_seat_contention ...

    # Clean seed data: 500 users register exactly once:
    VUS=500 locust -f contention_app/locustfile.py --tags create_pre_register_once ...
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from locust import LoadTestShape, events

# Locust may be invoked from any directory; the project root must be
# importable for ``config`` and ``contention_app``.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config import get_config
from contention_app import configure_logging
from contention_app.errors import ConfigurationError
from contention_app.locust_users import (
    GetEventUser,
    GetSeatsByGradeUser,
    PreRegisterOnceUser,
    PreRegisterUser,
    SelectSeatBaselineUser,
    SelectSeatContentionUser,
    SelectSeatRotatingUser,
    SelectSeatUser,
    prepare_scenario,
    prepared_states,
)
from contention_app.ramp import FixedIterationProfile, default_stages
from contention_app.thresholds import (
    EXIT_SETUP_ERROR,
    EXIT_THRESHOLD_BREACH,
    evaluate,
    load_thresholds,
    print_summary,
)

logger = logging.getLogger(__name__)

__all__ = [
    "GetEventUser",
    "GetSeatsByGradeUser",
    "PreRegisterUser",
    "PreRegisterOnceUser",
    "SelectSeatUser",
    "SelectSeatBaselineUser",
    "SelectSeatContentionUser",
    "SelectSeatRotatingUser",
    "ContentionShape",
]

TAG_TO_USER_CLASS = {
    user_class.scenario_name: user_class
    for user_class in (
        GetEventUser,
        GetSeatsByGradeUser,
        PreRegisterUser,
        PreRegisterOnceUser,
        SelectSeatUser,
        SelectSeatBaselineUser,
        SelectSeatContentionUser,
        SelectSeatRotatingUser,
    )
}


class ContentionShape(LoadTestShape):
    """
    Drive VU population from the run's ramp profile.

    The profile is chosen in the ``init`` listener: a fixed-iteration
    profile when only fixed-iteration scenarios were selected, the staged
    ramp otherwise.  A fixed-iteration run ends as soon as every VU has
    stopped itself, rather than waiting for ``max_duration``.
    """

    profile = None
    states = ()

    def finished_vus(self) -> int:
        return sum(state.finished_vus for state in self.states)

    def tick(self):
        if self.profile is None:
            return None
        if isinstance(self.profile, FixedIterationProfile):
            target = self.profile.target_at(self.get_run_time(), self.finished_vus())
        else:
            target = self.profile.target_at(self.get_run_time())
        if target is None:
            return None
        return target, max(target, 1)


@events.init.add_listener
def _prepare_run(environment, **_kwargs):
    """
    Select user classes by tag, mint identity pools, and pick the profile.

    Minting happens here, before any user spawns, so a missing secret or
    a malformed setting exits with the setup-error code instead of
    failing every request.
    """
    try:
        cfg = get_config()
        configure_logging(cfg.DEBUG)

        parsed = environment.parsed_options
        selected_tags = set(getattr(parsed, "tags", None) or [])
        selected_classes = [
            user_class for name, user_class in TAG_TO_USER_CLASS.items() if name in selected_tags
        ]
        if selected_classes:
            environment.user_classes = selected_classes
        else:
            selected_classes = list(environment.user_classes)

        states = [prepare_scenario(user_class.scenario_name) for user_class in selected_classes]
        fixed = [state.profile for state in states if isinstance(state.profile, FixedIterationProfile)]
        if len(fixed) == len(states):
            ContentionShape.profile = fixed[0]
        else:
            ContentionShape.profile = default_stages(cfg.RAMP_UP_VUS, cfg.PEAK_VUS, cfg.STAGE_DURATIONS)
        ContentionShape.states = tuple(states)

        # Ramped-down users finish their iteration, so held seats get deselected
        if not environment.stop_timeout:
            environment.stop_timeout = cfg.STOP_TIMEOUT
    except ConfigurationError as exc:
        logger.error("Setup failed: %s", exc)
        raise SystemExit(EXIT_SETUP_ERROR) from exc


@events.quitting.add_listener
def _gate_on_thresholds(environment, **_kwargs):
    """Print per-scenario summaries and fail the process on a breach."""
    thresholds_path = os.environ.get("THRESHOLDS_FILE")
    thresholds = load_thresholds(Path(thresholds_path)) if thresholds_path else None

    for name, state in prepared_states().items():
        state.recorder.close()
        summary = state.recorder.summary()
        logger.info("Scenario %s finished with %s requests", name, summary.total)
        print_summary(summary, thresholds)
        if thresholds is not None and not evaluate(summary, thresholds):
            environment.process_exit_code = EXIT_THRESHOLD_BREACH
