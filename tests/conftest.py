"""
Shared pytest fixtures for the seat-contention harness test suite.

Unit tests get fake collaborators (executor, sleep) so the engine runs
without a network.  Integration tests get a live fake ticketing backend
served by werkzeug on an ephemeral port, reset before every test.

Key Concepts Demonstrated:
- Fixture scopes (function, session)
- A real HTTP server in a background thread for end-to-end checks
- Scripted fakes for deterministic engine tests
- Environment isolation with monkeypatch
"""

import os
import threading

import pytest
from werkzeug.serving import make_server

# Select the testing configuration before the harness is imported
os.environ["CONTENTION_ENV"] = "testing"

from config import TestingConfig
from contention_app.identity import build_identity_pool
from contention_app.models import RunParameters
from contention_app.outcomes import OutcomeRecorder
from tests.fake_ticketing import create_fake_ticketing_app
from tests.helpers import TEST_SECRET, FakeExecutor


# -----------------------------------------------------------------------------
# Secrets and identities
# -----------------------------------------------------------------------------

@pytest.fixture
def secret() -> str:
    """Base64 HS256 secret shared by the harness and the fake backend."""
    return TEST_SECRET


@pytest.fixture
def test_env(monkeypatch, secret):
    """
    Point the harness at the testing configuration with a valid secret.

    Yields:
        The configuration class in effect.
    """
    monkeypatch.setenv("CONTENTION_ENV", "testing")
    monkeypatch.setenv("TEST_JWT_SECRET", secret)
    monkeypatch.delenv("JWT_SECRET", raising=False)
    yield TestingConfig


@pytest.fixture
def identity_pool(secret):
    """Ten identities with real tokens."""
    return build_identity_pool(10, secret)


# -----------------------------------------------------------------------------
# Engine fakes
# -----------------------------------------------------------------------------

@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def recorder() -> OutcomeRecorder:
    return OutcomeRecorder()


@pytest.fixture
def recorded_sleeps() -> list[float]:
    """Collects the durations passed to a fake ``sleep``."""
    return []


@pytest.fixture
def run_params() -> RunParameters:
    return RunParameters(
        pool_size=10,
        resource_id_range=500,
        event_target=3,
        run_id="2025-01-01T00-00-00-000Z",
        hot_set_size=50,
    )


# -----------------------------------------------------------------------------
# Live fake backend
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def live_backend():
    """
    Serve the fake ticketing backend on an ephemeral port for the session.

    Yields:
        ``(base_url, state)`` where ``state`` exposes the backend's data.
    """
    app = create_fake_ticketing_app(TEST_SECRET)
    server = make_server("127.0.0.1", 0, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_port}", app.config["STATE"]
    server.shutdown()
    thread.join(timeout=5)


@pytest.fixture
def backend(live_backend):
    """Live backend with fresh state for this test."""
    base_url, state = live_backend
    state.reset()
    return base_url, state
