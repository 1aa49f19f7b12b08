"""
Run configuration for the seat-contention load harness.

Configuration values are loaded from environment variables with sensible
defaults, following the same layout as a Flask settings module: a shared
``Config`` base class holds defaults and environment-specific subclasses
override only what differs.  ``get_config`` resolves the class at runtime
from ``CONTENTION_ENV`` or an explicit argument.

The signing secret is deliberately *not* a class attribute.  It is read at
setup time through :func:`load_jwt_secret` so that a missing secret aborts
the run before any virtual user starts.
"""

from __future__ import annotations

import os

from contention_app.errors import ConfigurationError


def _int_env(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw, 10)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


class EnvSetting:
    """
    A numeric setting read from the environment each time it is accessed.

    Parsing waits until a run reads the value, so a malformed variable
    raises :class:`ConfigurationError` inside setup instead of breaking
    the import of this module.  Subclasses may still shadow it with a
    plain class attribute.
    """

    def __init__(self, name: str, default: str, parse=_int_env):
        self.name = name
        self.default = default
        self.parse = parse

    def __get__(self, obj, owner=None):
        return self.parse(self.name, self.default)


def load_jwt_secret(*, testing: bool = False) -> str:
    """
    Resolve the token-signing secret for the selected environment.

    In testing mode ``TEST_JWT_SECRET`` is used when configured; otherwise
    it falls back to the standard ``JWT_SECRET`` variable.

    Raises:
        ConfigurationError: If no secret is configured.  There is no
            meaningful credential without it, so the run must not start.
    """
    if testing:
        test_secret = os.environ.get("TEST_JWT_SECRET", "").strip()
        if test_secret:
            return test_secret

    secret = os.environ.get("JWT_SECRET", "").strip()
    if not secret:
        raise ConfigurationError("JWT_SECRET environment variable is required.")
    return secret


class Config:
    """Base configuration with default settings."""

    TESTING: bool = False
    DEBUG: bool = os.environ.get("DEBUG", "").lower() == "true"

    BASE_URL: str = os.environ.get("BASE_URL", "http://host.docker.internal:8080")
    API_PREFIX: str = "/api/v1"
    REQUEST_TIMEOUT = EnvSetting("REQUEST_TIMEOUT", "10", _float_env)

    # Ramp parameters for staged runs
    RAMP_UP_VUS = EnvSetting("RAMP_UP_VUS", "50")
    PEAK_VUS = EnvSetting("PEAK_VUS", "100")
    # Stage durations in seconds: ramp-up, hold, climb to peak, hold, ramp-down
    STAGE_DURATIONS: tuple[float, ...] = (10.0, 60.0, 10.0, 60.0, 60.0)
    # VU count for fixed-iteration runs
    VUS = EnvSetting("VUS", "100")
    FIXED_RUN_MAX_DURATION: float = 300.0
    # Seconds Locust waits for a stopping VU to finish its current iteration
    STOP_TIMEOUT = EnvSetting("STOP_TIMEOUT", "30", _float_env)

    # Users seeded in the target database (test1@test.com ... test500@test.com)
    USER_COUNT = EnvSetting("USER_COUNT", "500")
    TOKEN_EXPIRY_SECONDS = EnvSetting("TOKEN_EXPIRY_SECONDS", "3600")

    EVENT_ID = EnvSetting("EVENT_ID", "5")
    SEAT_EVENT_ID = EnvSetting("SEAT_EVENT_ID", "3")
    EVENT_ID_RANGE = EnvSetting("EVENT_ID_RANGE", "10")
    HOT_SEATS = EnvSetting("HOT_SEATS", "50")
    TOTAL_SEATS = EnvSetting("TOTAL_SEATS", "625")
    RANDOM_SEATS = EnvSetting("RANDOM_SEATS", "500")

    # Human reaction time window (seconds) used for randomized think time
    THINK_TIME_MIN: float = 0.5
    THINK_TIME_MAX: float = 2.0
    # Fixed pauses used by the read and baseline scenarios
    READ_THINK_TIME: float = 1.0
    BETWEEN_READS: float = 0.5
    COOLDOWN: float = 0.5


class DevelopmentConfig(Config):
    """Local runs against a developer's backend."""


class TestingConfig(Config):
    """
    Configuration for the automated test suite.

    Think times are zeroed and stages shortened so scheduler tests finish
    quickly; the base URL points at the in-process fake backend unless
    overridden.
    """

    TESTING: bool = True
    DEBUG: bool = True
    BASE_URL: str = os.environ.get("TEST_BASE_URL", "http://127.0.0.1:5055")
    REQUEST_TIMEOUT: float = 5.0
    STAGE_DURATIONS: tuple[float, ...] = (0.2, 0.3, 0.2, 0.3, 0.2)
    FIXED_RUN_MAX_DURATION: float = 30.0
    STOP_TIMEOUT: float = 10.0
    THINK_TIME_MIN: float = 0.0
    THINK_TIME_MAX: float = 0.0
    READ_THINK_TIME: float = 0.0
    BETWEEN_READS: float = 0.0
    COOLDOWN: float = 0.0


class ProductionConfig(Config):
    """Runs against a shared performance environment."""

    DEBUG: bool = False


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env: Environment name (development, testing, production).
             If None, uses the CONTENTION_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env is None:
        env = os.environ.get("CONTENTION_ENV", "development")
    return config.get(env, config["default"])
