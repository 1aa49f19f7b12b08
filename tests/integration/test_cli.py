"""
Tests for the command-line entry point and its exit codes.
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

from config import TestingConfig
from contention_app.cli import main, parse_args
from contention_app.thresholds import EXIT_PASS, EXIT_SETUP_ERROR, EXIT_THRESHOLD_BREACH


pytestmark = pytest.mark.integration

PROJECT_ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def thresholds_file(tmp_path):
    def _write(max_failure_rate: float, max_p95_ms: float = 5000):
        path = tmp_path / "thresholds.yml"
        path.write_text(
            f"max_failure_rate_percent: {max_failure_rate}\nmax_p95_ms: {max_p95_ms}\n",
            encoding="utf-8",
        )
        return str(path)

    return _write


def test_unknown_scenario_is_rejected():
    with pytest.raises(SystemExit):
        parse_args(["--scenario", "select_everything"])


def test_missing_secret_exits_with_setup_error(monkeypatch, capsys):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.delenv("TEST_JWT_SECRET", raising=False)

    exit_code = main(["--scenario", "select_seat_contention", "--env", "testing"])

    assert exit_code == EXIT_SETUP_ERROR
    assert "JWT_SECRET" in capsys.readouterr().err


def test_seed_run_passes_thresholds(test_env, backend, monkeypatch, thresholds_file, capsys):
    # Arrange
    base_url, state = backend
    monkeypatch.setattr(TestingConfig, "BASE_URL", base_url)
    monkeypatch.setattr(TestingConfig, "VUS", 10)

    # Act
    exit_code = main(
        ["--scenario", "create_pre_register_once", "--env", "testing", "--thresholds", thresholds_file(0)]
    )

    # Assert
    assert exit_code == EXIT_PASS
    assert len(state.registrations) == 10
    assert "Overall: PASS" in capsys.readouterr().out


def test_failures_breach_thresholds(test_env, monkeypatch, thresholds_file):
    # Nothing listens on the discard port, so every request fails
    monkeypatch.setattr(TestingConfig, "BASE_URL", "http://127.0.0.1:9")
    monkeypatch.setattr(TestingConfig, "REQUEST_TIMEOUT", 1.0)
    monkeypatch.setattr(TestingConfig, "VUS", 3)

    exit_code = main(
        ["--scenario", "create_pre_register_once", "--env", "testing", "--thresholds", thresholds_file(1)]
    )

    assert exit_code == EXIT_THRESHOLD_BREACH


@pytest.mark.parametrize("variable", ["PEAK_VUS", "HOT_SEATS"])
def test_malformed_numeric_setting_exits_with_setup_error(test_env, monkeypatch, capsys, variable):
    # Arrange
    monkeypatch.setenv(variable, "abc")

    # Act
    exit_code = main(["--scenario", "select_seat_contention", "--env", "testing"])

    # Assert
    assert exit_code == EXIT_SETUP_ERROR
    assert variable in capsys.readouterr().err


def test_malformed_setting_in_fresh_interpreter_exits_cleanly(secret):
    # A new interpreter imports config with the bad value already set
    env = dict(os.environ, CONTENTION_ENV="testing", TEST_JWT_SECRET=secret, PEAK_VUS="abc")

    result = subprocess.run(
        [sys.executable, "-m", "contention_app", "--scenario", "select_seat_baseline"],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )

    assert result.returncode == EXIT_SETUP_ERROR
    assert "PEAK_VUS must be an integer" in result.stderr
    assert "Traceback" not in result.stderr
