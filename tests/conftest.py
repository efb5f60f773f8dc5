"""Pytest configuration and fixtures."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from matrixci.environment import Environment, EnvironmentProvisionFailure, StepOutcome
from matrixci.ui.console import Console, set_console


class FakeProvisioner:
    """Hands out in-memory environments; refuses any label in `unavailable`."""

    def __init__(self, unavailable=()):
        self.unavailable = set(unavailable)
        self.provisioned: list[str] = []
        self.released: list[str] = []
        self._lock = threading.Lock()

    def provision(self, runs_on: str) -> Environment:
        if runs_on in self.unavailable:
            raise EnvironmentProvisionFailure(runs_on=runs_on, message="no such runner")
        with self._lock:
            self.provisioned.append(runs_on)
        return Environment(runs_on=runs_on, workspace=Path("/nonexistent") / runs_on, source=Path("."))

    def release(self, env: Environment) -> None:
        with self._lock:
            self.released.append(env.runs_on)


class FakeExecutor:
    """
    Records every (runs_on, step name) it runs.

    `failures` maps (runs_on, step name) to the exit code that step returns.
    """

    def __init__(self, failures=None, raises=None):
        self.failures = dict(failures or {})
        self.raises = dict(raises or {})
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def run_step(self, env: Environment, step) -> StepOutcome:
        key = (env.runs_on, step.name)
        with self._lock:
            self.calls.append(key)
        if key in self.raises:
            raise self.raises[key]
        code = self.failures.get(key, 0)
        return StepOutcome(exit_code=code, output=f"{step.name} exited {code}")

    def steps_run_on(self, runs_on: str) -> list[str]:
        return [name for label, name in self.calls if label == runs_on]


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def executor():
    return FakeExecutor()
