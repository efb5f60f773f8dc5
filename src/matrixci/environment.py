# environment.py
# Execution environment collaborators: where a job runs and how a step's
# command is executed. The runner only talks to the Provisioner / StepExecutor
# protocols, so tests can swap in fakes.

from __future__ import annotations

import os
import re
import shutil
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .config import DEFAULT_OUTPUT_TAIL
from .model import Step, StepKind


@dataclass
class EnvironmentProvisionFailure(Exception):
    runs_on: str
    message: str

    def __str__(self) -> str:
        return f"cannot provision environment for '{self.runs_on}': {self.message}"


@dataclass
class Environment:
    """An isolated per-job workspace."""
    runs_on: str
    workspace: Path
    source: Path
    env: Dict[str, str] = field(default_factory=dict)
    work_root: Optional[Path] = None    # never copied by a checkout


@dataclass(frozen=True)
class StepOutcome:
    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Provisioner(Protocol):
    def provision(self, runs_on: str) -> Environment: ...

    def release(self, env: Environment) -> None: ...


class StepExecutor(Protocol):
    def run_step(self, env: Environment, step: Step) -> StepOutcome: ...


# ----------------------------------------------------------------------
# Local implementations
# ----------------------------------------------------------------------

# runs-on label prefixes served by each host platform
HOST_LABELS: Dict[str, tuple[str, ...]] = {
    "linux": ("ubuntu", "linux"),
    "win32": ("windows",),
    "darwin": ("macos",),
}

CHECKOUT_EXCLUDES = [".git", ".matrixci", "__pycache__", ".pytest_cache", ".venv"]


def host_serves(runs_on: str, platform: str | None = None) -> bool:
    platform = platform or sys.platform
    prefixes = HOST_LABELS.get(platform, ())
    return runs_on.lower().startswith(prefixes)


def _slug(label: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "-", label).strip("-") or "job"


class LocalProvisioner:
    """
    Provisions a fresh temporary directory per job on this machine.

    A runs-on label is served only when it names this host's platform
    family, unless allow_any_os is set.
    """

    def __init__(
        self,
        work_dir: str | Path,
        *,
        source: str | Path = ".",
        allow_any_os: bool = False,
        keep_workspaces: bool = False,
        env: Optional[Dict[str, str]] = None,
        platform: str | None = None,
    ):
        self.work_dir = Path(work_dir)
        self.source = Path(source).resolve()
        self.allow_any_os = allow_any_os
        self.keep_workspaces = keep_workspaces
        self.env = dict(env or {})
        self.platform = platform or sys.platform

    def provision(self, runs_on: str) -> Environment:
        if not self.allow_any_os and not host_serves(runs_on, self.platform):
            raise EnvironmentProvisionFailure(
                runs_on=runs_on,
                message=f"host platform is '{self.platform}' (use --any-os to run anyway)",
            )
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            workspace = Path(tempfile.mkdtemp(prefix=f"{_slug(runs_on)}-", dir=self.work_dir))
        except OSError as e:
            raise EnvironmentProvisionFailure(runs_on=runs_on, message=str(e)) from e

        return Environment(
            runs_on=runs_on,
            workspace=workspace.resolve(),
            source=self.source,
            env=dict(self.env),
            work_root=self.work_dir.resolve(),
        )

    def release(self, env: Environment) -> None:
        if self.keep_workspaces:
            return
        shutil.rmtree(env.workspace, ignore_errors=True)


class ShellExecutor:
    """Runs step commands through the host shell inside the job workspace."""

    def __init__(self, output_tail: int = DEFAULT_OUTPUT_TAIL):
        self.output_tail = output_tail

    def run_step(self, env: Environment, step: Step) -> StepOutcome:
        if step.kind is StepKind.CHECKOUT:
            return self._checkout(env)

        proc_env = os.environ.copy()
        proc_env.update(env.env)

        proc = subprocess.run(
            step.run,
            shell=True,
            cwd=str(env.workspace),
            env=proc_env,
            # output is informational only; undecodable bytes are replaced
            encoding="utf-8",
            errors="replace",
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        return StepOutcome(exit_code=proc.returncode, output=self._tail(proc.stdout or ""))

    def _checkout(self, env: Environment) -> StepOutcome:
        if not env.source.is_dir():
            return StepOutcome(exit_code=1, output=f"source directory not found: {env.source}")

        skip = {env.workspace.resolve()}
        if env.work_root is not None:
            skip.add(env.work_root.resolve())

        def ignore(directory: str, names: List[str]) -> List[str]:
            ignored = [n for n in names if n in CHECKOUT_EXCLUDES]
            ignored += [n for n in names if (Path(directory) / n).resolve() in skip]
            return ignored

        shutil.copytree(env.source, env.workspace, ignore=ignore, dirs_exist_ok=True)
        return StepOutcome(exit_code=0, output=f"checked out {env.source} -> {env.workspace}")

    def _tail(self, text: str) -> str:
        if self.output_tail and len(text) > self.output_tail:
            return text[-self.output_tail:]
        return text
