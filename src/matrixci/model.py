# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


class StepKind(str, Enum):
    CHECKOUT = "checkout"
    TOOLCHAIN = "toolchain"
    SHELL = "shell"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


# Steps move through the same states as jobs.
StepStatus = JobStatus


# ---------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class PushEvent:
    """A push to a branch."""
    branch: str

    @classmethod
    def from_ref(cls, ref: str) -> PushEvent:
        """Accept either `master` or `refs/heads/master`."""
        prefix = "refs/heads/"
        if ref.startswith(prefix):
            ref = ref[len(prefix):]
        return cls(branch=ref)


@dataclass(frozen=True)
class TriggerRule:
    """Branches whose pushes activate the pipeline (exact match)."""
    branches: frozenset[str]

    def __init__(self, branches: Iterable[str]):
        names = frozenset(branches)
        if not names:
            raise ValueError("TriggerRule needs at least one branch")
        object.__setattr__(self, "branches", names)

    def matches(self, event: PushEvent) -> bool:
        return event.branch in self.branches


# ---------------------------------------------------------------------
# Declaration
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Step:
    """A single unit of work inside a job."""
    name: str
    run: str | None = None
    kind: StepKind = StepKind.SHELL

    def __post_init__(self) -> None:
        if self.kind is not StepKind.CHECKOUT and not self.run:
            raise ValueError(f"Step {self.name!r} needs a command")


@dataclass(frozen=True)
class Axis:
    """A named dimension of the build matrix, e.g. os = [ubuntu-latest, windows-latest]."""
    name: str
    values: Tuple[str, ...]

    def __init__(self, name: str, values: Iterable[Any]):
        if not name:
            raise ValueError("Axis name must not be empty")
        vals = tuple(str(v) for v in values)
        dupes = sorted({v for v in vals if vals.count(v) > 1})
        if dupes:
            raise ValueError(f"Axis {name!r} has duplicate values: {dupes}")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "values", vals)

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class Matrix:
    axes: Tuple[Axis, ...] = ()
    exclude: Tuple[Dict[str, str], ...] = ()

    def __post_init__(self) -> None:
        names = [a.name for a in self.axes]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate axis names in matrix: {names}")
        for entry in self.exclude:
            unknown = sorted(set(entry) - set(names))
            if unknown:
                raise ValueError(f"Matrix exclude refers to unknown axes: {unknown}")


@dataclass(frozen=True)
class JobVariant:
    """
    One job declaration. It expands into one JobSpec per matrix combination,
    or exactly one JobSpec when it has no matrix.

    Disabled variants stay in the declaration but are never expanded.
    """
    id: str
    steps: Tuple[Step, ...]
    runs_on: str
    name: str | None = None        # display-name template, e.g. "Test on ${{ matrix.os }}"
    matrix: Optional[Matrix] = None
    enabled: bool = True

    @property
    def name_template(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class JobSpec:
    """One concrete, fully resolved job."""
    variant: str
    name: str
    runs_on: str
    steps: Tuple[Step, ...]
    axis_values: Tuple[Tuple[str, str], ...] = ()

    @property
    def values(self) -> Dict[str, str]:
        return dict(self.axis_values)


@dataclass(frozen=True)
class Pipeline:
    name: str
    trigger: TriggerRule
    variants: Tuple[JobVariant, ...]

    def __post_init__(self) -> None:
        ids = [v.id for v in self.variants]
        if len(set(ids)) != len(ids):
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            raise ValueError(f"Duplicate job ids found: {dupes}")

    @property
    def enabled_variants(self) -> List[JobVariant]:
        return [v for v in self.variants if v.enabled]

    @property
    def disabled_variants(self) -> List[JobVariant]:
        return [v for v in self.variants if not v.enabled]


# ---------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class StepResult:
    name: str
    status: StepStatus
    exit_code: int | None = None
    output: str = ""


@dataclass(frozen=True)
class JobResult:
    job: str
    status: JobStatus
    steps: Tuple[StepResult, ...] = ()
    failed_step: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCEEDED


@dataclass(frozen=True)
class PipelineResult:
    jobs: Tuple[JobResult, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        # vacuously true for zero jobs
        return all(j.succeeded for j in self.jobs)

    @property
    def failed_jobs(self) -> List[JobResult]:
        return [j for j in self.jobs if not j.succeeded]

    def get(self, job: str) -> JobResult:
        for j in self.jobs:
            if j.job == job:
                return j
        raise KeyError(job)
