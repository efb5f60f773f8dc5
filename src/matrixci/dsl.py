# src/matrixci/dsl.py
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from .model import Axis, JobVariant, Matrix, Pipeline, Step, StepKind, TriggerRule


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str, cmd: str) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, kind=StepKind.SHELL)


def toolchain(name: str, cmd: str) -> Step:
    """A step that installs or selects a toolchain (e.g. `brew install rust`)."""
    return Step(name=name, run=cmd, kind=StepKind.TOOLCHAIN)


def checkout(name: str = "Checkout") -> Step:
    return Step(name=name, kind=StepKind.CHECKOUT)


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

def axis(key: str, values: Iterable[Any]) -> Axis:
    return Axis(key, values)


def matrix(*axes: Axis, exclude: Optional[List[Mapping[str, Any]]] = None, **named: Iterable[Any]) -> Matrix:
    """
    Build a matrix from Axis objects and/or keyword axes.

    Example:
        matrix(os=["ubuntu-latest", "windows-latest"])
        matrix(axis("os", [...]), axis("toolchain", ["stable", "nightly"]))
    """
    all_axes = list(axes) + [Axis(k, v) for k, v in named.items()]
    excl = tuple({k: str(v) for k, v in e.items()} for e in exclude or [])
    return Matrix(axes=tuple(all_axes), exclude=excl)


# ---------------------------------------------------------------------
# Job helper
# ---------------------------------------------------------------------

def job(
    id: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,  # allow: job("x", steps_list=[...])
    name: Optional[str] = None,
    runs_on: str,
    matrix: Optional[Matrix] = None,
    enabled: bool = True,
) -> JobVariant:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(list(steps_list))
    steps_final.extend(list(steps))

    if not steps_final:
        raise ValueError(f"job({id!r}) must have at least one step")

    return JobVariant(
        id=id,
        name=name,
        runs_on=runs_on,
        steps=tuple(steps_final),
        matrix=matrix,
        enabled=enabled,
    )


# ---------------------------------------------------------------------
# Pipeline helper (single-file story)
# ---------------------------------------------------------------------

def pipeline(name: str, *jobs: JobVariant, branches: Iterable[str]) -> Pipeline:
    """
    Pipeline definition helper.

    Users can write, in matrixci_workflow.py:

        from matrixci import pipeline, job, sh, matrix

        PIPELINE = pipeline(
            "test",
            job("test", sh("Test", "make test"), runs_on="${{ matrix.os }}",
                matrix=matrix(os=["ubuntu-latest"])),
            branches=["master"],
        )
    """
    return Pipeline(name=name, trigger=TriggerRule(branches), variants=tuple(jobs))
