# runner.py
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .config import default_workers
from .environment import EnvironmentProvisionFailure, Provisioner, StepExecutor
from .model import (
    JobResult,
    JobSpec,
    JobStatus,
    Pipeline,
    PipelineResult,
    PushEvent,
    StepResult,
    StepStatus,
)
from .trigger import plan
from .ui.console import get_console

Transition = Callable[[str, JobStatus], None]


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class StepFailure(Exception):
    job: str
    step: str
    cmd: str | None
    exit_code: int
    output: str = ""

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd or self.step}"


# ----------------------------------------------------------------------
# Single job
# ----------------------------------------------------------------------

def _skipped(steps, start: int = 0) -> List[StepResult]:
    return [StepResult(name=s.name, status=StepStatus.SKIPPED) for s in steps[start:]]


def _release(provisioner: Provisioner, env) -> str | None:
    """Release a job's environment; a failure belongs to that job only."""
    try:
        provisioner.release(env)
    except Exception as e:
        return f"cannot release environment for '{env.runs_on}': {type(e).__name__}: {e}"
    return None


def run_job(
    spec: JobSpec,
    provisioner: Provisioner,
    executor: StepExecutor,
    on_transition: Optional[Transition] = None,
) -> JobResult:
    """
    Run one job's steps strictly in order.

    pending -> running -> succeeded | failed. The first failing step is
    terminal for this job; the steps after it are reported as skipped.
    The environment is released whatever happens.
    """
    console = get_console()

    def transition(status: JobStatus) -> None:
        console.print_transition(spec.name, status)
        if on_transition is not None:
            on_transition(spec.name, status)

    transition(JobStatus.PENDING)

    try:
        env = provisioner.provision(spec.runs_on)
    except EnvironmentProvisionFailure as e:
        transition(JobStatus.FAILED)
        return JobResult(
            job=spec.name,
            status=JobStatus.FAILED,
            steps=tuple(_skipped(spec.steps)),
            error=str(e),
        )

    transition(JobStatus.RUNNING)
    console.print_job_start(spec.name, spec.runs_on)

    results: List[StepResult] = []
    failure: StepFailure | None = None
    try:
        for idx, step in enumerate(spec.steps):
            console.print_step(spec.name, step.name)
            try:
                outcome = executor.run_step(env, step)
                exit_code, output = outcome.exit_code, outcome.output
            except Exception as e:
                exit_code, output = -1, f"{type(e).__name__}: {e}"

            if exit_code != 0:
                results.append(StepResult(step.name, StepStatus.FAILED, exit_code, output))
                results.extend(_skipped(spec.steps, idx + 1))
                failure = StepFailure(
                    job=spec.name,
                    step=step.name,
                    cmd=step.run,
                    exit_code=exit_code,
                    output=output,
                )
                break

            results.append(StepResult(step.name, StepStatus.SUCCEEDED, exit_code, output))
    finally:
        release_error = _release(provisioner, env)

    if failure is None and release_error is not None:
        transition(JobStatus.FAILED)
        return JobResult(
            job=spec.name,
            status=JobStatus.FAILED,
            steps=tuple(results),
            error=release_error,
        )

    if failure is not None:
        transition(JobStatus.FAILED)
        return JobResult(
            job=spec.name,
            status=JobStatus.FAILED,
            steps=tuple(results),
            failed_step=failure.step,
            error=str(failure),
        )

    transition(JobStatus.SUCCEEDED)
    return JobResult(job=spec.name, status=JobStatus.SUCCEEDED, steps=tuple(results))


# ----------------------------------------------------------------------
# Pipeline
# ----------------------------------------------------------------------

def run_pipeline(
    specs: List[JobSpec],
    provisioner: Provisioner,
    executor: StepExecutor,
    *,
    max_workers: int | None = None,
    fail_fast: bool = False,
    on_transition: Optional[Transition] = None,
) -> PipelineResult:
    """
    Run every job in its own environment, in parallel.

    Jobs are isolated: a failure never stops a sibling. With fail_fast, jobs
    that have not started yet when a failure is seen are reported as skipped.
    Results keep emission order.
    """
    console = get_console()
    if not specs:
        return PipelineResult(jobs=())

    if max_workers is None:
        max_workers = default_workers()

    results: List[Optional[JobResult]] = [None] * len(specs)
    stop = threading.Event()

    def guarded(spec: JobSpec) -> JobResult:
        if fail_fast and stop.is_set():
            return JobResult(
                job=spec.name,
                status=JobStatus.SKIPPED,
                steps=tuple(_skipped(spec.steps)),
                error="skipped after an earlier job failed (fail-fast)",
            )
        result = run_job(spec, provisioner, executor, on_transition)
        if result.status is JobStatus.FAILED:
            stop.set()
        return result

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        # keyed by position: names are not required to be unique here
        futures: Dict[Future, int] = {pool.submit(guarded, s): i for i, s in enumerate(specs)}

        for fut in as_completed(futures):
            result = fut.result()
            results[futures[fut]] = result
            console.print_job_finished(result)

    return PipelineResult(jobs=tuple(r for r in results if r is not None))


def trigger_and_run(
    pipeline: Pipeline,
    event: PushEvent,
    provisioner: Provisioner,
    executor: StepExecutor,
    *,
    max_workers: int | None = None,
    fail_fast: bool = False,
    on_transition: Optional[Transition] = None,
) -> PipelineResult | None:
    """Returns None when the push does not activate the pipeline."""
    if not pipeline.trigger.matches(event):
        return None
    return run_pipeline(
        plan(pipeline, event),
        provisioner,
        executor,
        max_workers=max_workers,
        fail_fast=fail_fast,
        on_transition=on_transition,
    )
