"""Console output formatting utilities for matrixci."""

from __future__ import annotations

import sys
import threading
from typing import Iterable, Optional

from ..model import JobResult, JobSpec, JobStatus, JobVariant, PipelineResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
        # jobs run in worker threads; keep their lines from interleaving
        self._lock = threading.Lock()

    def _emit(self, *lines: str, file=None) -> None:
        with self._lock:
            for line in lines:
                print(line, file=file or sys.stdout)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}", "-" * len(title))

    def print_run_started(
        self,
        pipeline: str,
        workflow: str,
        branch: str,
        job_count: int,
    ) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED",
            f"Pipeline: {pipeline}",
            f"Workflow: {workflow}",
            f"Branch: {branch}",
            f"Jobs: {job_count}",
            "",
        )

    def print_not_triggered(self, branch: str, branches: Iterable[str]) -> None:
        self._emit(
            f"\nNOT TRIGGERED: push to '{branch}'",
            f"Tracked branches: {', '.join(sorted(branches))}",
        )

    def print_plan(self, specs: list[JobSpec], disabled: list[JobVariant]) -> None:
        """Print the expanded job list."""
        self.print_header("PLAN")
        for spec in specs:
            values = ", ".join(f"{k}={v}" for k, v in spec.axis_values)
            suffix = f" [{values}]" if values else ""
            self._emit(f"  {spec.name} (runs-on: {spec.runs_on}){suffix}")
        for variant in disabled:
            self._emit(f"  {variant.name_template} (disabled)")

    def print_job_start(self, name: str, runs_on: str) -> None:
        """Print job start message."""
        self._emit(f"[{name}] JOB STARTED on {runs_on}")

    def print_step(self, job: str, name: str) -> None:
        """Print step start message."""
        self._emit(f"[{job}] ▶ {name}")

    def print_transition(self, job: str, status: JobStatus) -> None:
        if self.debug:
            self._emit(f"[DEBUG] [{job}] -> {status.value}", file=sys.stderr)

    def print_job_finished(self, result: JobResult) -> None:
        """Print a job's terminal status, with the failing step's output."""
        if result.status is JobStatus.SUCCEEDED:
            self._emit(f"[{result.job}] STATUS: success")
            return
        if result.status is JobStatus.SKIPPED:
            self._emit(f"[{result.job}] STATUS: skipped")
            return

        lines = [f"[{result.job}] JOB FAILED"]
        if result.failed_step:
            lines.append(f"[{result.job}] Step: {result.failed_step}")
        if result.error:
            lines.append(f"[{result.job}] Error: {result.error}")
        failed = [s for s in result.steps if s.status is JobStatus.FAILED]
        if failed and failed[0].output:
            output = failed[0].output.rstrip()
            if not self.debug:
                # last lines are usually the interesting ones
                output = "\n".join(output.splitlines()[-20:])
            lines.append(output)
        self._emit(*lines)

    def print_results(self, result: PipelineResult) -> None:
        """Print final results summary."""
        lines = ["", "=" * 40, "RESULTS", "=" * 40]
        for job in result.jobs:
            lines.append(f"  {job.job}: {job.status.value.upper()}")
        failed = result.failed_jobs
        if failed:
            lines.append(f"{len(failed)} of {len(result.jobs)} jobs did not succeed")
        lines.append(f"PIPELINE: {'SUCCEEDED' if result.succeeded else 'FAILED'}")
        self._emit(*lines)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        lines += [f"  {d}" for d in details or []]
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit(*lines, file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._emit(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
