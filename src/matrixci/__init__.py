from .matrix import expand, expand_axes, expand_pipeline
from .model import (
    Axis,
    JobResult,
    JobSpec,
    JobStatus,
    JobVariant,
    Pipeline,
    PipelineResult,
    PushEvent,
    Step,
    StepKind,
    TriggerRule,
)
from .runner import StepFailure, run_job, run_pipeline, trigger_and_run

# Imported last so the `matrix` DSL function is not shadowed by the
# `matrixci.matrix` submodule, which binds as a package attribute on import.
from .dsl import axis, checkout, job, matrix, pipeline, sh, toolchain

__all__ = [
    "axis", "checkout", "job", "matrix", "pipeline", "sh", "toolchain",
    "expand", "expand_axes", "expand_pipeline",
    "Axis", "JobResult", "JobSpec", "JobStatus", "JobVariant", "Pipeline",
    "PipelineResult", "PushEvent", "Step", "StepKind", "TriggerRule",
    "StepFailure", "run_job", "run_pipeline", "trigger_and_run",
]
