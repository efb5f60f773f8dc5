# trigger.py
from __future__ import annotations

from typing import List

from .matrix import expand_pipeline
from .model import JobSpec, Pipeline, PushEvent


def is_activated(pipeline: Pipeline, event: PushEvent) -> bool:
    return pipeline.trigger.matches(event)


def plan(pipeline: Pipeline, event: PushEvent) -> List[JobSpec]:
    """
    Jobs a push would run. A branch outside the trigger rule is a no-op,
    not an error: it plans zero jobs.
    """
    if not is_activated(pipeline, event):
        return []
    return expand_pipeline(pipeline)
