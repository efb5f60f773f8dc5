"""Load a pipeline declaration from a Python or YAML workflow file.

Python workflows define either ``pipeline() -> Pipeline`` or ``PIPELINE``.

YAML workflows use the subset of the GitHub Actions format needed to
describe a trigger, a build matrix and shell steps::

    name: test
    on:
      push:
        branches: [master, develop]
    jobs:
      test:
        name: Test on ${{ matrix.os }}
        runs-on: ${{ matrix.os }}
        strategy:
          matrix:
            os: [ubuntu-latest, windows-latest]
        steps:
          - uses: actions/checkout@v1
          - name: Test
            run: cargo test --lib --all --verbose
      build_redox:
        if: false
        ...
"""

from __future__ import annotations

import runpy
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .model import Axis, JobVariant, Matrix, Pipeline, Step, StepKind, TriggerRule

YAML_SUFFIXES = (".yml", ".yaml")

Scalar = Union[str, int, float, bool]


class WorkflowError(Exception):
    """Raised when a workflow file cannot be turned into a Pipeline."""

    def __init__(self, path: str | Path, message: str):
        self.path = str(path)
        self.message = message
        super().__init__(f"{self.path}: {message}")


# -------------------- Schemas --------------------

class PushSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    branches: List[str] = Field(..., min_length=1)


class OnSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    push: PushSpec


class StepSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: Optional[str] = None
    run: Optional[str] = None
    uses: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")

    def to_step(self) -> Step:
        if self.run and self.uses:
            raise ValueError(f"step {self.name or self.uses!r} sets both 'run' and 'uses'")
        if self.uses:
            if not self.uses.startswith("actions/checkout@"):
                raise ValueError(f"unsupported action {self.uses!r} (only actions/checkout is built in)")
            return Step(name=self.name or "Checkout", kind=StepKind.CHECKOUT)
        if not self.run:
            raise ValueError(f"step {self.name!r} needs 'run' or 'uses'")
        return Step(name=self.name or self.run.splitlines()[0], run=self.run, kind=StepKind.SHELL)


class StrategySpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    matrix: Dict[str, Any] = Field(default_factory=dict)

    def to_matrix(self) -> Matrix:
        raw = dict(self.matrix)
        exclude = raw.pop("exclude", None) or []
        if "include" in raw:
            raise ValueError("matrix 'include' is not supported")

        axes = []
        for key, values in raw.items():
            if not isinstance(values, list):
                raise ValueError(f"matrix axis {key!r} must be a list")
            axes.append(Axis(key, values))

        if not isinstance(exclude, list) or not all(isinstance(e, dict) for e in exclude):
            raise ValueError("matrix 'exclude' must be a list of mappings")
        return Matrix(
            axes=tuple(axes),
            exclude=tuple({k: str(v) for k, v in e.items()} for e in exclude),
        )


class JobSpecDoc(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = None
    runs_on: str = Field(..., alias="runs-on")
    if_: Optional[Scalar] = Field(default=None, alias="if")
    strategy: Optional[StrategySpec] = None
    steps: List[StepSpec] = Field(..., min_length=1)

    @field_validator("if_")
    @classmethod
    def _only_literal_bool(cls, v):
        if v is None or isinstance(v, bool):
            return v
        if isinstance(v, str):
            literal = v.strip().replace(" ", "")
            if literal in ("false", "${{false}}"):
                return False
            if literal in ("true", "${{true}}"):
                return True
        raise ValueError("only a literal 'true' or 'false' is supported for 'if'")

    def to_variant(self, job_id: str) -> JobVariant:
        return JobVariant(
            id=job_id,
            name=self.name,
            runs_on=self.runs_on,
            steps=tuple(s.to_step() for s in self.steps),
            matrix=self.strategy.to_matrix() if self.strategy else None,
            enabled=self.if_ is not False,
        )


class WorkflowDoc(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = None
    on: OnSpec
    jobs: Dict[str, JobSpecDoc] = Field(default_factory=dict)

    def to_pipeline(self, default_name: str) -> Pipeline:
        return Pipeline(
            name=self.name or default_name,
            trigger=TriggerRule(self.on.push.branches),
            variants=tuple(doc.to_variant(job_id) for job_id, doc in self.jobs.items()),
        )


# -------------------- Loading --------------------

def parse_yaml(text: str, *, source: str | Path = "<string>") -> Pipeline:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise WorkflowError(source, f"invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise WorkflowError(source, "workflow must be a mapping")

    # YAML 1.1 reads a bare `on:` key as boolean True
    if "on" not in data and True in data:
        data["on"] = data.pop(True)

    try:
        doc = WorkflowDoc.model_validate(data)
        return doc.to_pipeline(default_name=Path(str(source)).stem)
    except ValidationError as e:
        raise WorkflowError(source, str(e)) from e
    except ValueError as e:
        raise WorkflowError(source, str(e)) from e


def _load_python(wf_path: Path) -> Pipeline:
    module_name = f"matrixci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    result = None
    if "pipeline" in globals_dict and callable(globals_dict["pipeline"]) and "PIPELINE" not in globals_dict:
        try:
            result = globals_dict["pipeline"]()
        except TypeError as e:
            raise WorkflowError(
                wf_path,
                "pipeline() must take no arguments. If you imported the `pipeline` helper, "
                "assign its result to PIPELINE instead.",
            ) from e
    elif "PIPELINE" in globals_dict:
        result = globals_dict["PIPELINE"]

    if not isinstance(result, Pipeline):
        raise WorkflowError(
            wf_path,
            "workflow must define pipeline() -> Pipeline or PIPELINE = Pipeline(...)",
        )
    return result


def load_workflow(path: str | Path) -> Pipeline:
    """
    Load a workflow file.

    Raises:
        FileNotFoundError: the file does not exist
        ValueError: the suffix is neither .py nor .yml/.yaml
        WorkflowError: the declaration is invalid
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix == ".py":
        return _load_python(wf_path)
    if wf_path.suffix in YAML_SUFFIXES:
        return parse_yaml(wf_path.read_text(encoding="utf-8"), source=wf_path)
    raise ValueError(f"Workflow must be a .py or .yml file, got: {wf_path.name}")
