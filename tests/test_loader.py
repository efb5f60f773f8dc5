from pathlib import Path

import pytest

from matrixci.loader import WorkflowError, load_workflow, parse_yaml
from matrixci.matrix import expand_pipeline
from matrixci.model import PushEvent, StepKind

REPO = Path(__file__).resolve().parent.parent


def test_loads_example_declaration():
    p = load_workflow(REPO / "examples" / "test.yml")

    assert p.name == "test"
    assert p.trigger.branches == frozenset({"master", "develop"})
    assert [v.id for v in p.variants] == ["test", "build_redox", "build_macos"]
    assert [v.id for v in p.disabled_variants] == ["build_redox"]

    specs = expand_pipeline(p)
    assert [s.name for s in specs] == [
        "Test on ubuntu-latest",
        "Test on windows-latest",
        "Test on macOS-latest",
    ]
    assert [s.runs_on for s in specs] == ["ubuntu-latest", "windows-latest", "macOS-latest"]

    steps = specs[0].steps
    assert steps[0].kind is StepKind.CHECKOUT
    assert [s.name for s in steps[1:]] == ["Test", "Test example"]
    assert steps[1].run == "cargo test --lib --all --verbose"


def test_loads_python_workflow():
    p = load_workflow(REPO / "matrixci_workflow.py")
    assert p.trigger.matches(PushEvent("develop"))
    assert [s.runs_on for s in expand_pipeline(p)] == ["ubuntu-latest", "windows-latest"]
    assert [v.id for v in p.disabled_variants] == ["test_macos"]


def test_bare_on_key_and_quoted_on_key_are_equivalent():
    bare = "on:\n  push:\n    branches: [main]\njobs: {}\n"
    quoted = "'on':\n  push:\n    branches: [main]\njobs: {}\n"
    assert parse_yaml(bare).trigger == parse_yaml(quoted).trigger


def test_job_without_name_uses_its_id():
    p = parse_yaml(
        """
on: {push: {branches: [master]}}
jobs:
  lint:
    runs-on: ubuntu-latest
    steps:
      - run: ruff check .
"""
    )
    spec = expand_pipeline(p)[0]
    assert spec.name == "lint"
    assert spec.steps[0].name == "ruff check ."


def test_matrix_exclude_is_honored():
    p = parse_yaml(
        """
on: {push: {branches: [master]}}
jobs:
  test:
    name: ${{ matrix.os }}-${{ matrix.rust }}
    runs-on: ${{ matrix.os }}
    strategy:
      matrix:
        os: [ubuntu-latest, windows-latest]
        rust: [stable, nightly]
        exclude:
          - os: windows-latest
            rust: nightly
    steps:
      - run: cargo test
"""
    )
    assert [s.name for s in expand_pipeline(p)] == [
        "ubuntu-latest-stable",
        "ubuntu-latest-nightly",
        "windows-latest-stable",
    ]


@pytest.mark.parametrize("cond", ["false", "${{ false }}"])
def test_literal_false_if_disables_job(cond):
    p = parse_yaml(
        f"""
on: {{push: {{branches: [master]}}}}
jobs:
  off:
    runs-on: ubuntu-latest
    if: {cond}
    steps:
      - run: echo never
"""
    )
    assert not p.variants[0].enabled
    assert expand_pipeline(p) == []


@pytest.mark.parametrize("cond", ["true", "${{ true }}"])
def test_literal_true_if_keeps_job(cond):
    p = parse_yaml(
        f"""
on: {{push: {{branches: [master]}}}}
jobs:
  on_:
    runs-on: ubuntu-latest
    if: {cond}
    steps:
      - run: echo always
"""
    )
    assert p.variants[0].enabled
    assert [s.name for s in expand_pipeline(p)] == ["on_"]


@pytest.mark.parametrize(
    "text, fragment",
    [
        ("- just\n- a list\n", "mapping"),
        ("jobs: {}\n", "on"),
        ("on: {push: {branches: []}}\njobs: {}\n", "branches"),
        (
            "on: {push: {branches: [m]}}\njobs:\n  a:\n    runs-on: x\n    if: github.ref == 'main'\n    steps: [{run: t}]\n",
            "literal",
        ),
        (
            "on: {push: {branches: [m]}}\njobs:\n  a:\n    runs-on: x\n    steps: [{uses: actions-rs/toolchain@v1}]\n",
            "unsupported action",
        ),
        (
            "on: {push: {branches: [m]}}\njobs:\n  a:\n    runs-on: x\n    strategy: {matrix: {os: [a, a]}}\n    steps: [{run: t}]\n",
            "duplicate",
        ),
        ("on: [unclosed\n", "invalid YAML"),
    ],
)
def test_invalid_declarations(text, fragment):
    with pytest.raises(WorkflowError, match=fragment):
        parse_yaml(text)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_workflow(tmp_path / "nope.yml")


def test_unknown_suffix(tmp_path):
    path = tmp_path / "workflow.toml"
    path.write_text("")
    with pytest.raises(ValueError, match=".py or .yml"):
        load_workflow(path)


def test_python_workflow_must_define_a_pipeline(tmp_path):
    path = tmp_path / "bad_workflow.py"
    path.write_text("JOBS = []\n")
    with pytest.raises(WorkflowError, match="PIPELINE"):
        load_workflow(path)


def test_python_workflow_with_pipeline_function(tmp_path):
    path = tmp_path / "fn_workflow.py"
    path.write_text(
        "from matrixci import Pipeline, TriggerRule, job, sh\n"
        "\n"
        "def pipeline():\n"
        "    return Pipeline(name='fn', trigger=TriggerRule(['main']),\n"
        "                    variants=(job('a', sh('t', 'true'), runs_on='ubuntu-latest'),))\n"
    )
    assert load_workflow(path).name == "fn"
