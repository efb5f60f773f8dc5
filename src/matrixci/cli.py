# cli.py
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import click

from matrixci.config import Settings
from matrixci.environment import LocalProvisioner, ShellExecutor
from matrixci.git_facts.git import current_branch
from matrixci.loader import WorkflowError, load_workflow
from matrixci.model import Pipeline, PushEvent
from matrixci.runner import run_pipeline
from matrixci.trigger import plan
from matrixci.ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW = "matrixci_workflow.py"


def find_workflow_files(root: Path = Path(".")) -> list[Path]:
    """
    Find all workflow files under root.

    Looks for matrixci_workflow.py, other *_workflow.py files and
    .github/workflows/*.yml.
    """
    workflow_files = set(root.glob("*_workflow.py"))
    workflow_files.update(root.glob(".github/workflows/*.yml"))
    workflow_files.update(root.glob(".github/workflows/*.yaml"))
    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and not workflow_path.suffix:
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  matrixci run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    default_workflow = Path(DEFAULT_WORKFLOW)
    if default_workflow.exists():
        return default_workflow

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_WORKFLOW}",
                "  *_workflow.py",
                "  .github/workflows/*.yml",
            ],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  matrixci run --workflow my_workflow.py",
        )
        sys.exit(1)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion="Specify a workflow explicitly:\n  matrixci run --workflow .github/workflows/test.yml",
        )
        sys.exit(1)

    return workflow_files[0]


def resolve_branch(branch_arg: str | None) -> str:
    if branch_arg:
        return branch_arg

    console = get_console()
    try:
        branch = current_branch()
        console.print_debug(f"Using git branch: {branch}")
        return branch
    except (subprocess.CalledProcessError, FileNotFoundError, ValueError) as e:
        console.print_error(
            "Could not determine branch",
            "No --branch specified and the current git branch is unknown.",
            details=[str(e)] if str(e) else None,
            suggestion="Specify the pushed branch explicitly:\n  matrixci run --branch master",
        )
        sys.exit(1)


def _load(ctx, workflow_path: Path) -> Pipeline:
    console = get_console()
    try:
        return load_workflow(workflow_path)
    except (WorkflowError, ValueError, FileNotFoundError) as e:
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        if ctx.obj.get("debug", False):
            console.print_exception(e)
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """matrixci: expand a CI job matrix and run its steps."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command("plan")
@click.option("--workflow", default=None, help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)")
@click.option("--branch", default=None, help="Branch of the push event (defaults to the current git branch)")
@click.pass_context
def plan_cmd(ctx, workflow, branch):
    """Show which jobs a push would run."""
    console = get_console()

    workflow_path = discover_workflow(workflow)
    pipeline = _load(ctx, workflow_path)
    branch = resolve_branch(branch)
    event = PushEvent.from_ref(branch)

    if not pipeline.trigger.matches(event):
        console.print_not_triggered(event.branch, pipeline.trigger.branches)
        return

    try:
        specs = plan(pipeline, event)
    except ValueError as e:
        console.print_error("Invalid matrix", str(e))
        sys.exit(1)
    console.print_plan(specs, pipeline.disabled_variants)


@cli.command()
@click.option("--workflow", default=None, help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)")
@click.option("--branch", default=None, help="Branch of the push event (defaults to the current git branch)")
@click.option("--workers", default=None, type=click.IntRange(min=1), help="Number of parallel jobs")
@click.option("--work-dir", default=None, help="Directory for per-job workspaces")
@click.option("--keep-workspaces", is_flag=True, default=False, help="Do not delete job workspaces afterwards")
@click.option("--any-os", is_flag=True, default=False, help="Run jobs whose runs-on does not match this host")
@click.option("--fail-fast/--no-fail-fast", default=False, show_default=True, help="Skip jobs not yet started after a failure")
@click.pass_context
def run(ctx, workflow, branch, workers, work_dir, keep_workspaces, any_os, fail_fast):
    """Run a matrixci pipeline for a push to BRANCH."""
    console = get_console()

    workflow_path = discover_workflow(workflow)
    pipeline = _load(ctx, workflow_path)
    branch = resolve_branch(branch)
    event = PushEvent.from_ref(branch)

    try:
        settings = Settings.from_env()

        if not pipeline.trigger.matches(event):
            console.print_not_triggered(event.branch, pipeline.trigger.branches)
            return

        specs = plan(pipeline, event)
        console.print_run_started(
            pipeline=pipeline.name,
            workflow=workflow_path.name,
            branch=event.branch,
            job_count=len(specs),
        )

        provisioner = LocalProvisioner(
            work_dir or settings.work_dir,
            source=workflow_root(workflow_path),
            allow_any_os=any_os,
            keep_workspaces=keep_workspaces or settings.keep_workspaces,
        )
        executor = ShellExecutor(output_tail=settings.output_tail)

        result = run_pipeline(
            specs,
            provisioner,
            executor,
            max_workers=workers or settings.workers,
            fail_fast=fail_fast,
        )

        console.print_results(result)

        if not result.succeeded:
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


def workflow_root(workflow_path: Path) -> Path:
    """The tree a checkout step copies: the repo holding the workflow file."""
    path = workflow_path.resolve().parent
    if path.name == "workflows" and path.parent.name == ".github":
        return path.parent.parent
    return path


if __name__ == "__main__":
    cli()
