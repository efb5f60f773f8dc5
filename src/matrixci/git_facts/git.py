# git.py
# Small, focused wrapper around the Git CLI.
# The CLI only needs to know which branch a local run stands for.

from __future__ import annotations

import subprocess
from typing import Optional


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Raises subprocess.CalledProcessError on a non-zero exit and
    FileNotFoundError when git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def current_branch(cwd: Optional[str] = None) -> str:
    """
    Name of the checked-out branch.

    Raises ValueError on a detached HEAD, where there is no branch a push
    could have targeted.
    """
    # `--abbrev-ref HEAD` prints the branch name, or literally "HEAD" when detached
    name = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    if name == "HEAD":
        raise ValueError("HEAD is detached; pass --branch explicitly")
    return name
