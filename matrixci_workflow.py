# matrixci_workflow.py
# CI for matrixci itself: the test suite on every supported OS.
from __future__ import annotations

from matrixci import checkout, job, matrix, pipeline, sh, toolchain

PIPELINE = pipeline(
    "test",
    job(
        "test",
        checkout(),
        sh("Install package", "python -m pip install -e .[test]"),
        sh("Run pytest", "python -m pytest -q"),
        name="Test on ${{ matrix.os }}",
        runs_on="${{ matrix.os }}",
        matrix=matrix(os=["ubuntu-latest", "windows-latest"]),
    ),
    # Kept for reference, not run until a macOS runner is available.
    job(
        "test_macos",
        checkout(),
        toolchain("Install python", "brew install python"),
        sh("Install package", "python3 -m pip install -e .[test]"),
        sh("Run pytest", "python3 -m pytest -q"),
        name="Test on macOS-latest",
        runs_on="macOS-latest",
        enabled=False,
    ),
    branches=["master", "develop"],
)
