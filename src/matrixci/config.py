# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_WORK_DIR = ".matrixci/work"
DEFAULT_OUTPUT_TAIL = 4000

_TRUTHY = {"1", "true", "yes", "on"}


def default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


@dataclass(frozen=True)
class Settings:
    """Runtime knobs, read from MATRIXCI_* environment variables."""
    workers: int
    work_dir: Path
    keep_workspaces: bool = False
    output_tail: int = DEFAULT_OUTPUT_TAIL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if environ is None else environ

        workers = int(env.get("MATRIXCI_WORKERS") or default_workers())
        if workers < 1:
            raise ValueError(f"MATRIXCI_WORKERS must be >= 1, got {workers}")

        output_tail = int(env.get("MATRIXCI_OUTPUT_TAIL") or DEFAULT_OUTPUT_TAIL)
        if output_tail < 0:
            raise ValueError(f"MATRIXCI_OUTPUT_TAIL must be >= 0, got {output_tail}")

        return cls(
            workers=workers,
            work_dir=Path(env.get("MATRIXCI_WORK_DIR") or DEFAULT_WORK_DIR),
            keep_workspaces=env.get("MATRIXCI_KEEP_WORKSPACES", "").strip().lower() in _TRUTHY,
            output_tail=output_tail,
        )
