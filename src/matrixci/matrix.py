# matrix.py
from __future__ import annotations

import itertools
import re
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .model import Axis, JobSpec, JobVariant, Pipeline

Combination = Tuple[Tuple[str, str], ...]

_PLACEHOLDER = re.compile(r"\$\{\{\s*matrix\.([A-Za-z_][\w-]*)\s*\}\}")


def expand_axes(axes: Sequence[Axis], exclude: Iterable[Mapping[str, str]] = ()) -> List[Combination]:
    """
    Cartesian product of the axes, first declared axis as the outer loop.

    Each combination is a tuple of (axis, value) pairs in axis order.
    No axes means no combinations.
    """
    if not axes:
        return []

    excluded = [dict(e) for e in exclude]
    names = [a.name for a in axes]
    combos: List[Combination] = []
    for values in itertools.product(*(a.values for a in axes)):
        combo = tuple(zip(names, values))
        if any(_matches(combo, e) for e in excluded):
            continue
        combos.append(combo)
    return combos


def _matches(combo: Combination, partial: Dict[str, str]) -> bool:
    values = dict(combo)
    return all(values.get(k) == str(v) for k, v in partial.items())


def render(template: str, combo: Combination) -> str:
    """Substitute `${{ matrix.<axis> }}` placeholders."""
    values = dict(combo)

    def sub(m: re.Match) -> str:
        key = m.group(1)
        if key not in values:
            raise ValueError(
                f"Unknown matrix axis {key!r} in {template!r}. Known axes: {sorted(values)}"
            )
        return values[key]

    return _PLACEHOLDER.sub(sub, template)


def job_name(template: str, combo: Combination) -> str:
    """
    Render a job's display name. Values of axes the template does not
    mention are appended, e.g. `test (ubuntu-latest, stable)`, so every
    combination gets its own name.
    """
    name = render(template, combo)
    referenced = set(_PLACEHOLDER.findall(template))
    extra = [v for k, v in combo if k not in referenced]
    if extra:
        name = f"{name} ({', '.join(extra)})"
    return name


def expand_variant(variant: JobVariant) -> List[JobSpec]:
    if variant.matrix is None:
        combos: List[Combination] = [()]
    else:
        combos = expand_axes(variant.matrix.axes, variant.matrix.exclude)

    return [
        JobSpec(
            variant=variant.id,
            name=job_name(variant.name_template, combo),
            runs_on=render(variant.runs_on, combo),
            steps=variant.steps,
            axis_values=combo,
        )
        for combo in combos
    ]


def expand(variants: Iterable[JobVariant]) -> List[JobSpec]:
    """
    Expand every enabled variant, in declaration order.

    Raises ValueError when jobs of different variants resolve to the same name.
    """
    specs: List[JobSpec] = []
    for variant in variants:
        if not variant.enabled:
            continue
        specs.extend(expand_variant(variant))

    names = [s.name for s in specs]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate job names found: {dupes}")
    return specs


def expand_pipeline(pipeline: Pipeline) -> List[JobSpec]:
    return expand(pipeline.variants)
