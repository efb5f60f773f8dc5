import pytest

from matrixci.dsl import axis, checkout, job, matrix, pipeline, sh
from matrixci.matrix import expand, expand_axes, expand_pipeline, expand_variant, render
from matrixci.model import Axis


@pytest.mark.parametrize(
    "sizes",
    [[1], [3], [2, 2], [2, 3, 4], [1, 5, 1]],
)
def test_product_size(sizes):
    axes = [Axis(f"a{i}", [f"v{j}" for j in range(n)]) for i, n in enumerate(sizes)]
    expected = 1
    for n in sizes:
        expected *= n
    assert len(expand_axes(axes)) == expected


def test_no_axes_means_no_combinations():
    assert expand_axes([]) == []


def test_axis_without_values_means_no_combinations():
    assert expand_axes([Axis("os", ["a", "b"]), Axis("arch", [])]) == []


def test_first_axis_is_outer_loop():
    combos = expand_axes([axis("os", ["linux", "windows"]), axis("rust", ["stable", "nightly"])])
    assert combos == [
        (("os", "linux"), ("rust", "stable")),
        (("os", "linux"), ("rust", "nightly")),
        (("os", "windows"), ("rust", "stable")),
        (("os", "windows"), ("rust", "nightly")),
    ]


def test_exclude_drops_matching_combinations():
    m = matrix(os=["linux", "windows"], rust=["stable", "nightly"], exclude=[{"os": "windows", "rust": "nightly"}])
    combos = expand_axes(m.axes, m.exclude)
    assert (("os", "windows"), ("rust", "nightly")) not in combos
    assert len(combos) == 3


def test_render_substitutes_axis_values():
    combo = (("os", "ubuntu-latest"),)
    assert render("Test on ${{ matrix.os }}", combo) == "Test on ubuntu-latest"
    assert render("${{matrix.os}}", combo) == "ubuntu-latest"
    assert render("plain", combo) == "plain"


def test_render_unknown_axis_raises():
    with pytest.raises(ValueError, match="Unknown matrix axis"):
        render("${{ matrix.arch }}", (("os", "linux"),))


def test_variant_expands_names_and_targets():
    v = job(
        "test",
        checkout(),
        sh("Test", "cargo test"),
        name="Test on ${{ matrix.os }}",
        runs_on="${{ matrix.os }}",
        matrix=matrix(os=["ubuntu-latest", "windows-latest"]),
    )
    specs = expand_variant(v)

    assert [s.name for s in specs] == ["Test on ubuntu-latest", "Test on windows-latest"]
    assert [s.runs_on for s in specs] == ["ubuntu-latest", "windows-latest"]
    assert specs[0].values == {"os": "ubuntu-latest"}
    assert all(s.variant == "test" and s.steps == v.steps for s in specs)


def test_variant_without_matrix_is_one_job():
    v = job("build_macos", sh("Test", "cargo test"), runs_on="macOS-latest")
    specs = expand_variant(v)
    assert len(specs) == 1
    assert specs[0].name == "build_macos"
    assert specs[0].axis_values == ()


def test_variant_with_empty_matrix_is_no_job():
    v = job("x", sh("Test", "true"), runs_on="ubuntu-latest", matrix=matrix())
    assert expand_variant(v) == []


def test_disabled_variant_is_never_expanded():
    enabled = job(
        "test",
        sh("Test", "true"),
        name="Test on ${{ matrix.os }}",
        runs_on="${{ matrix.os }}",
        matrix=matrix(os=["ubuntu-latest", "windows-latest", "redox"], exclude=[{"os": "redox"}]),
    )
    disabled = job("build_redox", sh("Test", "redoxer test"), runs_on="ubuntu-latest", enabled=False)

    specs = expand([enabled, disabled])
    assert len(specs) == 2
    assert "build_redox" not in {s.variant for s in specs}


def test_expand_keeps_declaration_order():
    a = job("a", sh("t", "true"), runs_on="ubuntu-latest")
    b = job("b", sh("t", "true"), name="b-${{ matrix.n }}", runs_on="ubuntu-latest", matrix=matrix(n=[1, 2]))
    c = job("c", sh("t", "true"), runs_on="ubuntu-latest")
    assert [s.name for s in expand([a, b, c])] == ["a", "b-1", "b-2", "c"]


def test_duplicate_resolved_names_are_rejected():
    a = job("a", sh("t", "true"), name="same", runs_on="ubuntu-latest")
    b = job("b", sh("t", "true"), name="same", runs_on="ubuntu-latest")
    with pytest.raises(ValueError, match="Duplicate job names"):
        expand([a, b])


def test_unnamed_matrix_job_gets_one_name_per_combination():
    v = job("test", sh("t", "true"), runs_on="${{ matrix.os }}", matrix=matrix(os=["ubuntu-latest", "windows-latest"]))
    assert [s.name for s in expand([v])] == ["test (ubuntu-latest)", "test (windows-latest)"]


def test_axes_missing_from_the_name_are_appended():
    v = job(
        "test",
        sh("t", "cargo test"),
        name="Test on ${{ matrix.os }}",
        runs_on="${{ matrix.os }}",
        matrix=matrix(os=["ubuntu-latest", "windows-latest"], rust=["stable", "nightly"]),
    )
    assert [s.name for s in expand([v])] == [
        "Test on ubuntu-latest (stable)",
        "Test on ubuntu-latest (nightly)",
        "Test on windows-latest (stable)",
        "Test on windows-latest (nightly)",
    ]


def test_expand_pipeline_is_deterministic():
    p = pipeline(
        "test",
        job("test", sh("t", "true"), name="T ${{ matrix.os }}", runs_on="${{ matrix.os }}",
            matrix=matrix(os=["ubuntu-latest", "windows-latest"])),
        branches=["master"],
    )
    assert expand_pipeline(p) == expand_pipeline(p)
