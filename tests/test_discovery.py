from __future__ import annotations

from pathlib import Path

import pytest

from hdltb.discovery import collect_test_benches, discover_files, matches
from hdltb.models import TestBench


@pytest.mark.parametrize(
    ("path", "pattern", "expected"),
    [
        ("a_tb.v", "**/*_tb.v", True),
        ("rtl/core/alu_tb.v", "**/*_tb.v", True),
        ("a.v", "**/*_tb.v", False),
        ("a.v", "*.v", True),
        ("rtl/a.v", "*.v", False),
        ("rtl/a.v", "rtl/?.v", True),
        ("rtl/sub/a.v", "rtl/**", True),
        ("a.sv", "**/*.v", False),
        ("tb_a.v", "**/tb_[ab].v", True),
        ("rtl/tb_b.v", "**/tb_[ab].v", True),
        ("tb_c.v", "**/tb_[ab].v", False),
        ("tb_c.v", "**/tb_[!ab].v", True),
        ("tb_a.v", "**/tb_[!ab].v", False),
        ("alu_3.v", "*_[0-9].v", True),
        ("rtl/x.v", "rtl[/]x.v", False),
        ("a[b.v", "a[b.v", True),
    ],
)
def test_matches_glob_semantics(path: str, pattern: str, expected: bool) -> None:
    assert matches(path, pattern) is expected


def test_single_test_bench_depends_on_every_other_file(tmp_path: Path) -> None:
    for name in ["a.v", "b.v", "a_tb.v"]:
        (tmp_path / name).write_text("", encoding="utf-8")

    files = discover_files(tmp_path, "**/*.v")
    benches = collect_test_benches(files, "**/*_tb.v")

    assert files == ["a.v", "a_tb.v", "b.v"]
    assert benches == (TestBench(file_name="a_tb.v", dependencies=("a.v", "b.v")),)


def test_discovery_skips_excluded_directories(tmp_path: Path) -> None:
    (tmp_path / "rtl").mkdir()
    (tmp_path / "build" / "out").mkdir(parents=True)
    (tmp_path / "rtl" / "alu.v").write_text("", encoding="utf-8")
    (tmp_path / "build" / "out" / "generated.v").write_text("", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("", encoding="utf-8")

    files = discover_files(tmp_path, "**/*.v", exclude=[tmp_path / "build"])

    assert files == ["rtl/alu.v"]


def test_every_test_bench_gets_the_same_dependencies() -> None:
    benches = collect_test_benches(["alu.v", "alu_tb.v", "mux.v", "tb/mux_tb.v"], "**/*_tb.v")

    assert [bench.file_name for bench in benches] == ["alu_tb.v", "tb/mux_tb.v"]
    assert {bench.dependencies for bench in benches} == {("alu.v", "mux.v")}


def test_discovery_and_test_bench_selection_agree_on_classes(tmp_path: Path) -> None:
    for name in ["alu.v", "tb_a.v", "tb_c.v"]:
        (tmp_path / name).write_text("", encoding="utf-8")

    files = discover_files(tmp_path, "**/*.v")
    benches = collect_test_benches(files, "**/tb_[ab].v")

    assert discover_files(tmp_path, "**/tb_[ab].v") == ["tb_a.v"]
    assert [bench.file_name for bench in benches] == ["tb_a.v"]
    assert benches[0].dependencies == ("alu.v", "tb_c.v")
