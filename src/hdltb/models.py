"""Immutable per-stage results of a testbench pipeline run."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any


class Classification(str, Enum):
    SUCCESS = "success"
    COMPILE_FAILED = "compile failed"
    RUN_FAILED = "run failed"


@dataclass(frozen=True, slots=True)
class TestBench:
    """A testbench source and the non-testbench sources compiled with it."""

    __test__ = False

    file_name: str
    dependencies: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class CompileResult:
    test_bench: TestBench
    output_file: Path
    output: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class RunResult:
    test_bench: TestBench
    output: str
    exit_code: int


@dataclass(frozen=True, slots=True)
class TestBenchResult:
    """Everything the reports need to know about one testbench."""

    __test__ = False

    name: str
    compile_output: str
    compile_exit_code: int
    run_output: str | None
    run_exit_code: int | None
    classification: Classification
    report_file: str

    @property
    def passed(self) -> bool:
        return self.classification is Classification.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["classification"] = self.classification.value
        return payload


def classify(compile_result: CompileResult, run_result: RunResult | None) -> Classification:
    if not compile_result.ok:
        return Classification.COMPILE_FAILED
    if run_result is None or run_result.exit_code != 0:
        return Classification.RUN_FAILED
    return Classification.SUCCESS


__all__ = [
    "Classification",
    "CompileResult",
    "RunResult",
    "TestBench",
    "TestBenchResult",
    "classify",
]
