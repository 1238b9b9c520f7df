"""Testbench build pipeline expressed as a task graph."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Mapping

from .config import BenchSettings
from .discovery import collect_test_benches, discover_files
from .fs import LoggingGate, SyncGate, sync_directory
from .graph import TaskGraph, TaskGraphExecutor
from .models import CompileResult, RunResult, TestBench, TestBenchResult, classify
from .report import report_file_name, write_reports
from .toolchain import IverilogRunner
from .toolchain.runner import serialize_result

logger = logging.getLogger(__name__)

SKELETON_DIRECTORY = Path(__file__).resolve().parent / "skeleton"


async def _make_directory(path: Path) -> Path:
    await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
    return path


def _output_file(settings: BenchSettings, test_bench: TestBench) -> Path:
    return settings.build_directory / f"{test_bench.file_name}.out"


async def _compile_one(
    toolchain: IverilogRunner,
    settings: BenchSettings,
    test_bench: TestBench,
) -> CompileResult:
    output_file = _output_file(settings, test_bench)
    result = await toolchain.compile(
        output_file,
        [settings.input_directory / name for name in test_bench.dependencies],
        settings.input_directory / test_bench.file_name,
        flags=settings.tool_flags,
    )
    if not result.ok:
        logger.warning(
            "Compilation of %s failed with exit code %s",
            test_bench.file_name,
            result.returncode,
        )
        logger.debug("Compiler invocation: %s", serialize_result(result))
    return CompileResult(
        test_bench=test_bench,
        output_file=output_file,
        output=result.output,
        exit_code=result.returncode,
    )


async def _run_one(toolchain: IverilogRunner, compiled: CompileResult) -> RunResult | None:
    if not compiled.ok:
        logger.warning(
            "Skipping testbench %s: compile exit code was %s",
            compiled.test_bench.file_name,
            compiled.exit_code,
        )
        return None
    logger.info("Running testbench %s", compiled.test_bench.file_name)
    result = await toolchain.run_test_bench(compiled.output_file)
    return RunResult(test_bench=compiled.test_bench, output=result.output, exit_code=result.returncode)


def _analyze(
    compiled: tuple[CompileResult, ...],
    runs: tuple[RunResult | None, ...],
) -> tuple[TestBenchResult, ...]:
    results = []
    for compile_result, run_result in zip(compiled, runs):
        name = compile_result.test_bench.file_name
        results.append(
            TestBenchResult(
                name=name,
                compile_output=compile_result.output,
                compile_exit_code=compile_result.exit_code,
                run_output=run_result.output if run_result else None,
                run_exit_code=run_result.exit_code if run_result else None,
                classification=classify(compile_result, run_result),
                report_file=report_file_name(name),
            )
        )
    return tuple(results)


def build_pipeline(
    settings: BenchSettings,
    toolchain: IverilogRunner,
    *,
    skeleton_directory: Path = SKELETON_DIRECTORY,
    gate: SyncGate | None = None,
) -> TaskGraph:
    """Wire discovery, compilation, simulation, analysis and reporting as tasks."""

    graph = TaskGraph()
    gate = gate or LoggingGate(logger)

    @graph.task("build_directory")
    async def build_directory(_: Mapping[str, Any]) -> Path:
        return await _make_directory(settings.build_directory)

    @graph.task("report_directory")
    async def report_directory(_: Mapping[str, Any]) -> Path:
        return await _make_directory(settings.report_directory)

    @graph.task("files")
    async def files(_: Mapping[str, Any]) -> list[str]:
        found = await asyncio.to_thread(
            discover_files,
            settings.input_directory,
            settings.file_pattern,
            exclude=(settings.build_directory, settings.report_directory),
        )
        logger.info("Found %d source file(s) in %s", len(found), settings.input_directory)
        return found

    @graph.task("test_benches", depends_on=["files"])
    def test_benches(inputs: Mapping[str, Any]) -> tuple[TestBench, ...]:
        benches = collect_test_benches(inputs["files"], settings.test_bench_pattern)
        logger.info("Found %d testbench(es)", len(benches))
        return benches

    @graph.task("report_skeleton", depends_on=["report_directory"])
    async def report_skeleton(inputs: Mapping[str, Any]):
        return await sync_directory(skeleton_directory, inputs["report_directory"], gate)

    @graph.task("compile", depends_on=["build_directory", "test_benches"])
    async def compile_all(inputs: Mapping[str, Any]) -> tuple[CompileResult, ...]:
        # Output directories exist before any compiler starts, so launches follow bench order.
        parents = {_output_file(settings, bench).parent for bench in inputs["test_benches"]}
        for parent in sorted(parents):
            await _make_directory(parent)
        return tuple(
            await asyncio.gather(
                *(_compile_one(toolchain, settings, bench) for bench in inputs["test_benches"])
            )
        )

    @graph.task("run", depends_on=["compile"])
    async def run_all(inputs: Mapping[str, Any]) -> tuple[RunResult | None, ...]:
        return tuple(
            await asyncio.gather(*(_run_one(toolchain, compiled) for compiled in inputs["compile"]))
        )

    @graph.task("analyze", depends_on=["compile", "run"])
    def analyze(inputs: Mapping[str, Any]) -> tuple[TestBenchResult, ...]:
        return _analyze(inputs["compile"], inputs["run"])

    @graph.task("reports", depends_on=["analyze", "report_skeleton"])
    async def reports(inputs: Mapping[str, Any]) -> Path:
        return await asyncio.to_thread(write_reports, inputs["analyze"], settings.report_directory)

    return graph


async def run_pipeline(
    settings: BenchSettings,
    toolchain: IverilogRunner | None = None,
    **kwargs: Any,
) -> tuple[TestBenchResult, ...]:
    """Build and execute the pipeline once; return the per-testbench results."""

    toolchain = toolchain or IverilogRunner(settings.compiler, settings.runtime)
    graph = build_pipeline(settings, toolchain, **kwargs)
    outputs = await TaskGraphExecutor().run(graph)

    results: tuple[TestBenchResult, ...] = outputs["analyze"]
    passed = sum(1 for result in results if result.passed)
    logger.info(
        "%d of %d testbench(es) passed; summary at %s",
        passed,
        len(results),
        outputs["reports"],
        extra={"passed": passed, "total": len(results)},
    )
    return results


__all__ = ["SKELETON_DIRECTORY", "build_pipeline", "run_pipeline"]
