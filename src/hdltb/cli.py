"""Command line entry point for hdltb."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any

from . import __version__
from .config import BenchSettings, SettingsLoadError, load_settings
from .pipeline import run_pipeline
from .toolchain import IverilogRunner, ToolchainError
from .watch import watch

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for hdltb."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hdltb",
        description="Compile, run and report Verilog testbenches.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-i", "--input-directory", type=Path, help="Root of the sources (default: cwd)")
    parser.add_argument("-o", "--build-directory", type=Path, help="Where compiled testbenches go")
    parser.add_argument("-r", "--report-directory", type=Path, help="Where HTML reports go")
    parser.add_argument("--file-pattern", help="Glob selecting source files (default: **/*.v)")
    parser.add_argument(
        "--test-bench-pattern",
        help="Glob selecting testbench files (default: **/*_tb.v)",
    )
    parser.add_argument(
        "--tool-flag",
        dest="tool_flags",
        action="append",
        help="Flag passed to the compiler; repeat for several (default: -Wall)",
    )
    parser.add_argument("--compiler", help="Compiler executable (default: iverilog on PATH)")
    parser.add_argument("--runtime", help="Run compiled testbenches through this program, e.g. vvp")
    parser.add_argument("-c", "--config", type=Path, help="YAML config file (default: hdltb.yml)")
    parser.add_argument(
        "-w",
        "--watch",
        action="store_true",
        default=None,
        help="Re-run whenever a source file changes",
    )
    parser.add_argument("--debounce-ms", type=int, help="Quiet period before a re-run (default: 100)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def settings_from_args(args: argparse.Namespace) -> BenchSettings:
    overrides: dict[str, Any] = {
        "input_directory": args.input_directory,
        "build_directory": args.build_directory,
        "report_directory": args.report_directory,
        "file_pattern": args.file_pattern,
        "test_bench_pattern": args.test_bench_pattern,
        "tool_flags": args.tool_flags,
        "compiler": args.compiler,
        "runtime": args.runtime,
        "watch": args.watch,
        "debounce_ms": args.debounce_ms,
    }
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    return load_settings(args.config, **overrides)


async def run_once(settings: BenchSettings, toolchain: IverilogRunner) -> int:
    try:
        await run_pipeline(settings, toolchain)
    except Exception:
        logger.exception("Pipeline failed")
        return 1
    return 0


async def run_watch(settings: BenchSettings, toolchain: IverilogRunner) -> int:
    async def trigger() -> None:
        await run_pipeline(settings, toolchain)

    await watch(
        settings.input_directory,
        settings.file_pattern,
        settings.build_directory,
        trigger,
        quiet_period=settings.quiet_period,
    )
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``hdltb`` command."""

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args)
    except SettingsLoadError as exc:
        configure_logging("ERROR")
        logger.error("%s", exc)
        raise SystemExit(2)

    configure_logging(settings.log_level)

    try:
        toolchain = IverilogRunner(settings.compiler, settings.runtime)
    except ToolchainError as exc:
        logger.error("%s", exc)
        raise SystemExit(1)

    logger.debug("Using settings %s", settings.model_dump(mode="json"))
    runner = run_watch if settings.watch else run_once
    try:
        exit_code = asyncio.run(runner(settings, toolchain))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        exit_code = 130 if not settings.watch else 0
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
