"""Async runner for the Icarus Verilog compiler and compiled testbenches."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from .utils import sanitize_environment

logger = logging.getLogger(__name__)


class ToolchainError(RuntimeError):
    """Base class for toolchain errors."""


class ToolNotFoundError(ToolchainError):
    """Raised when the compiler or runtime executable cannot be located."""


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Holds the outcome of a compiler or testbench invocation."""

    args: tuple[str, ...]
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _resolve(explicit: str | Path | None, default: str | None) -> Path | None:
    if explicit is not None:
        candidate = Path(explicit)
        if candidate.is_file():
            return candidate
        found = shutil.which(str(explicit))
        if found is None:
            raise ToolNotFoundError(f"Executable not found: {explicit}")
        return Path(found)

    if default is None:
        return None
    found = shutil.which(default)
    if found is None:
        raise ToolNotFoundError(f"{default} executable not found on PATH")
    return Path(found)


class IverilogRunner:
    """Compile testbenches with iverilog and execute the produced simulations.

    Compiled testbenches are run directly (iverilog emits a ``#!vvp`` script)
    unless ``runtime`` names an interpreter such as ``vvp`` to run them with.
    """

    def __init__(self, compiler: str | Path | None = None, runtime: str | Path | None = None) -> None:
        self._compiler = _resolve(compiler, "iverilog")
        self._runtime = _resolve(runtime, None)

    @property
    def compiler(self) -> Path:
        return self._compiler

    @property
    def runtime(self) -> Path | None:
        return self._runtime

    async def compile(
        self,
        output_file: Path,
        dependencies: Sequence[Path],
        source: Path,
        *,
        flags: Sequence[str] | None = None,
    ) -> ToolResult:
        args: list[str] = list(flags or [])
        args.append(f"-o{output_file}")
        args.extend(str(path) for path in dependencies)
        args.append(str(source))
        return await self._invoke(str(self._compiler), *args)

    async def run_test_bench(self, executable: Path) -> ToolResult:
        if self._runtime is not None:
            return await self._invoke(str(self._runtime), str(executable))
        return await self._invoke(str(executable))

    async def _invoke(self, *cmd: str) -> ToolResult:
        logger.info("Running %s", " ".join(cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise ToolchainError(f"Unable to start {cmd[0]}: {exc}") from exc
        output_bytes, _ = await process.communicate()
        output = output_bytes.decode("utf-8", errors="replace")
        return ToolResult(args=tuple(cmd), returncode=process.returncode, output=output)


class FakeToolchain(IverilogRunner):
    """Test double that replays queued compile and run results."""

    def __init__(  # type: ignore[override]
        self,
        compile_results: Iterable[ToolResult] | None = None,
        run_results: Iterable[ToolResult] | None = None,
    ) -> None:
        self._compile_results = list(compile_results or [])
        self._run_results = list(run_results or [])
        self._invocations: list[tuple[str, tuple[str, ...]]] = []
        self._compiler = Path("/tmp/fake-iverilog")
        self._runtime = None

    async def compile(  # type: ignore[override]
        self,
        output_file: Path,
        dependencies: Sequence[Path],
        source: Path,
        *,
        flags: Sequence[str] | None = None,
    ) -> ToolResult:
        args = (*(flags or []), f"-o{output_file}", *map(str, dependencies), str(source))
        self._invocations.append(("compile", args))
        if self._compile_results:
            return self._compile_results.pop(0)
        return ToolResult(args=args, returncode=0, output="")

    async def run_test_bench(self, executable: Path) -> ToolResult:  # type: ignore[override]
        args = (str(executable),)
        self._invocations.append(("run", args))
        if self._run_results:
            return self._run_results.pop(0)
        return ToolResult(args=args, returncode=0, output="")

    @property
    def invocations(self) -> list[tuple[str, tuple[str, ...]]]:
        return self._invocations

    def calls(self, kind: str) -> list[tuple[str, ...]]:
        return [args for name, args in self._invocations if name == kind]


def serialize_result(result: ToolResult) -> str:
    """Serialize an invocation result for logs and diagnostics."""

    return json.dumps(
        {
            "args": list(result.args),
            "returncode": result.returncode,
            "output": result.output,
        }
    )


__all__ = [
    "FakeToolchain",
    "IverilogRunner",
    "ToolNotFoundError",
    "ToolResult",
    "ToolchainError",
    "serialize_result",
]
