"""Source discovery and glob matching."""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Iterable

from .models import TestBench


def _class_end(pattern: str, start: int) -> int | None:
    """Index of the ``]`` closing the character class opened at ``start``."""

    j = start + 1
    if j < len(pattern) and pattern[j] in "!^":
        j += 1
    # A leading "]" is a member of the class, not its end.
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    end = pattern.find("]", j)
    return end if end != -1 else None


@lru_cache(maxsize=64)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        elif pattern[i] == "[":
            end = _class_end(pattern, i)
            if end is None:
                parts.append(re.escape("["))
                i += 1
                continue
            body = pattern[i + 1:end]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            parts.append(f"(?!/)[{'^' if negate else ''}{body}]")
            i = end + 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def matches(path: str | PurePosixPath, pattern: str) -> bool:
    """Match a relative POSIX path against a glob where ``**/`` spans zero or more directories."""

    return _compile_glob(pattern).match(str(path)) is not None


def _is_within(path: Path, roots: Iterable[Path]) -> bool:
    return any(path.is_relative_to(root) for root in roots)


def discover_files(
    input_directory: Path,
    file_pattern: str,
    *,
    exclude: Iterable[Path] = (),
) -> list[str]:
    """Return sorted POSIX paths, relative to ``input_directory``, of files matching ``file_pattern``.

    Matching uses :func:`matches`, the same rules as test bench selection and
    watch filtering. Directories in ``exclude`` (typically the build and report
    directories) are not descended into.
    """

    root = Path(input_directory)
    excluded = [Path(path).resolve() for path in exclude]
    found: list[str] = []
    for directory, dirnames, filenames in os.walk(root):
        current = Path(directory)
        dirnames[:] = [name for name in dirnames if not _is_within((current / name).resolve(), excluded)]
        for name in filenames:
            relative = (current / name).relative_to(root).as_posix()
            if matches(relative, file_pattern):
                found.append(relative)
    return sorted(found)


def collect_test_benches(files: Iterable[str], test_bench_pattern: str) -> tuple[TestBench, ...]:
    """Pair every file matching ``test_bench_pattern`` with all other files as its dependencies."""

    files = list(files)
    benches = [name for name in files if matches(name, test_bench_pattern)]
    dependencies = tuple(name for name in files if not matches(name, test_bench_pattern))
    return tuple(TestBench(file_name=name, dependencies=dependencies) for name in benches)


__all__ = ["collect_test_benches", "discover_files", "matches"]
