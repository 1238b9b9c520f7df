"""Recursive, sequential directory traversal."""

from __future__ import annotations

import asyncio
import inspect
import os
import stat
from pathlib import Path
from typing import Any, Callable

from .models import FileSystemEntry

EntryCallback = Callable[[FileSystemEntry], Any]


def _scan(directory: Path) -> list[FileSystemEntry]:
    entries: list[FileSystemEntry] = []
    for name in sorted(os.listdir(directory)):
        path = directory / name
        stats = path.stat()
        entries.append(
            FileSystemEntry(
                path=path,
                is_directory=stat.S_ISDIR(stats.st_mode),
                modified_time_ns=stats.st_mtime_ns,
            )
        )
    return entries


async def walk(root: Path, on_entry: EntryCallback) -> int:
    """Visit every entry below ``root`` and return how many were visited.

    Children are listed in name order and handed to ``on_entry`` one at a
    time. Only once every sibling has been visited does the walk descend
    into the sibling directories, in the same order. Callers that create a
    directory from its entry can rely on that happening before any entry
    inside it is visited.

    Errors from listing, stat or the callback stop the walk and propagate;
    entries visited before the error have already been processed.
    """

    entries = await asyncio.to_thread(_scan, Path(root))
    for entry in entries:
        outcome = on_entry(entry)
        if inspect.isawaitable(outcome):
            await outcome

    visited = len(entries)
    for entry in entries:
        if entry.is_directory:
            visited += await walk(entry.path, on_entry)
    return visited


__all__ = ["EntryCallback", "walk"]
