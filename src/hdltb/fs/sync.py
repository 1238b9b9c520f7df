"""Incremental mirroring of a source tree into a destination tree."""

from __future__ import annotations

import asyncio
import inspect
import logging
import shutil
from pathlib import Path
from typing import Any, Protocol

from .models import FileSystemEntry, SyncDecision, SyncKind, SyncReport
from .walker import walk

logger = logging.getLogger(__name__)


class SyncError(RuntimeError):
    """Raised when a sync cannot read its source tree or write its destination."""


class SyncGate(Protocol):
    """Approve or deny each mutating operation of a sync.

    Both hooks may return a bool or an awaitable resolving to one.
    """

    def on_create_directory(self, source: Path, dest: Path) -> Any:
        ...

    def on_copy_file(self, source: Path, dest: Path) -> Any:
        ...


class ApproveAllGate:
    """Gate that approves every operation silently."""

    def on_create_directory(self, source: Path, dest: Path) -> bool:
        return True

    def on_copy_file(self, source: Path, dest: Path) -> bool:
        return True


class LoggingGate:
    """Gate that logs every operation before approving it."""

    def __init__(self, logger_: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._logger = logger_ or logger
        self._level = level

    def on_create_directory(self, source: Path, dest: Path) -> bool:
        self._logger.log(self._level, "Creating directory %s", dest, extra={"source": str(source)})
        return True

    def on_copy_file(self, source: Path, dest: Path) -> bool:
        self._logger.log(self._level, "Copying %s -> %s", source, dest)
        return True


async def _ask(hook, source: Path, dest: Path) -> bool:
    verdict = hook(source, dest)
    if inspect.isawaitable(verdict):
        verdict = await verdict
    return bool(verdict)


def _stat_mtime_ns(path: Path) -> int | None:
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None


class _Mirror:
    def __init__(self, source_dir: Path, dest_dir: Path, gate: SyncGate) -> None:
        self.source_dir = source_dir
        self.dest_dir = dest_dir
        self.gate = gate
        self.report = SyncReport(source_dir=source_dir, dest_dir=dest_dir)
        self._denied_dirs: list[Path] = []

    def _record(self, entry: FileSystemEntry, dest: Path, kind: SyncKind, approved: bool = False) -> None:
        self.report.decisions.append(
            SyncDecision(source_path=entry.path, dest_path=dest, kind=kind, approved=approved)
        )

    def _under_denied(self, dest: Path) -> bool:
        return any(dest.is_relative_to(denied) for denied in self._denied_dirs)

    async def visit(self, entry: FileSystemEntry) -> None:
        dest = self.dest_dir / entry.path.relative_to(self.source_dir)
        if self._under_denied(dest):
            self._record(entry, dest, SyncKind.SKIP)
            return
        if entry.is_directory:
            await self._directory(entry, dest)
        else:
            await self._file(entry, dest)

    async def _directory(self, entry: FileSystemEntry, dest: Path) -> None:
        if await asyncio.to_thread(dest.exists):
            self._record(entry, dest, SyncKind.SKIP)
            return

        approved = await _ask(self.gate.on_create_directory, entry.path, dest)
        self._record(entry, dest, SyncKind.CREATE_DIRECTORY, approved)
        if not approved:
            self._denied_dirs.append(dest)
            return
        await asyncio.to_thread(dest.mkdir, parents=True, exist_ok=True)

    async def _file(self, entry: FileSystemEntry, dest: Path) -> None:
        dest_mtime = await asyncio.to_thread(_stat_mtime_ns, dest)
        if dest_mtime is not None and dest_mtime >= entry.modified_time_ns:
            self._record(entry, dest, SyncKind.SKIP)
            return

        approved = await _ask(self.gate.on_copy_file, entry.path, dest)
        self._record(entry, dest, SyncKind.COPY_FILE, approved)
        if approved:
            await asyncio.to_thread(shutil.copyfile, entry.path, dest)


async def sync_directory(
    source_dir: Path,
    dest_dir: Path,
    gate: SyncGate | None = None,
) -> SyncReport:
    """Mirror ``source_dir`` into ``dest_dir``, copying only out-of-date files.

    A destination file whose modification time is at least the source's is
    considered up to date and left alone without asking the gate. Every
    directory creation and file copy is offered to ``gate`` first; a denied
    operation is recorded and skipped, and so is everything below a
    directory whose creation was denied.

    ``dest_dir`` itself is created unconditionally when missing; the gate
    only governs what is placed inside it.
    """

    source_dir = Path(source_dir)
    dest_dir = Path(dest_dir)
    if not source_dir.is_dir():
        raise SyncError(f"Source directory {source_dir} does not exist or is not a directory")

    await asyncio.to_thread(dest_dir.mkdir, parents=True, exist_ok=True)
    mirror = _Mirror(source_dir, dest_dir, gate or ApproveAllGate())
    try:
        await walk(source_dir, mirror.visit)
    except PermissionError as exc:
        raise SyncError(f"Permission denied while syncing {exc.filename}") from exc

    report = mirror.report
    logger.debug(
        "Synced %s -> %s",
        source_dir,
        dest_dir,
        extra={
            "dirs_created": len(report.created),
            "files_copied": len(report.copied),
            "entries_skipped": len(report.skipped),
            "operations_denied": len(report.denied),
        },
    )
    return report


__all__ = ["ApproveAllGate", "LoggingGate", "SyncError", "SyncGate", "sync_directory"]
