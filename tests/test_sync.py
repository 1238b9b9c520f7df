from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from hdltb.fs import SyncError, SyncKind, sync_directory


class RecordingGate:
    def __init__(self, *, approve_dirs: bool = True, approve_files: bool = True) -> None:
        self.approve_dirs = approve_dirs
        self.approve_files = approve_files
        self.calls: list[tuple[str, str, str]] = []

    def on_create_directory(self, source: Path, dest: Path) -> bool:
        self.calls.append(("mkdir", source.name, dest.name))
        return self.approve_dirs

    async def on_copy_file(self, source: Path, dest: Path) -> bool:
        self.calls.append(("copy", source.name, dest.name))
        return self.approve_files


def _source(tmp_path: Path) -> Path:
    source = tmp_path / "src"
    (source / "dir").mkdir(parents=True)
    file_path = source / "dir" / "file.txt"
    file_path.write_text("payload", encoding="utf-8")
    os.utime(file_path, (100, 100))
    return source


def test_mirrors_into_empty_destination(tmp_path: Path) -> None:
    source = _source(tmp_path)
    dest = tmp_path / "dest"
    dest.mkdir()
    gate = RecordingGate()

    report = asyncio.run(sync_directory(source, dest, gate))

    kinds = [(item.kind, item.approved) for item in report.decisions]
    assert kinds == [(SyncKind.CREATE_DIRECTORY, True), (SyncKind.COPY_FILE, True)]
    assert gate.calls == [("mkdir", "dir", "dir"), ("copy", "file.txt", "file.txt")]
    assert (dest / "dir" / "file.txt").read_text(encoding="utf-8") == "payload"


def test_second_sync_is_a_no_op(tmp_path: Path) -> None:
    source = _source(tmp_path)
    dest = tmp_path / "dest"
    asyncio.run(sync_directory(source, dest))
    gate = RecordingGate()

    report = asyncio.run(sync_directory(source, dest, gate))

    assert gate.calls == []
    assert report.created == [] and report.copied == []
    assert len(report.skipped) == 2


def test_equal_mtime_counts_as_up_to_date(tmp_path: Path) -> None:
    source = _source(tmp_path)
    dest = tmp_path / "dest"
    (dest / "dir").mkdir(parents=True)
    target = dest / "dir" / "file.txt"
    target.write_text("stale but same age", encoding="utf-8")
    os.utime(target, (100, 100))
    gate = RecordingGate()

    asyncio.run(sync_directory(source, dest, gate))

    assert gate.calls == []
    assert target.read_text(encoding="utf-8") == "stale but same age"


def test_older_destination_is_overwritten(tmp_path: Path) -> None:
    source = _source(tmp_path)
    dest = tmp_path / "dest"
    (dest / "dir").mkdir(parents=True)
    target = dest / "dir" / "file.txt"
    target.write_text("old", encoding="utf-8")
    os.utime(target, (50, 50))

    report = asyncio.run(sync_directory(source, dest))

    assert [item.dest_path for item in report.copied] == [target]
    assert target.read_text(encoding="utf-8") == "payload"


def test_denied_copy_is_not_applied(tmp_path: Path) -> None:
    source = _source(tmp_path)
    dest = tmp_path / "dest"
    gate = RecordingGate(approve_files=False)

    report = asyncio.run(sync_directory(source, dest, gate))

    assert (dest / "dir").is_dir()
    assert not (dest / "dir" / "file.txt").exists()
    assert [item.kind for item in report.denied] == [SyncKind.COPY_FILE]


def test_denied_directory_skips_its_contents(tmp_path: Path) -> None:
    source = _source(tmp_path)
    dest = tmp_path / "dest"
    gate = RecordingGate(approve_dirs=False)

    report = asyncio.run(sync_directory(source, dest, gate))

    assert gate.calls == [("mkdir", "dir", "dir")]
    assert not (dest / "dir").exists()
    assert [item.kind for item in report.decisions] == [SyncKind.CREATE_DIRECTORY, SyncKind.SKIP]


def test_directories_are_created_before_files_inside_them(tmp_path: Path) -> None:
    source = tmp_path / "src"
    for relative in ["a/b/c", "a/d", "e"]:
        (source / relative).mkdir(parents=True)
    for relative in ["top.txt", "a/one.txt", "a/b/two.txt", "a/b/c/three.txt", "a/d/four.txt", "e/five.txt"]:
        (source / relative).write_text(relative, encoding="utf-8")
    dest = tmp_path / "dest"

    report = asyncio.run(sync_directory(source, dest))

    created_at: dict[Path, int] = {}
    for index, decision in enumerate(report.decisions):
        if decision.kind is SyncKind.CREATE_DIRECTORY:
            created_at[decision.dest_path] = index
        elif decision.kind is SyncKind.COPY_FILE:
            parent = decision.dest_path.parent
            if parent != dest:
                assert created_at[parent] < index
    for relative in ["top.txt", "a/one.txt", "a/b/two.txt", "a/b/c/three.txt", "a/d/four.txt", "e/five.txt"]:
        assert (dest / relative).read_text(encoding="utf-8") == relative


def test_missing_source_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(SyncError):
        asyncio.run(sync_directory(tmp_path / "missing", tmp_path / "dest"))


def test_destination_root_is_created_even_when_gate_denies_everything(tmp_path: Path) -> None:
    source = _source(tmp_path)
    dest = tmp_path / "dest"
    gate = RecordingGate(approve_dirs=False, approve_files=False)

    report = asyncio.run(sync_directory(source, dest, gate))

    assert dest.is_dir()
    assert list(dest.iterdir()) == []
    assert not any(item.approved for item in report.decisions)


def test_destination_checks_run_off_the_event_loop(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = _source(tmp_path)
    dest = tmp_path / "dest"
    offloaded: list[str] = []
    original = asyncio.to_thread

    async def recording_to_thread(func, /, *args, **kwargs):
        offloaded.append(getattr(func, "__name__", ""))
        return await original(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

    asyncio.run(sync_directory(source, dest))

    assert "exists" in offloaded
