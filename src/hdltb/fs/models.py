"""Data models for directory walking and mirroring."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class SyncKind(str, Enum):
    CREATE_DIRECTORY = "create_directory"
    COPY_FILE = "copy_file"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class FileSystemEntry:
    path: Path
    is_directory: bool
    modified_time_ns: int


@dataclass(frozen=True, slots=True)
class SyncDecision:
    """Outcome for a single source entry during a sync."""

    source_path: Path
    dest_path: Path
    kind: SyncKind
    approved: bool = False


@dataclass(slots=True)
class SyncReport:
    """Ordered decisions taken while mirroring one tree into another."""

    source_dir: Path
    dest_dir: Path
    decisions: list[SyncDecision] = field(default_factory=list)

    def _applied(self, kind: SyncKind) -> list[SyncDecision]:
        return [item for item in self.decisions if item.kind is kind and item.approved]

    @property
    def created(self) -> list[SyncDecision]:
        return self._applied(SyncKind.CREATE_DIRECTORY)

    @property
    def copied(self) -> list[SyncDecision]:
        return self._applied(SyncKind.COPY_FILE)

    @property
    def skipped(self) -> list[SyncDecision]:
        return [item for item in self.decisions if item.kind is SyncKind.SKIP]

    @property
    def denied(self) -> list[SyncDecision]:
        return [
            item for item in self.decisions if item.kind is not SyncKind.SKIP and not item.approved
        ]


__all__ = ["FileSystemEntry", "SyncDecision", "SyncKind", "SyncReport"]
