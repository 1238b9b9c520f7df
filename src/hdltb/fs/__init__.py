"""Filesystem traversal and incremental mirroring."""

from .models import FileSystemEntry, SyncDecision, SyncKind, SyncReport
from .sync import ApproveAllGate, LoggingGate, SyncError, SyncGate, sync_directory
from .walker import EntryCallback, walk

__all__ = [
    "ApproveAllGate",
    "EntryCallback",
    "FileSystemEntry",
    "LoggingGate",
    "SyncDecision",
    "SyncError",
    "SyncGate",
    "SyncKind",
    "SyncReport",
    "sync_directory",
    "walk",
]
