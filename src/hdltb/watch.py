"""Debounced re-run of the pipeline on source changes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .discovery import matches

logger = logging.getLogger(__name__)

TriggerCallback = Callable[[], Awaitable[Any]]

DEFAULT_QUIET_PERIOD = 0.1

# Reads by the compiler raise opened/closed events; only content changes count.
_CHANGE_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


class _ChangeHandler(FileSystemEventHandler):
    """Forward watchdog events from the observer thread into the event loop."""

    def __init__(self, session: "WatchSession", loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self._session = session
        self._loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        path = getattr(event, "dest_path", None) or event.src_path
        if isinstance(path, bytes):
            path = path.decode()
        self._loop.call_soon_threadsafe(self._session.notify, path)


class WatchSession:
    """Watch ``root`` and call ``on_trigger`` once per burst of relevant changes.

    A change is relevant when it lies outside ``exclude_subtree`` and its path
    relative to ``root`` matches ``include_pattern``. Each relevant change
    cancels the pending timer and starts a new one, so only the quiet period
    after the last change of a burst leads to a trigger. Starting the session
    schedules one trigger for the initial build.

    The timer handle is only ever read or replaced on the event loop thread.
    Trigger runs never overlap, and an exception from ``on_trigger`` is logged
    without ending the session.
    """

    def __init__(
        self,
        root: Path,
        on_trigger: TriggerCallback,
        *,
        include_pattern: str,
        exclude_subtree: Path | None = None,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self.root = Path(root).resolve()
        self.include_pattern = include_pattern
        self.exclude_subtree = Path(exclude_subtree).resolve() if exclude_subtree else None
        self.quiet_period = quiet_period
        self._on_trigger = on_trigger
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._run_lock = asyncio.Lock()
        self._runs: set[asyncio.Task[None]] = set()
        self._closed: asyncio.Event | None = None
        self.trigger_count = 0

    def is_relevant(self, path: str | Path) -> bool:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        if self.exclude_subtree is not None and candidate.is_relative_to(self.exclude_subtree):
            return False
        try:
            relative = candidate.relative_to(self.root)
        except ValueError:
            return False
        return matches(relative.as_posix(), self.include_pattern)

    def _running_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    async def start(self) -> None:
        """Begin observing ``root`` and schedule the initial trigger."""

        loop = self._running_loop()
        self._closed = asyncio.Event()
        self._observer = self._observer_factory()
        self._observer.schedule(_ChangeHandler(self, loop), str(self.root), recursive=True)
        self._observer.start()
        logger.info(
            "Watching %s for changes matching %s",
            self.root,
            self.include_pattern,
            extra={"exclude": str(self.exclude_subtree) if self.exclude_subtree else None},
        )
        self._schedule()

    def notify(self, path: str | Path) -> None:
        """Handle a change to ``path``; must be called on the event loop thread."""

        if not self.is_relevant(path):
            return
        logger.debug("Change detected: %s", path)
        self._schedule()

    def _schedule(self) -> None:
        loop = self._running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.quiet_period, self._fire)

    def _fire(self) -> None:
        self._timer = None
        task = self._running_loop().create_task(self._run_trigger())
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)

    async def _run_trigger(self) -> None:
        async with self._run_lock:
            self.trigger_count += 1
            try:
                await self._on_trigger()
            except Exception:
                logger.exception("Triggered run failed; waiting for the next change")

    async def drain(self) -> None:
        """Wait for trigger runs that have already fired to finish."""

        while self._runs:
            await asyncio.gather(*list(self._runs))

    def stop(self) -> None:
        """Cancel the pending trigger and stop observing."""

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._closed is not None:
            self._closed.set()
        logger.info("Stopped watching %s", self.root)

    async def wait_closed(self) -> None:
        if self._closed is not None:
            await self._closed.wait()


async def watch(
    root: Path,
    include_pattern: str,
    exclude_subtree: Path | None,
    on_trigger: TriggerCallback,
    *,
    quiet_period: float = DEFAULT_QUIET_PERIOD,
) -> None:
    """Run a watch session until it is stopped or the task is cancelled."""

    session = WatchSession(
        root,
        on_trigger,
        include_pattern=include_pattern,
        exclude_subtree=exclude_subtree,
        quiet_period=quiet_period,
    )
    await session.start()
    try:
        await session.wait_closed()
    finally:
        session.stop()
        await session.drain()


__all__ = ["DEFAULT_QUIET_PERIOD", "TriggerCallback", "WatchSession", "watch"]
