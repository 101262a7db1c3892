"""Push script files as they are saved.

A watchdog observer watches the server-script and client-script
directories of one site.  Events arrive on the observer thread and are
handed to the event loop, debounced per path, then sent through
:meth:`SyncOrchestrator.incremental_push`.  A failed push is logged and the
watcher keeps going.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from owlanter.errors import SyncError
from owlanter.scripts.models import ScriptRecord
from owlanter.scripts.repository import is_script_file
from owlanter.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 1.5

ResultCallback = Callable[[Path, ScriptRecord | None, Exception | None], None]


class ScriptChangeHandler(FileSystemEventHandler):
    """Forwards script file changes from the observer thread to the loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, notify: Callable[[Path], None]):
        self.loop = loop
        self.notify = notify

    def _forward(self, raw_path: str | bytes) -> None:
        path = Path(os.fsdecode(raw_path))
        if not is_script_file(path):
            return
        self.loop.call_soon_threadsafe(self.notify, path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.dest_path)


class ScriptWatcher:
    """Watches one site and pushes each changed file once it settles.

    Args:
        orchestrator: Orchestrator used for the pushes
        site_id: Site to watch
        delay: Seconds a path must stay quiet before it is pushed
        on_result: Optional callback ``(path, record, error)`` after each push
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        site_id: int,
        delay: float = DEFAULT_DELAY,
        on_result: ResultCallback | None = None,
    ):
        self.orchestrator = orchestrator
        self.site_id = site_id
        self.delay = delay
        self.on_result = on_result
        self._timers: dict[Path, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def watch_paths(self) -> list[Path]:
        paths = self.orchestrator.registry.ensure_site_dirs(self.site_id)
        return [paths.server_dir, paths.client_dir]

    def notify(self, path: Path) -> None:
        """Schedule a push for ``path``, restarting its quiet period.

        Must be called on the event loop thread.
        """
        loop = asyncio.get_running_loop()
        if (timer := self._timers.pop(path, None)) is not None:
            timer.cancel()
        self._timers[path] = loop.call_later(self.delay, self._start_push, path)

    def _start_push(self, path: Path) -> None:
        self._timers.pop(path, None)
        task = asyncio.get_running_loop().create_task(self._push(path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _push(self, path: Path) -> None:
        record: ScriptRecord | None = None
        error: Exception | None = None
        try:
            record = await self.orchestrator.incremental_push(self.site_id, path)
        except SyncError as exc:
            error = exc
            logger.error("Failed to push %s: %s", path.name, exc)
        if self.on_result is not None:
            self.on_result(path, record, error)

    async def drain(self) -> None:
        """Cancel pending timers and wait for pushes already started."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Watch until ``stop`` is set (or the task is cancelled)."""
        stop = stop or asyncio.Event()
        handler = ScriptChangeHandler(asyncio.get_running_loop(), self.notify)
        observer = Observer()
        for directory in self.watch_paths():
            observer.schedule(handler, str(directory), recursive=False)
            logger.info("Watching %s", directory)
        observer.start()
        try:
            await stop.wait()
        finally:
            observer.stop()
            await asyncio.to_thread(observer.join)
            await self.drain()


__all__ = ["DEFAULT_DELAY", "ScriptChangeHandler", "ScriptWatcher"]
