"""
File system watcher that hot-reloads file-backed registry entries.

This module provides:
- Watchdog-based monitoring of the directories holding entry sources
- Debounced reloads (editors often write a file several times per save)
- Content-hash filtering, so writes that don't change the source (including
  the registry's own rollback writes) never trigger a reload
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from watchdog.events import (
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import HotpatchError, NotRegisteredError
from .entry import RegistryEntry
from .registry import Registry

logger = logging.getLogger(__name__)


def compute_file_hash(path: Path) -> str | None:
    """sha256 of a file's bytes, or None if it cannot be read."""
    try:
        return hashlib.sha256(path.read_bytes()).hexdigest()
    except OSError:
        return None


@dataclass
class ReloadResult:
    """Outcome of one watcher-triggered reload."""

    name: str
    path: Path
    ok: bool
    error: str | None = None

    def format(self) -> str:
        if self.ok:
            return f"reloaded {self.name} from {self.path.name}"
        return f"reload of {self.name} failed: {self.error}"


class ReloadEventHandler(FileSystemEventHandler):
    """
    Collects modification events and reloads the matching entries.

    Events are only recorded by the on_* callbacks (observer thread);
    flush_pending() does the reloading once the debounce window passes.
    """

    def __init__(
        self,
        registry: Registry,
        names: set[str] | None = None,
        debounce: float = 0.5,
        on_event: Callable[[ReloadResult], None] | None = None,
    ):
        """
        Args:
            registry: Registry whose file-backed entries are reloaded
            names: Restrict to these entry names (None = all file-backed entries)
            debounce: Seconds a file must be quiet before it is reloaded
            on_event: Callback for each reload attempt
        """
        super().__init__()
        self.registry = registry
        self.names = names
        self.debounce = debounce
        self.on_event = on_event
        # path -> time of last event
        self.pending: dict[Path, float] = {}

    def _watched_entries(self, path: Path) -> list[str]:
        matches = []
        for name in self.registry.list():
            if self.names is not None and name not in self.names:
                continue
            entry = self._lookup(name)
            if entry is not None and entry.source_path == path:
                matches.append(name)
        return matches

    def _lookup(self, name: str) -> RegistryEntry | None:
        # The shell may remove a name while this runs on another thread
        try:
            return self.registry.entry(name)
        except NotRegisteredError:
            return None

    def _record(self, src: str) -> None:
        path = Path(src).resolve()
        if self._watched_entries(path):
            self.pending[path] = time.time()

    def on_modified(self, event: FileModifiedEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path)

    def on_created(self, event: FileCreatedEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path)

    def on_moved(self, event: FileMovedEvent) -> None:
        # Atomic-save editors write a temp file and rename it over the source
        if not event.is_directory:
            self._record(event.dest_path)

    def flush_pending(self, now: float | None = None) -> list[ReloadResult]:
        """Reload entries whose files have been quiet for the debounce window."""
        now = time.time() if now is None else now
        ready = [p for p, ts in list(self.pending.items()) if now - ts >= self.debounce]
        results = []

        for path in ready:
            self.pending.pop(path, None)
            current_hash = compute_file_hash(path)
            if current_hash is None:
                continue
            for name in self._watched_entries(path):
                entry = self._lookup(name)
                if entry is None or entry.current_source_hash == current_hash:
                    continue
                try:
                    self.registry.reload(name)
                    result = ReloadResult(name=name, path=path, ok=True)
                except HotpatchError as e:
                    logger.error("Watcher reload of %s failed: %s", name, e)
                    result = ReloadResult(name=name, path=path, ok=False, error=str(e))
                results.append(result)
                if self.on_event:
                    self.on_event(result)
        return results


def watch_registry(
    registry: Registry,
    names: set[str] | None = None,
    debounce: float = 0.5,
    on_event: Callable[[ReloadResult], None] | None = None,
) -> tuple[Observer, ReloadEventHandler]:
    """
    Start watching the source directories of file-backed entries.

    Returns:
        Tuple of (observer, handler) - caller should call observer.stop() to stop watching
    """
    handler = ReloadEventHandler(registry, names=names, debounce=debounce, on_event=on_event)

    directories = set()
    for name in registry.list():
        if names is not None and name not in names:
            continue
        source_path = registry.entry(name).source_path
        if source_path is not None:
            directories.add(source_path.parent)

    observer = Observer()
    for directory in sorted(directories):
        observer.schedule(handler, str(directory), recursive=False)
    observer.start()

    return observer, handler


def run_watch_loop(
    registry: Registry,
    names: set[str] | None = None,
    debounce: float = 0.5,
    on_event: Callable[[ReloadResult], None] | None = None,
) -> None:
    """
    Watch and reload until interrupted.

    Flushing happens on this thread, so reloads never run on the observer thread.
    """
    observer, handler = watch_registry(registry, names=names, debounce=debounce, on_event=on_event)

    try:
        while True:
            time.sleep(0.25)
            handler.flush_pending()
    except KeyboardInterrupt:
        observer.stop()

    observer.join()


class BackgroundWatcher:
    """
    Watcher that flushes on a daemon thread, for use alongside an interactive shell.

    Reloads then run on that thread; callers mutating the same entries from
    the shell must not overlap with it.
    """

    def __init__(
        self,
        registry: Registry,
        names: set[str] | None = None,
        debounce: float = 0.5,
        on_event: Callable[[ReloadResult], None] | None = None,
        interval: float = 0.25,
    ):
        self.registry = registry
        self.names = names
        self.debounce = debounce
        self.on_event = on_event
        self.interval = interval
        self._observer: Observer | None = None
        self._handler: ReloadEventHandler | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._observer, self._handler = watch_registry(
            self.registry, names=self.names, debounce=self.debounce, on_event=self.on_event
        )
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="HotpatchWatcher")
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self._handler.flush_pending()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
