"""
Live-object registry.

The registry maps names to RegistryEntry records and hands out one Handle
per name. Swapping an implementation (reload, reload_instance,
reload_from_file, rollback, roll_forward) only changes what the entry's
`current` points at; handles already given out see the change on their
next access.

Every swap does its fallible work first (loading, shape check, writing
files, archiving) and mutates the entry last, so a failed call leaves the
entry exactly as it was.

Rollback has two modes:
- persisted: the live value is the newest archived version, so rollback
  walks the version log and restores source from the artifact store
- in-memory: otherwise, pop the bounded undo stack
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from .config import HotpatchConfig
from .entry import RegistryEntry
from .errors import (
    ArtifactMissingError,
    NameConflictError,
    NoBackingFileError,
    NoForwardAvailableError,
    NoHistoryAvailableError,
    NotRegisteredError,
    StorageIOError,
)
from .handle import Handle
from .loader import load_implementation, read_source
from .shape import check_compatible
from .store import ArtifactStore
from .versions import VersionLog, VersionRecord, log_path_for

logger = logging.getLogger(__name__)

Loader = Callable[[Path], Any]


def source_hash(text: str) -> str:
    """sha256 of source text as it is stored on disk (UTF-8)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def write_source(path: Path, text: str) -> None:
    """Replace a source file's contents atomically, byte-for-byte."""
    temp_path = path.with_name(f".{path.name}.hotpatch.tmp")
    try:
        with open(temp_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(temp_path, path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise StorageIOError(f"Failed to write source file {path}: {e}") from e


@dataclass
class HistorySummary:
    """Read-only view of an entry's history."""

    name: str
    undo_depth: int
    redo_depth: int
    versions: list[VersionRecord] = field(default_factory=list)
    current_version_key: str | None = None
    source_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "undo_depth": self.undo_depth,
            "redo_depth": self.redo_depth,
            "versions": [v.to_dict() for v in self.versions],
            "current_version_key": self.current_version_key,
            "source_path": self.source_path,
        }


class Registry:
    """Name -> live implementation, with undo/redo and archived versions."""

    def __init__(
        self,
        config: HotpatchConfig | None = None,
        store: ArtifactStore | None = None,
        loader: Loader = load_implementation,
        log_dir: Path | str | None = None,
    ):
        """
        Create a registry.

        Args:
            config: Settings; max_rollback_depth is re-read on every push
            store: Artifact store for archived source (None = no archiving)
            loader: Fresh-load primitive, path -> implementation
            log_dir: Directory for persisted version logs (None = in-memory logs)
        """
        self.config = config or HotpatchConfig()
        self.store = store
        self.loader = loader
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self._entries: dict[str, RegistryEntry] = {}

    # --- lookup ---

    def _entry(self, name: str) -> RegistryEntry:
        entry = self._entries.get(name)
        if entry is None:
            raise NotRegisteredError(name)
        return entry

    def entry(self, name: str) -> RegistryEntry:
        """The entry record for name (for inspection; mutate through the registry)."""
        return self._entry(name)

    def get(self, name: str) -> Handle:
        """Return the handle for name. Always the same object for a given name."""
        return self._entry(name).handle

    def list(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # --- archiving helpers ---

    @property
    def archiving(self) -> bool:
        return self.store is not None and self.config.archive_versions

    def _max_depth(self) -> int:
        return self.config.max_rollback_depth

    def _open_log(self, name: str) -> VersionLog:
        path = log_path_for(self.log_dir, name) if self.log_dir is not None else None
        return VersionLog(name, path)

    def _archive(self, log: VersionLog, source: str, *, dedupe: bool = False) -> VersionRecord:
        """
        Store source as a new artifact and append it to log.

        With dedupe, an identical newest artifact is reused instead.
        """
        if dedupe and log.last is not None:
            if self.store.load_text(log.last.key) == source:
                return log.last

        record = log.next_record()
        self.store.store(record.key, source)
        try:
            log.append(record)
        except StorageIOError:
            self.store.remove(record.key)
            raise
        logger.debug("Archived %s", record.key)
        return record

    def _archive_for(self, entry: RegistryEntry, source: str) -> tuple[VersionLog | None, VersionRecord | None]:
        if not self.archiving:
            return entry.version_log, None
        log = entry.version_log if entry.version_log is not None else self._open_log(entry.name)
        return log, self._archive(log, source)

    # --- registration ---

    def register(self, name: str, instance: Any) -> Handle:
        """
        Register an in-memory implementation.

        Raises:
            NameConflictError: If name is already registered
        """
        if name in self._entries:
            raise NameConflictError(name)
        entry = RegistryEntry(name=name, current=instance)
        self._entries[name] = entry
        logger.info("Registered module: %s", name)
        return entry.handle

    def register_from_file(self, name: str, path: str | Path) -> Handle:
        """
        Register an implementation loaded from a source file.

        If archiving is on, the source becomes the first version in the log.
        A log persisted by an earlier process is picked up, and the source is
        only archived again if it differs from the newest stored version.
        """
        if name in self._entries:
            raise NameConflictError(name)

        path = Path(path).resolve()
        source = read_source(path)
        implementation = self.loader(path)

        log = None
        record = None
        if self.archiving:
            log = self._open_log(name)
            record = self._archive(log, source, dedupe=True)

        entry = RegistryEntry(
            name=name,
            current=implementation,
            source_path=path,
            version_log=log,
            current_version_key=record.key if record else None,
            current_source_hash=source_hash(source),
        )
        self._entries[name] = entry
        logger.info("Registered module from file: %s (%s)", name, path)
        return entry.handle

    def remove(self, name: str, *, purge: bool = False) -> None:
        """
        Drop an entry. Handles already given out stop resolving.

        With purge, the entry's archived artifacts and persisted log are deleted too.
        """
        entry = self._entry(name)
        if purge and entry.version_log is not None:
            if self.store is not None:
                for key in entry.version_log.keys():
                    self.store.remove(key)
            entry.version_log.delete()
        del self._entries[name]
        # Handles still held elsewhere raise NotRegisteredError from now on
        entry.replace_all(_Removed(name))
        logger.info("Removed module: %s", name)

    # --- swapping ---

    def reload(self, name: str) -> Handle:
        """
        Reload name from its source file.

        Raises:
            NoBackingFileError: If the entry was registered in memory
            LoadFailureError: If the file cannot be loaded
            IncompatibleReplacementError: If the new export has a different shape
        """
        entry = self._entry(name)
        if entry.source_path is None:
            raise NoBackingFileError(name)
        self._reload_path(entry, entry.source_path)
        logger.info("Reloaded module from file: %s", name)
        return entry.handle

    def reload_from_file(self, name: str, new_path: str | Path) -> Handle:
        """Point name at a different source file and reload from it."""
        entry = self._entry(name)
        path = Path(new_path).resolve()
        self._reload_path(entry, path)
        logger.info("Reloaded module %s from file %s", name, path)
        return entry.handle

    def _reload_path(self, entry: RegistryEntry, path: Path) -> None:
        source = read_source(path)
        candidate = self.loader(path)
        try:
            check_compatible(entry.name, entry.current, candidate)
            log, record = self._archive_for(entry, source)
        except Exception:
            entry.release([candidate])
            raise

        entry.install(candidate, self._max_depth())
        entry.source_path = path
        entry.version_log = log
        entry.current_version_key = record.key if record else None
        entry.current_source_hash = source_hash(source)

    def reload_instance(
        self,
        name: str,
        new_instance: Any,
        source_text: str | None = None,
        *,
        force: bool = False,
    ) -> Handle:
        """
        Install an in-memory value as the new implementation.

        Args:
            name: Registered name
            new_instance: Replacement implementation
            source_text: For file-backed entries, source to write to the backing
                file and archive so file, log and live value agree
            force: Skip the shape compatibility check
        """
        entry = self._entry(name)
        if not force:
            check_compatible(name, entry.current, new_instance)

        log, record = entry.version_log, None
        persist = source_text is not None and entry.source_path is not None
        if persist:
            path = entry.source_path
            original = read_source(path) if path.exists() else None
            write_source(path, source_text)
            try:
                log, record = self._archive_for(entry, source_text)
            except StorageIOError:
                self._restore_source(path, original)
                raise
        elif source_text is not None:
            logger.debug("Ignoring source text for in-memory module: %s", name)

        entry.install(new_instance, self._max_depth())
        entry.version_log = log
        entry.current_version_key = record.key if record else None
        entry.current_source_hash = source_hash(source_text) if persist else None
        logger.info("Reloaded module with new instance: %s", name)
        return entry.handle

    def _restore_source(self, path: Path, original: str | None) -> None:
        if original is None:
            path.unlink(missing_ok=True)
        else:
            write_source(path, original)

    # --- history navigation ---

    def _persisted_mode(self, entry: RegistryEntry) -> bool:
        log = entry.version_log
        return (
            self.store is not None
            and log is not None
            and log.last is not None
            and entry.current_version_key == log.last.key
        )

    def rollback(self, name: str, steps: int = 1) -> Handle:
        """
        Step name back by `steps` versions.

        Raises:
            ValueError: If steps < 1
            NoHistoryAvailableError: If fewer than `steps` earlier versions exist
            ArtifactMissingError: If the log points at an artifact the store lost
        """
        if steps < 1:
            raise ValueError(f"steps must be a positive integer, got {steps}")
        entry = self._entry(name)

        if self._persisted_mode(entry):
            self._rollback_persisted(entry, steps)
        else:
            self._rollback_in_memory(entry, steps)

        logger.info("Rolled back module %s by %d version(s)", name, steps)
        return entry.handle

    def _rollback_in_memory(self, entry: RegistryEntry, steps: int) -> None:
        if steps > len(entry.undo):
            raise NoHistoryAvailableError(
                f"Cannot roll back {entry.name} by {steps}: "
                f"{len(entry.undo)} earlier version(s) in memory"
            )
        for _ in range(steps):
            previous = entry.undo.pop()
            entry.redo.append(entry.current)
            entry.current = previous
        entry.current_version_key = None
        entry.current_source_hash = None

    def _rollback_persisted(self, entry: RegistryEntry, steps: int) -> None:
        log = entry.version_log
        target_index = len(log) - 1 - steps
        if target_index < 0:
            raise NoHistoryAvailableError(
                f"Cannot roll back {entry.name} by {steps}: "
                f"{len(log) - 1} earlier version(s) archived"
            )
        if entry.source_path is None:
            raise NoBackingFileError(entry.name)

        record = log[target_index]
        source = self.store.load_text(record.key)
        if source is None:
            raise ArtifactMissingError(record.key)

        path = entry.source_path
        original = read_source(path) if path.exists() else None
        write_source(path, source)
        try:
            implementation = self.loader(path)
        except Exception:
            self._restore_source(path, original)
            raise
        try:
            log.truncate(target_index + 1)
        except Exception:
            entry.release([implementation])
            self._restore_source(path, original)
            raise

        # The log is now the history; values on the stacks no longer line up with it
        entry.replace_all(implementation)
        entry.current_version_key = record.key
        entry.current_source_hash = source_hash(source)

    def roll_forward(self, name: str) -> Handle:
        """
        Undo the most recent in-memory rollback.

        Raises:
            NoForwardAvailableError: If there is nothing to roll forward to
        """
        entry = self._entry(name)
        if not entry.redo:
            raise NoForwardAvailableError(name)
        entry.forward(self._max_depth())
        entry.current_version_key = None
        entry.current_source_hash = None
        logger.info("Rolled forward module: %s", name)
        return entry.handle

    # --- inspection ---

    def history(self, name: str) -> list[VersionRecord]:
        """Archived versions of name, oldest first (empty if none)."""
        return self._entry(name).versions()

    def get_history(self, name: str) -> HistorySummary:
        entry = self._entry(name)
        return HistorySummary(
            name=name,
            undo_depth=len(entry.undo),
            redo_depth=len(entry.redo),
            versions=entry.versions(),
            current_version_key=entry.current_version_key,
            source_path=str(entry.source_path) if entry.source_path else None,
        )

    def load_version(self, name: str, key: str) -> str:
        """
        Source text of one archived version of name.

        Raises:
            ArtifactMissingError: If the key is not in the log or not in the store
        """
        entry = self._entry(name)
        if key not in [r.key for r in entry.versions()] or self.store is None:
            raise ArtifactMissingError(key)
        source = self.store.load_text(key)
        if source is None:
            raise ArtifactMissingError(key)
        return source

    def close(self) -> None:
        """Close the artifact store."""
        if self.store is not None:
            self.store.close()


class _Removed:
    """Stand-in current value for removed entries."""

    def __init__(self, name: str):
        self._name = name

    def __getattr__(self, attr: str) -> Any:
        raise NotRegisteredError(self._name)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        raise NotRegisteredError(self._name)
