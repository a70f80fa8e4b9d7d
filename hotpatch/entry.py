"""Registry entries: one per registered name."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .handle import Handle
from .loader import module_name_of, release_module
from .versions import VersionLog, VersionRecord


@dataclass(eq=False)
class RegistryEntry:
    """
    The registry's record for one name.

    `current` is the live implementation. `undo` and `redo` hold previously
    current values, most recent last. `version_log` exists only for
    file-backed entries whose versions are archived.

    A module created by the loader stays in sys.modules while any of those
    values comes from it, and is released when the last one is dropped.
    """

    name: str
    current: Any
    source_path: Path | None = None
    undo: list[Any] = field(default_factory=list)
    redo: list[Any] = field(default_factory=list)
    version_log: VersionLog | None = None
    current_version_key: str | None = None
    current_source_hash: str | None = None
    handle: Handle = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # The resolver reads self.current at call time; the handle never holds the value.
        self.handle = Handle(lambda: self.current)

    @property
    def file_backed(self) -> bool:
        return self.source_path is not None

    def _push(self, value: Any, max_depth: int) -> list[Any]:
        """Push onto the undo stack; returns the oldest values evicted past max_depth."""
        self.undo.append(value)
        excess = len(self.undo) - max(max_depth, 0)
        if excess <= 0:
            return []
        evicted = self.undo[:excess]
        del self.undo[:excess]
        return evicted

    def install(self, value: Any, max_depth: int) -> None:
        """Make value current: previous current goes to undo, then redo is cleared."""
        dropped = self._push(self.current, max_depth) + self.redo
        self.redo = []
        self.current = value
        self.release(dropped)

    def forward(self, max_depth: int) -> None:
        """Make the newest redo value current again."""
        value = self.redo.pop()
        evicted = self._push(self.current, max_depth)
        self.current = value
        self.release(evicted)

    def replace_all(self, value: Any) -> None:
        """Make value current with empty undo and redo stacks."""
        dropped = [self.current, *self.undo, *self.redo]
        self.undo = []
        self.redo = []
        self.current = value
        self.release(dropped)

    def release(self, values: list[Any]) -> None:
        """Unload the modules of dropped values that no kept value still comes from."""
        live = {module_name_of(v) for v in (self.current, *self.undo, *self.redo)}
        for value in values:
            name = module_name_of(value)
            if name is not None and name not in live:
                release_module(name)

    def versions(self) -> list[VersionRecord]:
        return self.version_log.records if self.version_log is not None else []
