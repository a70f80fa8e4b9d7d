"""
Error taxonomy for hotpatch.

Every failure the registry or the artifact store reports is a subclass of
HotpatchError, so collaborators (shell, CLI) can catch one type, print it
and carry on. Each class also derives from the closest builtin so callers
that only know the standard hierarchy still catch it sensibly.
"""

from __future__ import annotations


class HotpatchError(Exception):
    """Base exception for hotpatch errors."""


class NotRegisteredError(HotpatchError, LookupError):
    """Raised when an operation names a module that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Module not registered: {name}")
        self.name = name


class NameConflictError(HotpatchError, ValueError):
    """Raised when registering a name that already exists."""

    def __init__(self, name: str):
        super().__init__(f"Module already registered: {name}")
        self.name = name


class NoBackingFileError(HotpatchError):
    """Raised when a file operation targets an in-memory-only entry."""

    def __init__(self, name: str):
        super().__init__(f"No file path to reload module: {name}")
        self.name = name


class IncompatibleReplacementError(HotpatchError, TypeError):
    """Raised when a replacement's shape differs from the current implementation."""

    def __init__(self, name: str, current_shape: str, candidate_shape: str):
        super().__init__(
            f"Cannot replace {name}: current implementation is a {current_shape}, "
            f"replacement is a {candidate_shape}"
        )
        self.name = name
        self.current_shape = current_shape
        self.candidate_shape = candidate_shape


class NoHistoryAvailableError(HotpatchError, IndexError):
    """Raised when a rollback asks for more history than exists."""


class NoForwardAvailableError(HotpatchError, IndexError):
    """Raised when roll-forward is requested with an empty redo stack."""

    def __init__(self, name: str):
        super().__init__(f"Nothing to roll forward for module: {name}")
        self.name = name


class ArtifactMissingError(HotpatchError, LookupError):
    """Raised when the version log references a key the store does not have."""

    def __init__(self, key: str):
        super().__init__(f"Artifact missing from store: {key}")
        self.key = key


class LoadFailureError(HotpatchError, ImportError):
    """Raised when a source file cannot produce a usable implementation."""


class StorageIOError(HotpatchError, OSError):
    """Raised on any backend read/write/compress/decompress failure."""
