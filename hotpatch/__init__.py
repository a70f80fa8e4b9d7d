"""
hotpatch - swap Python implementations inside a running process.

Typical use::

    from hotpatch import Registry, open_store

    registry = Registry(store=open_store("sqlite", ".vault"))
    greeter = registry.register_from_file("greeter", "greeter.py")
    greeter.hello()            # calls the current implementation
    registry.reload("greeter") # same handle, new code
    registry.rollback("greeter")
"""

__version__ = "0.1.0"

from .config import HotpatchConfig, load_config, save_config
from .errors import (
    ArtifactMissingError,
    HotpatchError,
    IncompatibleReplacementError,
    LoadFailureError,
    NameConflictError,
    NoBackingFileError,
    NoForwardAvailableError,
    NoHistoryAvailableError,
    NotRegisteredError,
    StorageIOError,
)
from .handle import Handle, is_handle, resolve
from .loader import load_implementation, load_module
from .registry import HistorySummary, Registry
from .shape import Shape, classify
from .store import ArtifactStore, FileArtifactStore, SqliteArtifactStore, open_store
from .versions import VersionLog, VersionRecord

__all__ = [
    "ArtifactMissingError",
    "ArtifactStore",
    "FileArtifactStore",
    "Handle",
    "HistorySummary",
    "HotpatchConfig",
    "HotpatchError",
    "IncompatibleReplacementError",
    "LoadFailureError",
    "NameConflictError",
    "NoBackingFileError",
    "NoForwardAvailableError",
    "NoHistoryAvailableError",
    "NotRegisteredError",
    "Registry",
    "Shape",
    "SqliteArtifactStore",
    "StorageIOError",
    "VersionLog",
    "VersionRecord",
    "__version__",
    "classify",
    "is_handle",
    "load_config",
    "load_implementation",
    "load_module",
    "open_store",
    "resolve",
    "save_config",
]
