"""Compressed artifact storage with interchangeable backends."""

from __future__ import annotations

from pathlib import Path

from .base import ArtifactStore, compress, decompress
from .file_store import FileArtifactStore
from .sqlite_store import DEFAULT_DB_NAME, SqliteArtifactStore

BACKENDS = ("file", "sqlite")


def open_store(
    backend: str = "sqlite",
    base_dir: Path | str = ".vault",
    db_name: str = DEFAULT_DB_NAME,
) -> ArtifactStore:
    """
    Open an artifact store.

    Args:
        backend: "file" or "sqlite"
        base_dir: Storage directory (created if absent)
        db_name: Database file name (sqlite backend only)

    Raises:
        ValueError: If backend is unknown
    """
    if backend == "file":
        return FileArtifactStore(base_dir)
    if backend == "sqlite":
        return SqliteArtifactStore(base_dir, db_name=db_name)
    raise ValueError(f"Unknown store backend: {backend!r} (expected one of {', '.join(BACKENDS)})")


__all__ = [
    "ArtifactStore",
    "BACKENDS",
    "DEFAULT_DB_NAME",
    "FileArtifactStore",
    "SqliteArtifactStore",
    "compress",
    "decompress",
    "open_store",
]
