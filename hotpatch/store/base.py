"""
Artifact store contract.

An artifact store maps an opaque string key to a compressed blob. Storing
under an existing key replaces the old payload entirely; versioning is the
registry's job (see hotpatch.versions), never the store's.
"""

from __future__ import annotations

import zlib
from abc import ABC, abstractmethod

from ..errors import StorageIOError

COMPRESSION_LEVEL = 9


def compress(payload: bytes | str) -> bytes:
    """Compress a payload. Strings are encoded as UTF-8 first."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    try:
        return zlib.compress(payload, COMPRESSION_LEVEL)
    except zlib.error as e:
        raise StorageIOError(f"Failed to compress payload: {e}") from e


def decompress(blob: bytes) -> bytes:
    """Inverse of compress()."""
    try:
        return zlib.decompress(blob)
    except zlib.error as e:
        raise StorageIOError(f"Failed to decompress payload: {e}") from e


class ArtifactStore(ABC):
    """
    Persistent key -> payload store with lossless compression.

    Subclasses implement the four raw operations; text helpers and the
    context manager protocol live here.
    """

    backend: str = ""

    @abstractmethod
    def store(self, key: str, payload: bytes | str) -> None:
        """Compress and store payload under key, replacing any prior content."""

    @abstractmethod
    def load(self, key: str) -> bytes | None:
        """Return the original bytes stored under key, or None if absent."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete key. Removing an absent key is not an error."""

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys, sorted."""

    def close(self) -> None:
        """Release backend resources."""

    def exists(self, key: str) -> bool:
        return self.load(key) is not None

    def load_text(self, key: str) -> str | None:
        """Return the payload decoded as UTF-8, or None if absent."""
        data = self.load(key)
        if data is None:
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StorageIOError(f"Artifact {key} is not valid UTF-8 text: {e}") from e

    def __enter__(self) -> "ArtifactStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
