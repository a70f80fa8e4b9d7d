"""
File-per-key artifact storage.

Each key becomes one compressed file in the base directory:

    .vault/MF2XI2CAGE.zz        (key "auth@1")

File names are the unpadded base32 encoding of the UTF-8 key. It is
reversible, so keys() can recover the original key strings, and it uses
only upper-case letters and digits, so two keys differing only in case
still get two files on case-insensitive filesystems.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from pathlib import Path

from ..errors import StorageIOError
from .base import ArtifactStore, compress, decompress

logger = logging.getLogger(__name__)

SUFFIX = ".zz"


def encode_key(key: str) -> str:
    """File name stem for key."""
    return base64.b32encode(key.encode("utf-8")).decode("ascii").rstrip("=")


def decode_key(stem: str) -> str | None:
    """Key for a file name stem, or None if the stem is not an encoded key."""
    padded = stem + "=" * (-len(stem) % 8)
    try:
        return base64.b32decode(padded).decode("utf-8")
    except (binascii.Error, ValueError):
        return None


class FileArtifactStore(ArtifactStore):
    """One compressed file per key. Assumes a single writer process."""

    backend = "file"

    def __init__(self, base_dir: Path | str):
        """
        Initialize the file store.

        Args:
            base_dir: Directory holding the artifact files (created on demand)
        """
        self.base_dir = Path(base_dir)

    def _ensure_dir(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Cannot create store directory {self.base_dir}: {e}") from e

    def _artifact_path(self, key: str) -> Path:
        return self.base_dir / f"{encode_key(key)}{SUFFIX}"

    def store(self, key: str, payload: bytes | str) -> None:
        blob = compress(payload)
        self._ensure_dir()
        path = self._artifact_path(key)

        # Write atomically (write to temp, then replace)
        temp_path = path.with_name(path.name + ".tmp")
        try:
            temp_path.write_bytes(blob)
            os.replace(temp_path, path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StorageIOError(f"Failed to write artifact {key}: {e}") from e
        logger.debug("Stored %s (%d compressed bytes)", key, len(blob))

    def load(self, key: str) -> bytes | None:
        path = self._artifact_path(key)
        try:
            blob = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageIOError(f"Failed to read artifact {key}: {e}") from e
        return decompress(blob)

    def exists(self, key: str) -> bool:
        return self._artifact_path(key).is_file()

    def remove(self, key: str) -> None:
        try:
            self._artifact_path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageIOError(f"Failed to remove artifact {key}: {e}") from e

    def keys(self) -> list[str]:
        if not self.base_dir.exists():
            return []
        keys = []
        for p in self.base_dir.iterdir():
            if not (p.is_file() and p.name.endswith(SUFFIX)):
                continue
            key = decode_key(p.name[: -len(SUFFIX)])
            if key is None:
                logger.debug("Skipping foreign file in store: %s", p.name)
                continue
            keys.append(key)
        return sorted(keys)
