"""
Per-entry version log.

A version log is the ordered list of artifacts archived for one registry
entry, oldest first. Each record points at a key in the artifact store.

When given a path the log is mirrored to a JSON Lines file (one record per
line) so history survives restarts. Appends add one line; truncation, the
only rewrite, replaces the file atomically.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator

from .errors import StorageIOError
from .store.file_store import encode_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionRecord:
    """One archived version: the store key and its creation time (epoch ms)."""

    key: str
    created_at: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "VersionRecord":
        return cls(key=str(data["key"]), created_at=int(data["created_at"]))


def make_key(name: str, created_at: int) -> str:
    """Artifact key convention: <name>@<timestamp>."""
    return f"{name}@{created_at}"


def log_path_for(log_dir: Path, name: str) -> Path:
    """Location of the persisted log for an entry name (encoded like artifact files)."""
    return Path(log_dir) / f"{encode_key(name)}.jsonl"


class VersionLog:
    """Ordered, append-mostly list of VersionRecords."""

    def __init__(self, name: str, path: Path | None = None):
        """
        Create a log, loading existing records from path if it exists.

        Args:
            name: Registry entry the log belongs to
            path: Optional JSONL file backing the log
        """
        self.name = name
        self.path = Path(path) if path is not None else None
        self._records: list[VersionRecord] = []
        if self.path is not None and self.path.exists():
            self._records = self._read()

    def _read(self) -> list[VersionRecord]:
        records = []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        records.append(VersionRecord.from_dict(json.loads(line)))
        except (OSError, ValueError, KeyError) as e:
            raise StorageIOError(f"Failed to read version log {self.path}: {e}") from e
        return records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[VersionRecord]:
        return iter(list(self._records))

    def __getitem__(self, index: int) -> VersionRecord:
        return self._records[index]

    @property
    def records(self) -> list[VersionRecord]:
        """Copy of the records, oldest first."""
        return list(self._records)

    @property
    def last(self) -> VersionRecord | None:
        return self._records[-1] if self._records else None

    def keys(self) -> list[str]:
        return [r.key for r in self._records]

    def next_record(self, now_ms: int | None = None) -> VersionRecord:
        """
        Build (but do not append) the record for a new version.

        Timestamps are strictly increasing within a log so keys never repeat.
        """
        created_at = int(time.time() * 1000) if now_ms is None else now_ms
        if self._records and created_at <= self._records[-1].created_at:
            created_at = self._records[-1].created_at + 1
        return VersionRecord(key=make_key(self.name, created_at), created_at=created_at)

    def append(self, record: VersionRecord) -> None:
        """Append a record. The file is written before memory is updated."""
        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(record.to_dict(), separators=(",", ":")) + "\n")
            except OSError as e:
                raise StorageIOError(f"Failed to append to version log {self.path}: {e}") from e
        self._records.append(record)

    def truncate(self, length: int) -> list[VersionRecord]:
        """
        Keep only the first `length` records.

        Returns:
            The dropped records (their artifacts are left in the store)
        """
        if length < 0 or length > len(self._records):
            raise ValueError(f"Cannot truncate log of {len(self._records)} records to {length}")
        kept, dropped = self._records[:length], self._records[length:]
        if self.path is not None:
            self._rewrite(kept)
        self._records = kept
        if dropped:
            logger.debug("Version log %s dropped %d record(s)", self.name, len(dropped))
        return dropped

    def _rewrite(self, records: list[VersionRecord]) -> None:
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as f:
                for r in records:
                    f.write(json.dumps(r.to_dict(), separators=(",", ":")) + "\n")
            os.replace(temp_path, self.path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StorageIOError(f"Failed to rewrite version log {self.path}: {e}") from e

    def delete(self) -> None:
        """Forget all records and remove the backing file."""
        if self.path is not None:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageIOError(f"Failed to delete version log {self.path}: {e}") from e
        self._records = []
