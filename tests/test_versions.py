"""Tests for the per-entry version log."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from hotpatch.errors import StorageIOError
from hotpatch.versions import VersionLog, VersionRecord, log_path_for, make_key


def test_make_key():
    assert make_key("auth", 1718000000000) == "auth@1718000000000"


def test_log_path_is_encoded(tmp_path: Path):
    assert log_path_for(tmp_path, "auth@1").name == "MF2XI2CAGE.jsonl"
    assert log_path_for(tmp_path, "Mod") != log_path_for(tmp_path, "mod")
    assert "/" not in log_path_for(tmp_path, "pkg/mod").name


def test_next_record_is_strictly_increasing():
    log = VersionLog("m")
    log.append(log.next_record(now_ms=1000))

    second = log.next_record(now_ms=1000)
    assert second.created_at == 1001
    assert second.key == "m@1001"

    later = log.next_record(now_ms=5000)
    assert later.key == "m@5000"


def test_append_persists_jsonl(tmp_path: Path):
    path = tmp_path / "logs" / "m.jsonl"
    log = VersionLog("m", path)
    log.append(VersionRecord("m@1", 1))
    log.append(VersionRecord("m@2", 2))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line) for line in lines] == [
        {"key": "m@1", "created_at": 1},
        {"key": "m@2", "created_at": 2},
    ]

    reopened = VersionLog("m", path)
    assert reopened.keys() == ["m@1", "m@2"]
    assert reopened.last == VersionRecord("m@2", 2)


def test_truncate_returns_dropped_and_rewrites(tmp_path: Path):
    path = tmp_path / "m.jsonl"
    log = VersionLog("m", path)
    for i in range(4):
        log.append(VersionRecord(f"m@{i}", i))

    dropped = log.truncate(2)

    assert [r.key for r in dropped] == ["m@2", "m@3"]
    assert log.keys() == ["m@0", "m@1"]
    assert VersionLog("m", path).keys() == ["m@0", "m@1"]
    assert not path.with_name("m.jsonl.tmp").exists()


def test_truncate_out_of_range():
    log = VersionLog("m")
    log.append(VersionRecord("m@1", 1))

    with pytest.raises(ValueError):
        log.truncate(2)
    with pytest.raises(ValueError):
        log.truncate(-1)


def test_records_are_copies():
    log = VersionLog("m")
    log.append(VersionRecord("m@1", 1))

    log.records.clear()

    assert len(log) == 1
    assert log[0].key == "m@1"
    assert [r.key for r in log] == ["m@1"]


def test_delete_removes_file(tmp_path: Path):
    path = tmp_path / "m.jsonl"
    log = VersionLog("m", path)
    log.append(VersionRecord("m@1", 1))

    log.delete()

    assert len(log) == 0
    assert log.last is None
    assert not path.exists()


def test_corrupt_log_raises(tmp_path: Path):
    path = tmp_path / "m.jsonl"
    path.write_text("{not json\n", encoding="utf-8")

    with pytest.raises(StorageIOError):
        VersionLog("m", path)


def test_blank_lines_are_ignored(tmp_path: Path):
    path = tmp_path / "m.jsonl"
    path.write_text('{"key": "m@1", "created_at": 1}\n\n', encoding="utf-8")

    assert VersionLog("m", path).keys() == ["m@1"]
