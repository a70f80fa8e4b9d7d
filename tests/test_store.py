"""Tests for the artifact store backends."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from hotpatch.errors import StorageIOError
from hotpatch.store import (
    FileArtifactStore,
    SqliteArtifactStore,
    compress,
    decompress,
    open_store,
)


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "   \n\t  \r\n",
        "def f():\r\n\treturn 1  \n\n\n",
        "x = 1\n" * 2000,
        "naïve — ünïcödé ✓\n",
    ],
    ids=["empty", "whitespace", "mixed-newlines", "multi-kb", "unicode"],
)
def test_text_round_trip_is_exact(store, payload: str):
    store.store("m@1", payload)

    assert store.load_text("m@1") == payload
    assert store.load("m@1") == payload.encode("utf-8")


def test_binary_round_trip(store):
    payload = bytes(range(256)) * 4

    store.store("blob", payload)

    assert store.load("blob") == payload


def test_overwrite_keeps_only_latest(store):
    store.store("m@1", "first")
    store.store("m@1", "second")

    assert store.load_text("m@1") == "second"
    assert store.keys() == ["m@1"]


def test_missing_key_is_none(store):
    assert store.load("nope") is None
    assert store.load_text("nope") is None
    assert store.exists("nope") is False


def test_remove(store):
    store.store("a@1", "a")
    store.store("b@1", "b")

    store.remove("a@1")
    store.remove("a@1")  # absent key is not an error

    assert store.exists("a@1") is False
    assert store.keys() == ["b@1"]


def test_keys_are_sorted_and_preserved(store):
    for key in ["zeta@3", "alpha@1", "with/slash@2", "spaces and %@4"]:
        store.store(key, key)

    assert store.keys() == sorted(["zeta@3", "alpha@1", "with/slash@2", "spaces and %@4"])
    assert store.load_text("with/slash@2") == "with/slash@2"


def test_context_manager_closes(tmp_path: Path):
    with open_store("sqlite", tmp_path / "vault") as s:
        s.store("k", "v")

    with pytest.raises(StorageIOError):
        s.load("k")


def test_open_store_unknown_backend(tmp_path: Path):
    with pytest.raises(ValueError, match="Unknown store backend"):
        open_store("redis", tmp_path)


def test_open_store_selects_backend(tmp_path: Path):
    assert isinstance(open_store("file", tmp_path / "f"), FileArtifactStore)
    s = open_store("sqlite", tmp_path / "s", db_name="other.db")
    assert isinstance(s, SqliteArtifactStore)
    assert (tmp_path / "s" / "other.db").exists()
    s.close()


def test_file_backend_layout(tmp_path: Path):
    s = FileArtifactStore(tmp_path / "vault")
    assert not (tmp_path / "vault").exists()

    s.store("auth@1", "code")

    assert (tmp_path / "vault" / "MF2XI2CAGE.zz").is_file()
    # no temp files left behind
    assert [p.name for p in (tmp_path / "vault").iterdir()] == ["MF2XI2CAGE.zz"]
    assert s.keys() == ["auth@1"]


def test_file_backend_distinct_keys_never_share_a_file(tmp_path: Path):
    s = FileArtifactStore(tmp_path)
    s.store("a/b", "slash")
    s.store("a%2Fb", "literal")

    assert s.load_text("a/b") == "slash"
    assert s.load_text("a%2Fb") == "literal"


def test_file_backend_keys_differing_in_case_get_distinct_files(tmp_path: Path):
    s = FileArtifactStore(tmp_path)
    s.store("Mod@1", "upper")
    s.store("mod@1", "lower")

    assert s.load_text("Mod@1") == "upper"
    assert s.load_text("mod@1") == "lower"
    assert s.keys() == ["Mod@1", "mod@1"]
    names = [p.name for p in tmp_path.iterdir()]
    assert len({name.lower() for name in names}) == 2


def test_file_backend_keys_skip_foreign_files(tmp_path: Path):
    s = FileArtifactStore(tmp_path)
    s.store("m@1", "code")
    (tmp_path / "notes.zz").write_bytes(b"")
    (tmp_path / "readme.txt").write_text("hi")

    assert s.keys() == ["m@1"]


def test_file_backend_unusable_location(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    s = FileArtifactStore(blocker)

    with pytest.raises(StorageIOError):
        s.store("k", "v")


def test_file_backend_corrupt_blob(tmp_path: Path):
    s = FileArtifactStore(tmp_path)
    (tmp_path / "NM.zz").write_bytes(b"not zlib data")

    with pytest.raises(StorageIOError, match="decompress"):
        s.load("k")


def test_sqlite_schema_and_upsert(tmp_path: Path):
    s = SqliteArtifactStore(tmp_path)
    s.store("m@1", "one")
    s.store("m@1", "two")
    s.close()

    conn = sqlite3.connect(tmp_path / "codevault.db")
    rows = conn.execute("SELECT key, code, created_at FROM code_store").fetchall()
    conn.close()

    assert len(rows) == 1
    key, blob, created_at = rows[0]
    assert key == "m@1"
    assert decompress(blob) == b"two"
    assert created_at > 0


def test_sqlite_reopen_is_idempotent(tmp_path: Path):
    s = SqliteArtifactStore(tmp_path)
    s.store("k", "persisted")
    s.close()

    s = SqliteArtifactStore(tmp_path)
    assert s.load_text("k") == "persisted"
    assert s.created_at("k") is not None
    assert s.created_at("missing") is None
    s.close()


def test_sqlite_closed_store_raises(tmp_path: Path):
    s = SqliteArtifactStore(tmp_path)
    s.close()
    s.close()  # second close is harmless

    with pytest.raises(StorageIOError, match="closed"):
        s.store("k", "v")


def test_compression_is_lossless_and_shrinks_text():
    text = "print('hello')\n" * 500

    blob = compress(text)

    assert len(blob) < len(text)
    assert decompress(blob) == text.encode("utf-8")
