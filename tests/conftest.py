"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Callable

import pytest

from hotpatch.config import HotpatchConfig
from hotpatch.registry import Registry
from hotpatch.store import FileArtifactStore, SqliteArtifactStore, open_store


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[..., Path]:
    """Write a Python source file under tmp_path/src and return its path."""

    def _write(name: str, text: str) -> Path:
        path = tmp_path / "src" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        return path

    return _write


@pytest.fixture(params=["file", "sqlite"])
def store(request, tmp_path: Path):
    """Both artifact store backends, closed after the test."""
    s = open_store(request.param, tmp_path / "vault")
    yield s
    s.close()


@pytest.fixture
def config() -> HotpatchConfig:
    return HotpatchConfig(max_rollback_depth=3)


@pytest.fixture
def registry(tmp_path: Path, config: HotpatchConfig) -> Registry:
    """Registry archiving to a SQLite store with persisted version logs."""
    reg = Registry(
        config=config,
        store=SqliteArtifactStore(tmp_path / "vault"),
        log_dir=tmp_path / "vault" / "logs",
    )
    yield reg
    reg.close()


@pytest.fixture
def memory_registry(config: HotpatchConfig) -> Registry:
    """Registry without a store: in-memory undo/redo only."""
    return Registry(config=config)


@pytest.fixture
def file_registry(tmp_path: Path, config: HotpatchConfig) -> Registry:
    """Registry archiving to the file backend."""
    return Registry(
        config=config,
        store=FileArtifactStore(tmp_path / "vault"),
        log_dir=tmp_path / "vault" / "logs",
    )
