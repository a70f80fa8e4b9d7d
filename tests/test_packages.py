"""Tests for installed-package reloading."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

from hotpatch.errors import LoadFailureError
from hotpatch.packages import PackageReloader


@pytest.fixture
def package_dir(tmp_path: Path, monkeypatch) -> Path:
    """A throwaway importable package `hp_demo_pkg` with one submodule."""
    pkg = tmp_path / "site" / "hp_demo_pkg"
    pkg.mkdir(parents=True)
    (pkg / "__init__.py").write_text("VERSION = 1\n")
    (pkg / "sub.py").write_text("NAME = 'sub-1'\n")
    monkeypatch.syspath_prepend(str(tmp_path / "site"))
    yield pkg
    for name in [m for m in sys.modules if m.startswith("hp_demo_pkg")]:
        del sys.modules[name]


def test_get_caches(package_dir: Path):
    reloader = PackageReloader()

    first = reloader.get("hp_demo_pkg")

    assert first.VERSION == 1
    assert reloader.get("hp_demo_pkg") is first


def test_reload_picks_up_new_code(package_dir: Path):
    reloader = PackageReloader()
    reloader.get("hp_demo_pkg")
    __import__("hp_demo_pkg.sub")

    (package_dir / "__init__.py").write_text("VERSION = 22\n")
    (package_dir / "sub.py").write_text("NAME = 'sub-22'\n")
    module = reloader.reload("hp_demo_pkg")

    assert module.VERSION == 22
    assert "hp_demo_pkg.sub" not in sys.modules
    assert reloader.get("hp_demo_pkg") is module


def test_failed_reload_restores_modules(package_dir: Path):
    reloader = PackageReloader()
    original = reloader.get("hp_demo_pkg")

    (package_dir / "__init__.py").write_text("import does_not_exist_anywhere\n")
    with pytest.raises(LoadFailureError):
        reloader.reload("hp_demo_pkg")

    assert sys.modules["hp_demo_pkg"] is original


def test_clear_cache_only_touches_the_package(package_dir: Path):
    reloader = PackageReloader()
    reloader.get("hp_demo_pkg")
    __import__("hp_demo_pkg.sub")

    purged = reloader.clear_cache("hp_demo_pkg")

    assert sorted(purged) == ["hp_demo_pkg", "hp_demo_pkg.sub"]
    assert "hotpatch.packages" in sys.modules


def test_reload_all(package_dir: Path):
    reloader = PackageReloader()
    reloader.get("hp_demo_pkg")

    assert reloader.reload_all() == ["hp_demo_pkg"]


def test_get_unknown_package():
    with pytest.raises(LoadFailureError, match="Cannot import package"):
        PackageReloader().get("hp_no_such_package_xyz")


def test_install_builds_pip_command(monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="Successfully installed demo\n", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)

    out = PackageReloader().install("demo", "1.2", upgrade=True)

    assert out == "Successfully installed demo\n"
    assert calls[0][:3] == [sys.executable, "-m", "pip"]
    assert "--upgrade" in calls[0]
    assert calls[0][-1] == "demo==1.2"


def test_install_failure(monkeypatch):
    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="No matching distribution\n")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(LoadFailureError, match="No matching distribution"):
        PackageReloader().install("demo")
