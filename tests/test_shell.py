"""Tests for the interactive patch shell."""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from rich.console import Console

from hotpatch.config import HotpatchConfig, load_config
from hotpatch.loader import load_module
from hotpatch.shell import PatchShell, Session


def source(value: int) -> str:
    return f"def default():\n    return {value}\n"


@pytest.fixture
def session(tmp_path: Path):
    config = HotpatchConfig(store_dir=str(tmp_path / "vault"), max_rollback_depth=3)
    s = Session.open(config, config_path=tmp_path / "hotpatch.yml")
    yield s
    s.close()


@pytest.fixture
def shell(session: Session):
    out = io.StringIO()
    sh = PatchShell(session, console=Console(file=out, width=200, color_system=None))
    sh.output = out
    yield sh
    sh.stop_watcher()


def run(shell: PatchShell, line: str) -> str:
    shell.output.seek(0)
    shell.output.truncate()
    shell.push(line)
    return shell.output.getvalue()


def test_register_and_modules(shell: PatchShell, write_source):
    path = write_source("m.py", source(1))

    out = run(shell, f".register {path} m")

    assert "Registered module 'm'" in out
    assert run(shell, ".modules").strip() == "m"
    assert shell.session.registry.get("m")() == 1


def test_modules_when_empty(shell: PatchShell):
    assert "(none)" in run(shell, ".modules")


def test_reload_rollback_forward(shell: PatchShell, write_source):
    path = write_source("m.py", source(1))
    run(shell, f".register {path} m")
    h = shell.session.registry.get("m")

    write_source("m.py", source(2))
    assert "Reloaded module 'm'" in run(shell, ".reload m")
    assert h() == 2

    assert "by 1 version(s)" in run(shell, ".rollback m")
    assert h() == 1

    shell.session.registry.reload_instance("m", lambda: "live")
    run(shell, ".rollback m")
    assert "Rolled forward" in run(shell, ".forward m")
    assert h() == "live"


def test_reload_from_file(shell: PatchShell, write_source):
    first = write_source("a.py", source(1))
    second = write_source("b.py", source(5))
    run(shell, f".register {first} m")

    out = run(shell, f".reloadFromFile {second} m")

    assert "Hot-patched 'm'" in out
    assert shell.session.registry.get("m")() == 5


def test_history_lists_versions(shell: PatchShell, write_source):
    path = write_source("m.py", source(1))
    run(shell, f".register {path} m")
    write_source("m.py", source(2))
    run(shell, ".reload m")

    out = run(shell, ".history m")

    assert "Version history for 'm'" in out
    assert out.count("m@") == 2
    assert "current" in out


def test_history_for_in_memory_entry(shell: PatchShell):
    shell.session.registry.register("mem", object())

    assert "(no stored versions)" in run(shell, ".history mem")


def test_errors_are_printed_and_session_continues(shell: PatchShell):
    out = run(shell, ".reload ghost")
    assert "Module not registered: ghost" in out

    out = run(shell, ".rollback ghost")
    assert "Module not registered: ghost" in out

    assert "(none)" in run(shell, ".modules")


def test_usage_and_bad_steps(shell: PatchShell):
    assert "Usage: .register <path> <name>" in run(shell, ".register onlyone")
    assert "Usage: .rollback <name> [steps]" in run(shell, ".rollback")
    assert "positive integer" in run(shell, ".rollback m zero")
    assert "positive integer" in run(shell, ".rollback m 0")


def test_unknown_command(shell: PatchShell):
    assert "Unknown command: .frobnicate" in run(shell, ".frobnicate")


def test_help_lists_commands(shell: PatchShell):
    out = run(shell, ".help")

    for name in (".register", ".reloadFromFile", ".rollback", ".setconfig", ".pipinstall", ".exit"):
        assert name in out


def test_viewconfig_and_setconfig(shell: PatchShell, tmp_path: Path):
    assert "max_rollback_depth" in run(shell, ".viewconfig")

    out = run(shell, ".setconfig max_rollback_depth 5")

    assert "Updated 'max_rollback_depth' to '5'" in out
    assert shell.session.config.max_rollback_depth == 5
    assert load_config(tmp_path / "hotpatch.yml").max_rollback_depth == 5


def test_setconfig_rejects_bad_values(shell: PatchShell, tmp_path: Path):
    out = run(shell, ".setconfig max_rollback_depth lots")

    assert "must be an integer" in out
    assert shell.session.config.max_rollback_depth == 3
    assert not (tmp_path / "hotpatch.yml").exists()

    assert "not a valid configuration key" in run(shell, ".setconfig nope 1")


def test_patch_and_unpatch(shell: PatchShell, write_source):
    target = write_source("target.py", "VALUE = 'old'\n")
    patch = write_source("patch.py", "VALUE = 'new'\n")
    module = load_module(target)

    assert "Patched" in run(shell, f".patch {target} {patch}")
    assert module.VALUE == "new"

    assert "Rolled back patch" in run(shell, f".unpatch {target}")
    assert module.VALUE == "old"

    assert "No patch to rollback" in run(shell, f".unpatch {target}")


def test_remove(shell: PatchShell, write_source):
    path = write_source("m.py", source(1))
    run(shell, f".register {path} m")

    assert "Removed module 'm'" in run(shell, ".remove m --purge")
    assert shell.session.store.keys() == []


def test_python_lines_run_in_namespace(shell: PatchShell, write_source):
    path = write_source("m.py", source(8))
    run(shell, f".register {path} m")

    shell.push("result = get('m')()")

    assert shell.locals["result"] == 8
    assert shell.locals["registry"] is shell.session.registry


def test_exit_ends_interact(shell: PatchShell, monkeypatch):
    lines = iter([".exit", "should_not_run = True"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))

    shell.interact(banner="")

    assert "should_not_run" not in shell.locals


def test_watch_and_unwatch(shell: PatchShell, write_source):
    path = write_source("m.py", source(1))
    run(shell, f".register {path} m")

    assert "Watching m" in run(shell, ".watch m")
    assert shell.watcher is not None and shell.watcher.running

    assert "Stopped watching" in run(shell, ".unwatch")
    assert shell.watcher is None
    assert "Not watching" in run(shell, ".unwatch")


def test_watch_unknown_name(shell: PatchShell):
    assert "Module not registered: ghost" in run(shell, ".watch ghost")
    assert shell.watcher is None

