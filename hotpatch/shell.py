"""
Interactive patch shell.

PatchShell is a regular Python console with the registry in its namespace.
Lines starting with "." are shell commands (.register, .reload, .rollback,
...); everything else is executed as Python. A failing command prints the
error and the session carries on.
"""

from __future__ import annotations

import code
import logging
import shlex
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import HotpatchConfig, save_config
from .errors import HotpatchError
from .packages import PackageReloader
from .patching import ModulePatcher
from .registry import Registry
from .store import ArtifactStore, open_store
from .watcher import BackgroundWatcher, ReloadResult

logger = logging.getLogger(__name__)

PROMPT = "hotpatch> "
LOG_SUBDIR = "logs"


@dataclass
class Session:
    """Everything one shell or CLI invocation works with."""

    config: HotpatchConfig
    registry: Registry
    store: ArtifactStore | None = None
    config_path: Path | None = None
    patcher: ModulePatcher = field(default_factory=ModulePatcher)
    packages: PackageReloader = field(default_factory=PackageReloader)

    @classmethod
    def open(cls, config: HotpatchConfig, config_path: Path | None = None) -> "Session":
        """Open the configured artifact store and build a registry on it."""
        store = open_store(config.backend, config.store_dir, config.db_name)
        registry = Registry(
            config=config,
            store=store,
            log_dir=Path(config.store_dir) / LOG_SUBDIR,
        )
        return cls(config=config, registry=registry, store=store, config_path=config_path)

    def close(self) -> None:
        self.registry.close()


@dataclass
class ShellCommand:
    name: str
    usage: str
    help: str
    action: Callable[[list[str]], None]
    min_args: int = 0
    max_args: int | None = None


class PatchShell(code.InteractiveConsole):
    """Python console with hot-patching dot-commands."""

    def __init__(self, session: Session, console: Console | None = None):
        self.session = session
        self.console = console or Console()
        self.watcher: BackgroundWatcher | None = None
        self._exit_requested = False
        self.commands: dict[str, ShellCommand] = {}
        self._define_commands()
        super().__init__(locals=self._namespace())

    # --- namespace ---

    def _namespace(self) -> dict[str, Any]:
        registry = self.session.registry
        return {
            "__name__": "__hotpatch_shell__",
            "registry": registry,
            "config": self.session.config,
            "patcher": self.session.patcher,
            "packages": self.session.packages,
            "get": registry.get,
            "register": registry.register,
            "register_from_file": registry.register_from_file,
            "reload": registry.reload,
            "reload_from_file": registry.reload_from_file,
            "reload_instance": registry.reload_instance,
            "rollback": registry.rollback,
            "forward": registry.roll_forward,
            "history": registry.get_history,
        }

    # --- console plumbing ---

    def push(self, line: str) -> bool:
        stripped = line.strip()
        if stripped.startswith(".") and not self.buffer:
            self.run_command(stripped)
            return False
        return super().push(line)

    def raw_input(self, prompt: str = "") -> str:
        if self._exit_requested:
            raise EOFError
        return super().raw_input(prompt)

    def interact(self, banner: str | None = None, exitmsg: str | None = None) -> None:
        sys.ps1 = PROMPT
        sys.ps2 = "... "
        if banner is None:
            banner = "hotpatch shell. Type .help for commands."
        try:
            super().interact(banner=banner, exitmsg="")
        finally:
            self.stop_watcher()

    # --- dispatch ---

    def _define_commands(self) -> None:
        for command in (
            ShellCommand("register", ".register <path> <name>", "Register a module from a file", self._cmd_register, 2, 2),
            ShellCommand("modules", ".modules", "List registered modules", self._cmd_modules, 0, 0),
            ShellCommand("reload", ".reload <name>", "Reload a module from its file", self._cmd_reload, 1, 1),
            ShellCommand(
                "reloadFromFile",
                ".reloadFromFile <path> <name>",
                "Hot-patch a module from another file",
                self._cmd_reload_from_file,
                2,
                2,
            ),
            ShellCommand("rollback", ".rollback <name> [steps]", "Roll a module back", self._cmd_rollback, 1, 2),
            ShellCommand("forward", ".forward <name>", "Undo the last rollback", self._cmd_forward, 1, 1),
            ShellCommand("history", ".history <name>", "Show stored versions of a module", self._cmd_history, 1, 1),
            ShellCommand("remove", ".remove <name> [--purge]", "Unregister a module", self._cmd_remove, 1, 2),
            ShellCommand("patch", ".patch <module> <patch>", "Patch an imported module file (or directory)", self._cmd_patch, 2, 2),
            ShellCommand("unpatch", ".unpatch <module>", "Undo the last patch of a module file (or directory)", self._cmd_unpatch, 1, 1),
            ShellCommand("pkgreload", ".pkgreload <package>", "Re-import an installed package", self._cmd_pkgreload, 1, 1),
            ShellCommand("pipinstall", ".pipinstall <package> [version]", "pip-install a package and import it", self._cmd_pipinstall, 1, 2),
            ShellCommand("pipupdate", ".pipupdate <package> [version]", "pip-upgrade a package and re-import it", self._cmd_pipupdate, 1, 2),
            ShellCommand("watch", ".watch [name ...]", "Reload modules when their files change", self._cmd_watch),
            ShellCommand("unwatch", ".unwatch", "Stop watching files", self._cmd_unwatch, 0, 0),
            ShellCommand("viewconfig", ".viewconfig", "Show the configuration", self._cmd_viewconfig, 0, 0),
            ShellCommand("setconfig", ".setconfig <key> <value>", "Set and save a configuration value", self._cmd_setconfig, 2),
            ShellCommand("help", ".help", "Show shell commands", self._cmd_help, 0, 0),
            ShellCommand("exit", ".exit", "Leave the shell", self._cmd_exit, 0, 0),
        ):
            self.commands[command.name] = command

    def run_command(self, line: str) -> None:
        """Run one dot-command line. Errors are printed, never raised."""
        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            self._error(str(e))
            return
        if not parts:
            self._cmd_help([])
            return

        name, args = parts[0], parts[1:]
        command = self.commands.get(name)
        if command is None:
            self._error(f"Unknown command: .{name} (type .help)")
            return
        if len(args) < command.min_args or (command.max_args is not None and len(args) > command.max_args):
            self.console.print(f"Usage: {command.usage}", markup=False)
            return

        try:
            command.action(args)
        except (HotpatchError, ValueError, OSError) as e:
            self._error(str(e))

    def _ok(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def _error(self, message: str) -> None:
        self.console.print(f"[bold red]✗[/bold red] {escape(message)}", highlight=False)

    # --- registry commands ---

    def _cmd_register(self, args: list[str]) -> None:
        path, name = args
        self.session.registry.register_from_file(name, Path(path))
        self._ok(f"Registered module '{name}' from file '{path}'")

    def _cmd_modules(self, args: list[str]) -> None:
        names = self.session.registry.list()
        self.console.print(", ".join(names) if names else "(none)")

    def _cmd_reload(self, args: list[str]) -> None:
        self.session.registry.reload(args[0])
        self._ok(f"Reloaded module '{args[0]}'")

    def _cmd_reload_from_file(self, args: list[str]) -> None:
        path, name = args
        self.session.registry.reload_from_file(name, Path(path))
        self._ok(f"Hot-patched '{name}' from '{path}'")

    def _cmd_rollback(self, args: list[str]) -> None:
        name = args[0]
        steps = 1
        if len(args) > 1:
            try:
                steps = int(args[1])
            except ValueError:
                steps = 0
            if steps < 1:
                self.console.print("Steps must be a positive integer.")
                return
        self.session.registry.rollback(name, steps)
        self._ok(f"Rolled back module '{name}' by {steps} version(s)")

    def _cmd_forward(self, args: list[str]) -> None:
        self.session.registry.roll_forward(args[0])
        self._ok(f"Rolled forward module '{args[0]}'")

    def _cmd_history(self, args: list[str]) -> None:
        summary = self.session.registry.get_history(args[0])
        if not summary.versions:
            self.console.print("(no stored versions)")
        else:
            self.console.print(history_table(summary.name, summary.versions, summary.current_version_key))
        self.console.print(f"[dim]undo: {summary.undo_depth}  redo: {summary.redo_depth}[/dim]")

    def _cmd_remove(self, args: list[str]) -> None:
        name = args[0]
        purge = len(args) > 1 and args[1] == "--purge"
        self.session.registry.remove(name, purge=purge)
        self._ok(f"Removed module '{name}'" + (" and its stored versions" if purge else ""))

    # --- module / package commands ---

    def _cmd_patch(self, args: list[str]) -> None:
        target, patch = (Path(a) for a in args)
        patcher = self.session.patcher
        if target.is_dir():
            patched = patcher.apply_patch_dir(target, patch, recursive=True)
            self._ok(f"Patched {len(patched)} module(s) in '{target}'")
        else:
            patcher.apply_patch(target, patch)
            self._ok(f"Patched '{target}' with '{patch}'")

    def _cmd_unpatch(self, args: list[str]) -> None:
        target = Path(args[0])
        patcher = self.session.patcher
        if target.is_dir():
            restored = patcher.rollback_dir(target, recursive=True)
            self._ok(f"Rolled back {len(restored)} module(s) in '{target}'")
        else:
            patcher.rollback(target)
            self._ok(f"Rolled back patch of '{target}'")

    def _cmd_pkgreload(self, args: list[str]) -> None:
        module = self.session.packages.reload(args[0])
        self.locals[args[0].split(".")[0]] = module
        self._ok(f"Reloaded package '{args[0]}'")

    def _cmd_pipinstall(self, args: list[str]) -> None:
        package = args[0]
        version = args[1] if len(args) > 1 else None
        self.console.print(f"Installing {package}{'==' + version if version else ''}...")
        output = self.session.packages.install(package, version)
        if output:
            self.console.print(output.rstrip(), markup=False, highlight=False)
        self.session.packages.get(package)
        self._ok(f"Installed '{package}'")

    def _cmd_pipupdate(self, args: list[str]) -> None:
        package = args[0]
        version = args[1] if len(args) > 1 else None
        self.console.print(f"Updating {package}{'==' + version if version else ''}...")
        output = self.session.packages.install(package, version, upgrade=True)
        if output:
            self.console.print(output.rstrip(), markup=False, highlight=False)
        self.session.packages.reload(package)
        self._ok(f"Updated '{package}'")

    # --- watcher ---

    def _on_watch_event(self, result: ReloadResult) -> None:
        if result.ok:
            self.console.print(f"[green]↻[/green] {escape(result.format())}")
        else:
            self.console.print(f"[bold red]✗[/bold red] {escape(result.format())}", highlight=False)

    def _cmd_watch(self, args: list[str]) -> None:
        registry = self.session.registry
        for name in args:
            registry.entry(name)
        self.stop_watcher()
        self.watcher = BackgroundWatcher(
            registry,
            names=set(args) or None,
            debounce=self.session.config.watch_debounce,
            on_event=self._on_watch_event,
        )
        self.watcher.start()
        self._ok("Watching " + (", ".join(args) if args else "all file-backed modules"))

    def _cmd_unwatch(self, args: list[str]) -> None:
        if self.watcher is None:
            self.console.print("Not watching.")
            return
        self.stop_watcher()
        self._ok("Stopped watching")

    def stop_watcher(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

    # --- config ---

    def _cmd_viewconfig(self, args: list[str]) -> None:
        self.console.print(config_table(self.session.config))

    def _cmd_setconfig(self, args: list[str]) -> None:
        key, value = args[0], " ".join(args[1:])
        config = self.session.config
        new_value = config.set_value(key, value)
        path = save_config(config, self.session.config_path)
        if key == "log_level":
            logging.getLogger("hotpatch").setLevel(config.log_level.upper())
        self._ok(f"Updated '{key}' to '{new_value}' ({path})")

    # --- misc ---

    def _cmd_help(self, args: list[str]) -> None:
        table = Table(show_header=False, box=None)
        table.add_column("usage", style="cyan", no_wrap=True)
        table.add_column("help")
        for command in self.commands.values():
            table.add_row(escape(command.usage), command.help)
        self.console.print(table)
        self.console.print("[dim]Anything else is run as Python. Names in scope: "
                           + ", ".join(sorted(k for k in self.locals if not k.startswith("__")))
                           + "[/dim]")

    def _cmd_exit(self, args: list[str]) -> None:
        self._exit_requested = True


def history_table(name: str, versions: list, current_key: str | None = None) -> Table:
    """Rich table of archived versions, oldest first."""
    table = Table(title=f"Version history for '{name}'")
    table.add_column("#", justify="right")
    table.add_column("key", style="cyan", no_wrap=True)
    table.add_column("created")
    table.add_column("", style="green")
    for i, record in enumerate(versions):
        created = datetime.fromtimestamp(record.created_at / 1000).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(str(i), record.key, created, "current" if record.key == current_key else "")
    return table


def config_table(config: HotpatchConfig) -> Table:
    table = Table(title="Configuration")
    table.add_column("key", style="cyan")
    table.add_column("value")
    for key, value in config.to_dict().items():
        table.add_row(key, str(value))
    return table


def start_shell(session: Session, console: Console | None = None) -> PatchShell:
    """Run the shell until .exit or EOF. Returns the finished shell."""
    shell = PatchShell(session, console=console)
    shell.interact()
    return shell
