"""Watch command - reload registered files as they change."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from ..config import HotpatchConfig
from ..errors import HotpatchError
from ..shell import Session
from ..watcher import ReloadResult, run_watch_loop


def run_watch(
    config: HotpatchConfig,
    registrations: list[tuple[str, Path]],
    *,
    config_path: Path | None = None,
) -> int:
    """
    Register each NAME=PATH and reload it whenever the file changes.

    This is a blocking command that runs until interrupted (Ctrl+C).
    """
    console = Console(stderr=True)
    try:
        session = Session.open(config, config_path)
    except HotpatchError as e:
        console.print(f"Cannot open artifact store: {e}", style="bold red", markup=False)
        return 1

    try:
        for name, path in registrations:
            try:
                session.registry.register_from_file(name, path)
            except HotpatchError as e:
                console.print(f"Cannot register {name}: {e}", style="bold red", markup=False)
                return 1
            console.print(f"[bold]Watching[/bold] {name} ({path})")

        console.print()
        console.print("[dim]Press Ctrl+C to stop watching[/dim]")
        console.print()

        reload_count = 0

        def on_event(result: ReloadResult) -> None:
            nonlocal reload_count
            if result.ok:
                reload_count += 1
                console.print(f"[green]↻[/green] {result.format()}", highlight=False)
            else:
                console.print(f"[red]✗[/red] {result.format()}", highlight=False)

        run_watch_loop(
            session.registry,
            names={name for name, _ in registrations},
            debounce=config.watch_debounce,
            on_event=on_event,
        )
    finally:
        session.close()

    console.print()
    console.print(f"[bold]Stopped.[/bold] {reload_count} reload(s)")
    return 0
