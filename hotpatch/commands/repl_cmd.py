"""Interactive shell command."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from ..config import HotpatchConfig
from ..errors import HotpatchError
from ..shell import PatchShell, Session


def run_repl(
    config: HotpatchConfig,
    registrations: list[tuple[str, Path]] | None = None,
    *,
    config_path: Path | None = None,
) -> int:
    """Open the patch shell, registering NAME=PATH pairs first."""
    err = Console(stderr=True)
    try:
        session = Session.open(config, config_path)
    except HotpatchError as e:
        err.print(f"Cannot open artifact store: {e}", style="bold red", markup=False)
        return 1

    try:
        for name, path in registrations or []:
            try:
                session.registry.register_from_file(name, path)
            except HotpatchError as e:
                err.print(f"Cannot register {name}: {e}", style="bold red", markup=False)
                return 1
        PatchShell(session).interact()
    finally:
        session.close()
    return 0
