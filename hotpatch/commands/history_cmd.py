"""Version history commands: inspect archived versions and roll a file back."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console

from ..config import HotpatchConfig
from ..errors import HotpatchError
from ..shell import LOG_SUBDIR, Session, history_table
from ..versions import VersionLog, log_path_for


def run_history(config: HotpatchConfig, name: str, *, output_json: bool = False) -> int:
    """Print the persisted version log of name."""
    console = Console()
    err = Console(stderr=True)
    log_path = log_path_for(Path(config.store_dir) / LOG_SUBDIR, name)
    try:
        log = VersionLog(name, log_path)
    except HotpatchError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    if output_json:
        print(json.dumps([r.to_dict() for r in log], indent=2))
        return 0
    if not len(log):
        console.print(f"(no stored versions for '{name}')", markup=False)
        return 0
    console.print(history_table(name, log.records, log.last.key))
    return 0


def run_rollback(
    config: HotpatchConfig,
    name: str,
    path: Path,
    *,
    steps: int = 1,
    config_path: Path | None = None,
) -> int:
    """
    Restore an archived version of name into its source file.

    The file is registered under name first, which picks up the persisted
    log, then rolled back `steps` versions.
    """
    console = Console()
    err = Console(stderr=True)
    try:
        session = Session.open(config, config_path)
    except HotpatchError as e:
        err.print(f"Cannot open artifact store: {e}", style="bold red", markup=False)
        return 1

    try:
        registry = session.registry
        registry.register_from_file(name, path)
        registry.rollback(name, steps)
        key = registry.entry(name).current_version_key
    except (HotpatchError, ValueError) as e:
        err.print(f"Rollback failed: {e}", style="bold red", markup=False)
        return 1
    finally:
        session.close()

    console.print(f"Rolled back '{name}' by {steps} version(s)", markup=False)
    if key:
        console.print(f"  {path} now holds {key}", markup=False)
    return 0
