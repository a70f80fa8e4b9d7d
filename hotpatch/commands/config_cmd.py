"""Configuration commands."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from ..config import load_config, save_config
from ..shell import config_table


def run_config_show(config_path: Path | None = None) -> int:
    console = Console()
    err = Console(stderr=True)
    try:
        config = load_config(config_path)
    except ValueError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    console.print(config_table(config))
    return 0


def run_config_set(key: str, value: str, config_path: Path | None = None) -> int:
    console = Console()
    err = Console(stderr=True)
    try:
        config = load_config(config_path)
        new_value = config.set_value(key, value)
    except ValueError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    written = save_config(config, config_path)
    console.print(f"Updated '{key}' to '{new_value}' in {written}", markup=False)
    return 0
