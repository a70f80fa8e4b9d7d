"""Artifact store inspection commands."""

from __future__ import annotations

import sys

from rich.console import Console
from rich.table import Table

from ..config import HotpatchConfig
from ..errors import HotpatchError
from ..store import open_store


def run_store_ls(config: HotpatchConfig, *, prefix: str | None = None) -> int:
    console = Console()
    err = Console(stderr=True)
    try:
        with open_store(config.backend, config.store_dir, config.db_name) as store:
            keys = [k for k in store.keys() if prefix is None or k.startswith(prefix)]
            sizes = {k: len(store.load(k) or b"") for k in keys}
    except HotpatchError as e:
        err.print(f"Cannot read artifact store: {e}", style="bold red", markup=False)
        return 1

    if not keys:
        console.print("(no stored artifacts)")
        return 0

    table = Table(title=f"Artifacts ({config.backend}: {config.store_dir})")
    table.add_column("key", style="cyan", no_wrap=True)
    table.add_column("bytes", justify="right")
    for key in keys:
        table.add_row(key, str(sizes[key]))
    console.print(table)
    return 0


def run_store_show(config: HotpatchConfig, key: str) -> int:
    err = Console(stderr=True)
    try:
        with open_store(config.backend, config.store_dir, config.db_name) as store:
            payload = store.load(key)
    except HotpatchError as e:
        err.print(f"Cannot read artifact store: {e}", style="bold red", markup=False)
        return 1

    if payload is None:
        err.print(f"Artifact not found: {key}", style="bold red", markup=False)
        return 1
    try:
        sys.stdout.write(payload.decode("utf-8"))
    except UnicodeDecodeError:
        err.print(f"Artifact {key} is binary ({len(payload)} bytes)", style="yellow", markup=False)
        return 1
    sys.stdout.flush()
    return 0


def run_store_rm(config: HotpatchConfig, key: str) -> int:
    console = Console()
    err = Console(stderr=True)
    try:
        with open_store(config.backend, config.store_dir, config.db_name) as store:
            if not store.exists(key):
                err.print(f"Artifact not found: {key}", style="bold red", markup=False)
                return 1
            store.remove(key)
    except HotpatchError as e:
        err.print(f"Cannot update artifact store: {e}", style="bold red", markup=False)
        return 1
    console.print(f"Removed {key}", markup=False)
    return 0
