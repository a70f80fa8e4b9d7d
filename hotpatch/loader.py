"""
Module load primitive.

Loads a Python source file as a brand-new module object every time it is
called. Nothing is cached: the import system's sys.modules lookup is
bypassed by giving each load a unique module name, so a stale
implementation is never returned.

Every loaded module stays in sys.modules so values it produced keep
pickling and introspecting. Whoever holds those values calls
release_module once the last of them is gone.

Export convention, checked in order:
- a module attribute named __export__
- a module attribute named default
- otherwise the module itself
"""

from __future__ import annotations

import importlib.util
import itertools
import logging
import sys
import threading
from pathlib import Path
from types import ModuleType
from typing import Any

from .errors import LoadFailureError

logger = logging.getLogger(__name__)

EXPORT_NAMES = ("__export__", "default")
MODULE_PREFIX = "hotpatch_dyn_"

_counter = itertools.count(1)
_lock = threading.Lock()


def _module_name(path: Path) -> str:
    stem = "".join(c if c.isalnum() else "_" for c in path.stem)
    return f"{MODULE_PREFIX}{stem}_{next(_counter)}"


def load_module(path: str | Path):
    """
    Execute a source file as a fresh module.

    Args:
        path: Path to a .py file

    Returns:
        The new module object

    Raises:
        LoadFailureError: If the file is missing or fails to execute
    """
    path = Path(path).resolve()
    if not path.exists():
        raise LoadFailureError(f"Module file not found: {path}")
    if not path.is_file():
        raise LoadFailureError(f"Path is not a file: {path}")

    with _lock:
        module_name = _module_name(path)

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise LoadFailureError(f"Could not create module spec for: {path}")

    module = importlib.util.module_from_spec(spec)
    # Registered while executing so dataclasses, pickle and friends can find it
    sys.modules[module_name] = module
    try:
        # Always compiled from source; __pycache__ is keyed on mtime and size only.
        code = compile(read_source(path), str(path), "exec")
        exec(code, module.__dict__)
    except SyntaxError as e:
        sys.modules.pop(module_name, None)
        raise LoadFailureError(f"Syntax error in {path}: {e}") from e
    except LoadFailureError:
        sys.modules.pop(module_name, None)
        raise
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise LoadFailureError(f"Failed to load {path}: {type(e).__name__}: {e}") from e

    logger.debug("Loaded %s as %s", path, module_name)
    return module


def module_name_of(value: Any) -> str | None:
    """
    Name of the loaded module value came from, if load_module created it.

    Modules answer with their own name; classes, functions and instances of
    loaded classes with their __module__.
    """
    if isinstance(value, ModuleType):
        name = value.__name__
    else:
        name = getattr(value, "__module__", None)
    if isinstance(name, str) and name.startswith(MODULE_PREFIX):
        return name
    return None


def release_module(name: str) -> None:
    """Drop a module created by load_module from sys.modules."""
    if name.startswith(MODULE_PREFIX) and sys.modules.pop(name, None) is not None:
        logger.debug("Released %s", name)


def extract_export(module: Any) -> Any:
    """Pick the implementation a module exposes (see module docstring)."""
    for attr in EXPORT_NAMES:
        if hasattr(module, attr):
            return getattr(module, attr)
    return module


def load_implementation(path: str | Path) -> Any:
    """
    Load a fresh implementation from a source file.

    Raises:
        LoadFailureError: If loading fails or the export is None
    """
    implementation = extract_export(load_module(path))
    if implementation is None:
        raise LoadFailureError(f"Module {path} exports nothing usable")
    return implementation


def read_source(path: str | Path) -> str:
    """Read a source file exactly as stored (no newline translation)."""
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except OSError as e:
        raise LoadFailureError(f"Cannot read source file {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise LoadFailureError(f"Source file {path} is not UTF-8: {e}") from e
