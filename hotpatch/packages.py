"""
Installed-package reloading.

Reloading a package means purging it and every submodule from sys.modules
and importing it again, so the next import sees code installed or upgraded
since the process started.
"""

from __future__ import annotations

import importlib
import logging
import subprocess
import sys
from types import ModuleType

from .errors import LoadFailureError

logger = logging.getLogger(__name__)


def _owned_by(module_name: str, package: str) -> bool:
    return module_name == package or module_name.startswith(package + ".")


class PackageReloader:
    """Import, cache and re-import top-level packages."""

    def __init__(self) -> None:
        self._packages: dict[str, ModuleType] = {}

    def get(self, name: str) -> ModuleType:
        """Import name once and return the cached module."""
        if name not in self._packages:
            self._packages[name] = self._import(name)
        return self._packages[name]

    def _import(self, name: str) -> ModuleType:
        try:
            return importlib.import_module(name)
        except ImportError as e:
            raise LoadFailureError(f"Cannot import package {name}: {e}") from e

    def clear_cache(self, name: str) -> list[str]:
        """Remove name and its submodules from sys.modules. Returns the purged names."""
        purged = [m for m in list(sys.modules) if _owned_by(m, name)]
        for module_name in purged:
            del sys.modules[module_name]
        return purged

    def reload(self, name: str) -> ModuleType:
        """
        Re-import name from scratch.

        If the fresh import fails, the previously loaded modules are put back.
        """
        saved = {m: mod for m, mod in sys.modules.items() if _owned_by(m, name)}
        self.clear_cache(name)
        importlib.invalidate_caches()
        try:
            module = self._import(name)
        except LoadFailureError:
            sys.modules.update(saved)
            raise
        self._packages[name] = module
        logger.info("Reloaded package: %s", name)
        return module

    def reload_all(self) -> list[str]:
        names = list(self._packages)
        for name in names:
            self.reload(name)
        return names

    def install(self, package: str, version: str | None = None, upgrade: bool = False) -> str:
        """
        pip-install a requirement into the running interpreter's environment.

        Returns:
            pip's stdout

        Raises:
            LoadFailureError: If pip exits non-zero
        """
        requirement = f"{package}=={version}" if version else package
        cmd = [sys.executable, "-m", "pip", "install", "--disable-pip-version-check"]
        if upgrade:
            cmd.append("--upgrade")
        cmd.append(requirement)

        logger.info("Installing %s", requirement)
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise LoadFailureError(f"pip install {requirement} failed:\n{result.stderr.strip()}")
        importlib.invalidate_caches()
        return result.stdout
