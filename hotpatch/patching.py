"""
Patch modules the host process has already imported.

Unlike registry entries, these are ordinary modules in sys.modules. A patch
replaces the module's namespace in place with the result of executing the
patch file, so every `import foo` reference already handed out sees the
patched attributes. Each patch pushes a backup of the namespace; rollback
pops it.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from types import ModuleType

from .errors import LoadFailureError, NoHistoryAvailableError
from .loader import MODULE_PREFIX, load_module, read_source

logger = logging.getLogger(__name__)

# Kept across a patch so the module keeps its identity and import metadata
PRESERVED_ATTRS = (
    "__name__",
    "__file__",
    "__spec__",
    "__loader__",
    "__package__",
    "__path__",
    "__builtins__",
    "__cached__",
)


class ModulePatcher:
    """Apply and roll back file patches on imported modules."""

    def __init__(self) -> None:
        # resolved module path -> (module, stack of namespace backups)
        self._backups: dict[Path, tuple[ModuleType, list[dict]]] = {}

    def _find_module(self, path: Path) -> ModuleType | None:
        matches = []
        for module in list(sys.modules.values()):
            module_file = getattr(module, "__file__", None)
            if module_file and Path(module_file).resolve() == path:
                matches.append(module)
        # A real import wins; otherwise the newest fresh load
        regular = [m for m in matches if not m.__name__.startswith(MODULE_PREFIX)]
        candidates = regular or matches
        return candidates[-1] if candidates else None

    def apply_patch(self, module_path: str | Path, patch_path: str | Path) -> ModuleType:
        """
        Replace a module's contents with a patch file's.

        The module is imported first if the process has not loaded it yet.

        Raises:
            LoadFailureError: If either file is missing or the patch fails to run
        """
        module_path = Path(module_path).resolve()
        patch_path = Path(patch_path).resolve()
        if not module_path.is_file():
            raise LoadFailureError(f"Module not found: {module_path}")
        if not patch_path.is_file():
            raise LoadFailureError(f"Patch not found: {patch_path}")

        module = self._find_module(module_path) or load_module(module_path)
        source = read_source(patch_path)
        try:
            code = compile(source, str(patch_path), "exec")
        except SyntaxError as e:
            raise LoadFailureError(f"Syntax error in patch {patch_path}: {e}") from e

        backup = dict(module.__dict__)
        preserved = {k: backup[k] for k in PRESERVED_ATTRS if k in backup}
        module.__dict__.clear()
        module.__dict__.update(preserved)
        try:
            exec(code, module.__dict__)
        except Exception as e:
            module.__dict__.clear()
            module.__dict__.update(backup)
            raise LoadFailureError(f"Failed to apply patch {patch_path}: {type(e).__name__}: {e}") from e

        _, stack = self._backups.setdefault(module_path, (module, []))
        stack.append(backup)
        logger.info("Patch applied: %s", module_path)
        return module

    def apply_patch_dir(
        self,
        dir_path: str | Path,
        patch_dir: str | Path,
        recursive: bool = False,
    ) -> list[Path]:
        """
        Patch every .py file in dir_path that has a same-named file in patch_dir.

        Returns:
            The module paths that were patched
        """
        dir_path = Path(dir_path)
        patch_dir = Path(patch_dir)
        patched = []

        for entry in sorted(dir_path.iterdir()):
            counterpart = patch_dir / entry.name
            if entry.is_dir():
                if recursive and counterpart.is_dir():
                    patched.extend(self.apply_patch_dir(entry, counterpart, recursive=True))
            elif entry.is_file() and entry.suffix == ".py":
                if counterpart.is_file():
                    self.apply_patch(entry, counterpart)
                    patched.append(entry.resolve())
                else:
                    logger.warning("Patch not found for: %s", entry)
        return patched

    def rollback(self, module_path: str | Path) -> ModuleType:
        """
        Restore the module's namespace from before its latest patch.

        Raises:
            NoHistoryAvailableError: If the module has no patch to undo
        """
        module_path = Path(module_path).resolve()
        record = self._backups.get(module_path)
        if record is None or not record[1]:
            raise NoHistoryAvailableError(f"No patch to rollback for {module_path}")

        module, stack = record
        backup = stack.pop()
        module.__dict__.clear()
        module.__dict__.update(backup)
        if not stack:
            del self._backups[module_path]
        logger.info("Rollback successful: %s", module_path)
        return module

    def rollback_dir(self, dir_path: str | Path, recursive: bool = False) -> list[Path]:
        """Roll back every patched module file in dir_path."""
        dir_path = Path(dir_path)
        rolled_back = []
        for entry in sorted(dir_path.iterdir()):
            if entry.is_dir():
                if recursive:
                    rolled_back.extend(self.rollback_dir(entry, recursive=True))
            elif entry.is_file() and entry.resolve() in self._backups:
                self.rollback(entry)
                rolled_back.append(entry.resolve())
        return rolled_back

    def patched(self) -> list[Path]:
        """Module paths that currently have at least one patch applied."""
        return sorted(self._backups)
