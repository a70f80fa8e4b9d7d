"""
Configuration for hotpatch.

Settings live in a YAML file (hotpatch.yml by default). The registry only
reads max_rollback_depth, and reads it on every history push, so changing
it at run time (e.g. .setconfig in the shell) applies immediately.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_FILE = "hotpatch.yml"

BACKENDS = ("file", "sqlite")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


@dataclass
class HotpatchConfig:
    """Runtime settings."""

    max_rollback_depth: int = 1
    backend: str = "sqlite"
    store_dir: str = ".vault"
    db_name: str = "codevault.db"
    archive_versions: bool = True
    log_level: str = "INFO"
    watch_debounce: float = 0.5

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ValueError if any setting is out of range."""
        if isinstance(self.max_rollback_depth, bool) or not isinstance(self.max_rollback_depth, int):
            raise ValueError("max_rollback_depth must be an integer")
        if self.max_rollback_depth < 0:
            raise ValueError("max_rollback_depth must be >= 0")
        if self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {', '.join(BACKENDS)}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        if self.watch_debounce < 0:
            raise ValueError("watch_debounce must be >= 0")

    @classmethod
    def field_types(cls) -> dict[str, type]:
        """Setting name -> expected Python type."""
        return {f.name: type(f.default) for f in fields(cls)}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HotpatchConfig":
        unknown = set(data) - set(cls.field_types())
        if unknown:
            raise ValueError(f"Unknown configuration key(s): {', '.join(sorted(unknown))}")
        return cls(**data)

    def set_value(self, key: str, raw: Any) -> Any:
        """
        Set one setting from a (usually string) value, coercing by field type.

        Returns:
            The coerced value now in effect

        Raises:
            ValueError: Unknown key or value that does not fit the field
        """
        types = self.field_types()
        if key not in types:
            raise ValueError(f"{key} is not a valid configuration key")

        value = coerce(raw, types[key], key)
        old = getattr(self, key)
        setattr(self, key, value)
        try:
            self.validate()
        except ValueError:
            setattr(self, key, old)
            raise
        return value


def coerce(raw: Any, kind: type, key: str = "value") -> Any:
    """Coerce raw to kind the way .setconfig expects (int/float/bool/str)."""
    if kind is bool:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"{key}: {raw!r} must be a boolean")
    if kind is int:
        if isinstance(raw, bool):
            raise ValueError(f"{key}: {raw!r} must be an integer")
        try:
            return int(str(raw).strip())
        except ValueError:
            raise ValueError(f"{key}: {raw!r} must be an integer") from None
    if kind is float:
        try:
            return float(str(raw).strip())
        except ValueError:
            raise ValueError(f"{key}: {raw!r} must be a number") from None
    return str(raw)


def load_config(path: str | Path | None = None) -> HotpatchConfig:
    """
    Load configuration from YAML.

    Args:
        path: Config file (defaults to ./hotpatch.yml). Missing file = defaults.

    Raises:
        ValueError: If the YAML is malformed or contains unknown keys
    """
    config_path = Path(path) if path is not None else Path(DEFAULT_CONFIG_FILE)
    if not config_path.exists():
        return HotpatchConfig()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse config {config_path}: {e}") from e

    if data is None:
        return HotpatchConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Config {config_path} must be a mapping")

    types = HotpatchConfig.field_types()
    coerced = {}
    for key, value in data.items():
        if key in types:
            value = coerce(value, types[key], key)
        coerced[key] = value
    return HotpatchConfig.from_dict(coerced)


def save_config(config: HotpatchConfig, path: str | Path | None = None) -> Path:
    """Write configuration to YAML atomically. Returns the path written."""
    config_path = Path(path) if path is not None else Path(DEFAULT_CONFIG_FILE)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = config_path.with_name(config_path.name + ".tmp")
    temp_path.write_text(
        yaml.safe_dump(config.to_dict(), sort_keys=False),
        encoding="utf-8",
    )
    os.replace(temp_path, config_path)
    return config_path
