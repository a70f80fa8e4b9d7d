"""Tests for configuration loading, coercion and persistence."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from hotpatch.config import HotpatchConfig, coerce, load_config, save_config


def test_defaults():
    config = HotpatchConfig()

    assert config.max_rollback_depth == 1
    assert config.backend == "sqlite"
    assert config.store_dir == ".vault"
    assert config.db_name == "codevault.db"
    assert config.archive_versions is True


def test_missing_file_gives_defaults(tmp_path: Path):
    assert load_config(tmp_path / "absent.yml") == HotpatchConfig()


def test_empty_file_gives_defaults(tmp_path: Path):
    path = tmp_path / "hotpatch.yml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == HotpatchConfig()


def test_save_and_load_round_trip(tmp_path: Path):
    config = HotpatchConfig(max_rollback_depth=5, backend="file", watch_debounce=1.5)
    path = save_config(config, tmp_path / "conf" / "hotpatch.yml")

    assert yaml.safe_load(path.read_text(encoding="utf-8"))["backend"] == "file"
    assert load_config(path) == config
    assert not path.with_name("hotpatch.yml.tmp").exists()


def test_load_coerces_string_values(tmp_path: Path):
    path = tmp_path / "hotpatch.yml"
    path.write_text("max_rollback_depth: '4'\narchive_versions: 'off'\n", encoding="utf-8")

    config = load_config(path)

    assert config.max_rollback_depth == 4
    assert config.archive_versions is False


def test_load_rejects_unknown_keys(tmp_path: Path):
    path = tmp_path / "hotpatch.yml"
    path.write_text("colour: blue\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Unknown configuration key"):
        load_config(path)


def test_load_rejects_malformed_yaml(tmp_path: Path):
    path = tmp_path / "hotpatch.yml"
    path.write_text("a: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Failed to parse"):
        load_config(path)


def test_load_rejects_non_mapping(tmp_path: Path):
    path = tmp_path / "hotpatch.yml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


@pytest.mark.parametrize(
    "key,raw,expected",
    [
        ("max_rollback_depth", "3", 3),
        ("archive_versions", "true", True),
        ("archive_versions", "0", False),
        ("archive_versions", "1", True),
        ("watch_debounce", "0.25", 0.25),
        ("store_dir", "/tmp/vault", "/tmp/vault"),
        ("backend", "file", "file"),
    ],
)
def test_set_value_coerces(key, raw, expected):
    config = HotpatchConfig()

    assert config.set_value(key, raw) == expected
    assert getattr(config, key) == expected


@pytest.mark.parametrize(
    "key,raw",
    [
        ("max_rollback_depth", "many"),
        ("max_rollback_depth", "-1"),
        ("archive_versions", "maybe"),
        ("watch_debounce", "soon"),
        ("backend", "redis"),
        ("log_level", "LOUD"),
        ("not_a_key", "1"),
    ],
)
def test_set_value_rejects_invalid(key, raw):
    config = HotpatchConfig()
    before = config.to_dict()

    with pytest.raises(ValueError):
        config.set_value(key, raw)

    assert config.to_dict() == before


def test_constructor_validates():
    with pytest.raises(ValueError):
        HotpatchConfig(max_rollback_depth=-2)
    with pytest.raises(ValueError):
        HotpatchConfig(backend="memory")


def test_coerce_rejects_bool_for_int():
    with pytest.raises(ValueError):
        coerce(True, int, "max_rollback_depth")
