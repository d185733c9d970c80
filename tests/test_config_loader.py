from __future__ import annotations

from pathlib import Path

import pytest

from process_runtime.config.defaults import load_default_config_dict
from process_runtime.config.loader import load_config, load_config_dicts
from process_runtime.core.errors import ConfigError
from process_runtime.core.launcher import ProcessLauncher


def test_default_config_is_valid() -> None:
    raw = load_default_config_dict()
    assert raw["config_version"] == 1

    cfg = load_config([])
    assert cfg.run.default_timeout_ms == 60_000
    assert cfg.run.read_chunk_bytes == 65_536
    assert cfg.logging.level == "WARNING"


def test_overlays_are_deep_merged_in_order(tmp_path: Path) -> None:
    a = tmp_path / "a.yaml"
    b = tmp_path / "b.yaml"
    a.write_text("run:\n  default_timeout_ms: 1000\n  terminate_grace_ms: 50\n", encoding="utf-8")
    b.write_text("run:\n  default_timeout_ms: 2000\nlogging:\n  level: DEBUG\n", encoding="utf-8")

    cfg = load_config([a, b])

    assert cfg.run.default_timeout_ms == 2000
    assert cfg.run.terminate_grace_ms == 50
    assert cfg.run.read_chunk_bytes == 65_536
    assert cfg.logging.level == "DEBUG"


def test_empty_overlay_file_is_ignored(tmp_path: Path) -> None:
    p = tmp_path / "empty.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config([p]).run.default_timeout_ms == 60_000


def test_unknown_field_is_rejected() -> None:
    with pytest.raises(ConfigError) as ei:
        load_config_dicts([{"run": {"default_timeout": 5}}])
    assert ei.value.code == "CONFIG_ERROR"
    assert ei.value.details["errors"]


def test_invalid_value_is_rejected() -> None:
    with pytest.raises(ConfigError):
        load_config_dicts([{"run": {"read_chunk_bytes": 0}}])


def test_missing_file_is_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as ei:
        load_config([tmp_path / "missing.yaml"])
    assert ei.value.details["path"].endswith("missing.yaml")


def test_non_mapping_root_is_config_error(tmp_path: Path) -> None:
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config([p])


def test_launcher_from_config_uses_run_settings() -> None:
    cfg = load_config_dicts([{"run": {"default_timeout_ms": 1234, "read_chunk_bytes": 4096}}])
    launcher = ProcessLauncher.from_config(cfg)

    assert launcher.settings.default_timeout_ms == 1234
    assert launcher.settings.read_chunk_bytes == 4096
