"""
配置加载器（YAML）。

设计目标：
- 以内置默认配置（`process_runtime/assets/default.yaml`）为底，按顺序深度合并多个 YAML overlay（后者覆盖前者）；
- 使用 pydantic 做 schema 校验；默认拒绝未知字段（避免拼写错误被静默吞掉）；
- 任何加载/校验失败统一抛 `ConfigError`（结构化 code/message/details）。
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Iterable, Literal, Mapping, MutableMapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from process_runtime.config.defaults import load_default_config_dict
from process_runtime.core.errors import ConfigError


def _deep_merge(base: MutableMapping[str, Any], overlay: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """
    深度合并两个 dict（overlay 覆盖 base）。

    合并规则：
    - dict + dict：递归合并
    - 其它类型（含 list）：overlay 直接覆盖
    """

    for key, overlay_value in overlay.items():
        if key in base and isinstance(base[key], dict) and isinstance(overlay_value, Mapping):
            _deep_merge(base[key], overlay_value)  # type: ignore[arg-type]
            continue
        base[key] = deepcopy(overlay_value)
    return base


class ProcessRuntimeRunConfig(BaseModel):
    """run 参数（超时、缓冲、终止宽限）。"""

    model_config = ConfigDict(extra="forbid")

    default_timeout_ms: int = Field(default=60_000, ge=1)
    read_chunk_bytes: int = Field(default=64 * 1024, ge=1)
    stdin_buffer_bytes: int = Field(default=64 * 1024, ge=1)
    terminate_grace_ms: int = Field(default=200, ge=0)
    close_join_timeout_ms: int = Field(default=5_000, ge=0)


class ProcessRuntimeLoggingConfig(BaseModel):
    """日志级别（仅 CLI 入口会据此配置 handler；库本身不安装 handler）。"""

    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")


class ProcessRuntimeConfig(BaseModel):
    """配置根对象。"""

    model_config = ConfigDict(extra="forbid")

    config_version: int = Field(default=1, ge=1)
    run: ProcessRuntimeRunConfig = Field(default_factory=ProcessRuntimeRunConfig)
    logging: ProcessRuntimeLoggingConfig = Field(default_factory=ProcessRuntimeLoggingConfig)


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """读取 YAML 文件为 dict；空文件返回空 dict。"""

    if not path.exists():
        raise ConfigError("Config file not found.", details={"path": str(path)})
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError("Config file could not be loaded.", details={"path": str(path), "reason": str(exc)}) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            "Config root must be a mapping.",
            details={"path": str(path), "actual": type(data).__name__},
        )
    return data


def load_config_dicts(config_dicts: Iterable[Mapping[str, Any]], *, include_defaults: bool = True) -> ProcessRuntimeConfig:
    """
    加载并合并多个 dict 配置，返回校验后的 `ProcessRuntimeConfig`。

    参数：
    - config_dicts：按顺序做深度合并（后者覆盖前者）
    - include_defaults：是否以内置默认配置为底
    """

    merged: Dict[str, Any] = load_default_config_dict() if include_defaults else {}
    for overlay in config_dicts:
        if not overlay:
            continue
        _deep_merge(merged, overlay)
    try:
        return ProcessRuntimeConfig.model_validate(merged)
    except ValidationError as exc:
        errors = [
            {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": str(err.get("msg", ""))}
            for err in exc.errors()
        ]
        raise ConfigError("Config validation failed.", details={"errors": errors}) from exc


def load_config(config_paths: Iterable[Path]) -> ProcessRuntimeConfig:
    """
    加载并合并多个配置文件，返回校验后的 `ProcessRuntimeConfig`。

    参数：
    - config_paths：YAML 路径列表；按顺序合并（后者覆盖前者）
    """

    overlays = [_load_yaml_file(Path(path)) for path in config_paths]
    return load_config_dicts(overlays)
