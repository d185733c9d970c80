"""配置加载（YAML overlay + pydantic 校验）。"""

from __future__ import annotations

from process_runtime.config.loader import ProcessRuntimeConfig, load_config, load_config_dicts

__all__ = ["ProcessRuntimeConfig", "load_config", "load_config_dicts"]
