"""
核心数据契约（RunConfig / RunResult）。

说明：
- 两者均为不可变（frozen）pydantic 模型，默认拒绝未知字段；
- `RunConfig.stdin` 区分“无输入”（None）与“空输入”（b""）：两者运行时行为一致，
  但在类型上可分别表示；
- `RunResult` 仅在四个并发任务全部成功时构造（all-or-nothing），stdout/stderr 永不为 None。
"""

from __future__ import annotations

import base64
import math
from datetime import timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _decode_bytes(data: bytes) -> str:
    """将字节解码为 UTF-8 文本；非法字节替换为 U+FFFD。"""

    return data.decode("utf-8", errors="replace")


class RunConfig(BaseModel):
    """
    单次 run 的输入配置（run 开始后不可变）。

    字段：
    - stdin：可选输入字节；None 表示不提供输入
    - timeout_ms：deadline 毫秒数（从 `wait_for` 调用时刻起算）
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    stdin: Optional[bytes] = None
    timeout_ms: int = Field(ge=1)

    @classmethod
    def from_timedelta(cls, *, stdin: Optional[bytes], timeout: timedelta) -> "RunConfig":
        """
        用 `timedelta` 构造（向上取整到毫秒）。

        异常：
        - ValueError：timeout 不是正数
        """

        if timeout <= timedelta(0):
            raise ValueError(f"timeout must be positive, got {timeout!r}")
        return cls(stdin=stdin, timeout_ms=math.ceil(timeout.total_seconds() * 1000))

    @property
    def timeout_sec(self) -> float:
        """超时秒数（float）。"""

        return self.timeout_ms / 1000.0

    @property
    def has_stdin(self) -> bool:
        """是否提供了输入（空字节也算提供）。"""

        return self.stdin is not None


class RunResult(BaseModel):
    """
    命令执行结果（结构化）。

    字段说明：
    - exit_value：进程退出码（POSIX 下被信号终止时为负数）
    - stdout/stderr：完整捕获的输出字节（空流为 b""）
    - process_id：启动时记录的 pid（不会在退出后重新查询）
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    exit_value: int
    stdout: bytes
    stderr: bytes
    process_id: int

    @field_validator("stdout", "stderr", mode="before")
    @classmethod
    def reject_missing_stream(cls, value: Any) -> Any:
        """stdout/stderr 必须存在（空流用 b"" 表示）。"""

        if value is None:
            raise ValueError("stream output must not be None")
        return value

    @property
    def ok(self) -> bool:
        """退出码是否为 0。"""

        return self.exit_value == 0

    def stdout_text(self) -> str:
        """stdout 的 UTF-8 文本视图。"""

        return _decode_bytes(self.stdout)

    def stderr_text(self) -> str:
        """stderr 的 UTF-8 文本视图。"""

        return _decode_bytes(self.stderr)

    def to_payload(self) -> Dict[str, Any]:
        """
        转换为可 JSON 序列化的 dict。

        说明：
        - 原始字节以 base64 给出（`*_b64`），同时附带 UTF-8 文本视图，便于人读；
        - 字段名稳定（CLI 输出契约）。
        """

        return {
            "ok": self.ok,
            "exit_value": int(self.exit_value),
            "process_id": int(self.process_id),
            "stdout": self.stdout_text(),
            "stderr": self.stderr_text(),
            "stdout_b64": base64.b64encode(self.stdout).decode("ascii"),
            "stderr_b64": base64.b64encode(self.stderr).decode("ascii"),
        }


class RunnerSettings(BaseModel):
    """
    启动器/协调器的运行参数（通常由配置构造，见 `ProcessLauncher.from_config`）。

    字段：
    - default_timeout_ms：调用方未显式给出 timeout 时使用
    - read_chunk_bytes：stdout/stderr 单次读取的块大小（不限制总量）
    - stdin_buffer_bytes：stdin 写入缓冲大小
    - terminate_grace_ms：teardown 时 SIGTERM → SIGKILL 的宽限时间
    - close_join_timeout_ms：确认进程退出 / 等待任务线程退出的上限
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    default_timeout_ms: int = Field(default=60_000, ge=1)
    read_chunk_bytes: int = Field(default=64 * 1024, ge=1)
    stdin_buffer_bytes: int = Field(default=64 * 1024, ge=1)
    terminate_grace_ms: int = Field(default=200, ge=0)
    close_join_timeout_ms: int = Field(default=5_000, ge=0)
