"""
Run 失败错误类型化（RunErrorKind / RunError）。

用途：
- 把 `start_process` / `wait_for` 抛出的异常映射为稳定、机器可消费的结构；
- CLI 失败输出与上层集成方共用同一份 payload 字段名。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from process_runtime.core.errors import ConfigError, FrameworkError, LaunchError, RunTimeout, TaskFailure


class RunErrorKind(str, Enum):
    """run 失败的稳定错误分类。"""

    LAUNCH_ERROR = "launch_error"
    TASK_FAILURE = "task_failure"
    TIMEOUT = "timeout"
    CONFIG_ERROR = "config_error"

    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RunError:
    """
    RunError：结构化运行错误。

    字段：
    - error_kind：稳定分类
    - message：可读错误消息
    - retryable：是否建议上层重试（本库自身从不重试）
    - details：可选；结构化上下文（必须可 JSON 序列化）
    """

    error_kind: RunErrorKind
    message: str
    retryable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """转换为 payload dict（稳定字段名）。"""

        out: Dict[str, Any] = {
            "error_kind": str(self.error_kind.value),
            "message": str(self.message or ""),
            "retryable": bool(self.retryable),
        }
        if self.details:
            out["details"] = dict(self.details)
        return out


def classify_run_exception(exc: BaseException) -> RunError:
    """
    将运行时异常映射为结构化 RunError。

    约束：
    - 子类判断先于 `FrameworkError` 兜底；
    - 超时被视为可重试（由调用方决定是否放宽 timeout 再试），其余均不可重试。
    """

    if isinstance(exc, RunTimeout):
        return RunError(error_kind=RunErrorKind.TIMEOUT, message=exc.message, retryable=True, details=dict(exc.details))

    if isinstance(exc, TaskFailure):
        return RunError(error_kind=RunErrorKind.TASK_FAILURE, message=exc.message, retryable=False, details=dict(exc.details))

    if isinstance(exc, LaunchError):
        return RunError(error_kind=RunErrorKind.LAUNCH_ERROR, message=exc.message, retryable=False, details=dict(exc.details))

    if isinstance(exc, ConfigError):
        return RunError(error_kind=RunErrorKind.CONFIG_ERROR, message=exc.message, retryable=False, details=dict(exc.details))

    if isinstance(exc, FrameworkError):
        return RunError(
            error_kind=RunErrorKind.UNKNOWN,
            message=str(exc),
            retryable=False,
            details={"framework_code": exc.code, "framework_details": dict(exc.details)},
        )

    return RunError(error_kind=RunErrorKind.UNKNOWN, message=f"{type(exc).__name__}: {exc}", retryable=False)
