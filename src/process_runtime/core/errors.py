"""
进程运行时错误分类（异常类型）。

说明：
- 所有对外异常均继承 `FrameworkError`，携带稳定的英文 `code/message/details`；
- `LaunchError`：进程无法创建（可执行文件缺失、权限不足、资源耗尽等）；
- `TaskFailure`：四个并发任务之一失败（channel I/O 错误等），携带首个原因；
- `RunTimeout`：deadline 到期前任务未全部完成（抛出前进程已被终止）；
- teardown 阶段的失败不会以异常形式出现（见 `RunningProcess.close`）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class ProcessRuntimeError(Exception):
    """运行时内部错误基类（不建议直接抛出）。"""


@dataclass(frozen=True)
class FrameworkIssue:
    """结构化问题对象（可用于 CLI JSON 输出）。"""

    code: str
    message: str
    details: Dict[str, Any]


class FrameworkError(ProcessRuntimeError):
    """框架层结构化错误（英文 `code/message/details`）。"""

    def __init__(self, *, code: str, message: str, details: Dict[str, Any] | None = None) -> None:
        """创建框架错误。

        参数：
        - `code`：稳定错误码（英文大写下划线）
        - `message`：英文错误消息
        - `details`：结构化上下文信息（必须可 JSON 序列化）
        """

        super().__init__(message)
        self.code = code
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def __str__(self) -> str:
        """返回用于日志的字符串表示。"""

        return f"{self.code}: {self.message}"

    def to_issue(self) -> FrameworkIssue:
        """把异常转换为可序列化问题对象。"""

        return FrameworkIssue(code=self.code, message=self.message, details=dict(self.details))


class LaunchError(FrameworkError):
    """OS 无法创建子进程。"""

    def __init__(self, message: str, *, argv: list[str], details: Dict[str, Any] | None = None) -> None:
        """
        创建 `LaunchError`。

        参数：
        - `message`：可读错误信息
        - `argv`：尝试启动的命令（写入 details，便于排障）
        - `details`：额外上下文
        """

        merged: Dict[str, Any] = {"argv": list(argv)}
        merged.update(details or {})
        super().__init__(code="LAUNCH_ERROR", message=message, details=merged)
        self.argv = list(argv)


class TaskFailure(FrameworkError):
    """
    并发任务失败（fail-fast：兄弟任务已被取消）。

    原始异常通过 `cause` 与 `__cause__` 同时暴露。
    """

    def __init__(self, *, task_name: str, cause: BaseException, process_id: Optional[int] = None) -> None:
        """
        创建 `TaskFailure`。

        参数：
        - `task_name`：失败任务名（stdin/stdout/stderr/exit）
        - `cause`：首个观测到的失败原因
        - `process_id`：可选；关联进程 pid
        """

        details: Dict[str, Any] = {"task": task_name, "cause": f"{type(cause).__name__}: {cause}"}
        if process_id is not None:
            details["process_id"] = int(process_id)
        super().__init__(code="TASK_FAILURE", message=f"Task {task_name!r} failed.", details=details)
        self.task_name = task_name
        self.cause = cause
        self.process_id = process_id
        self.__cause__ = cause


class RunTimeout(FrameworkError):
    """deadline 到期；抛出时进程已被强制终止。"""

    def __init__(self, *, timeout_ms: int, process_id: Optional[int] = None, pending: list[str] | None = None) -> None:
        """
        创建 `RunTimeout`。

        参数：
        - `timeout_ms`：本次 run 的超时毫秒数
        - `process_id`：可选；关联进程 pid
        - `pending`：deadline 到期时仍未完成的任务名
        """

        details: Dict[str, Any] = {"timeout_ms": int(timeout_ms), "pending": list(pending or [])}
        if process_id is not None:
            details["process_id"] = int(process_id)
        super().__init__(code="RUN_TIMEOUT", message=f"Run did not finish within {int(timeout_ms)} ms.", details=details)
        self.timeout_ms = int(timeout_ms)
        self.process_id = process_id
        self.pending = list(pending or [])


class ConfigError(FrameworkError):
    """配置加载/校验失败。"""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        """创建 `ConfigError`（code 固定为 `CONFIG_ERROR`）。"""

        super().__init__(code="CONFIG_ERROR", message=message, details=details or {})
