"""
Process Runtime SDK（Python）。

说明：
- 启动子进程、（可选）写入输入、并发 drain stdout/stderr、在 deadline 内等待退出；
- 返回退出码/stdout/stderr/pid，并保证在成功与失败路径上都终止进程、结束全部辅助任务。

最小用法：

    with start_process(["gzip", "-c"], b"zip me", timeout_ms=5_000) as running:
        result = running.wait_for()
"""

from __future__ import annotations

from process_runtime.core.contracts import RunConfig, RunnerSettings, RunResult
from process_runtime.core.errors import (
    ConfigError,
    FrameworkError,
    LaunchError,
    ProcessRuntimeError,
    RunTimeout,
    TaskFailure,
)
from process_runtime.core.launcher import (
    ProcessLauncher,
    run_process,
    start_process,
    start_process_without_stdin,
)
from process_runtime.core.running_process import RunningProcess

__all__ = [
    "ConfigError",
    "FrameworkError",
    "LaunchError",
    "ProcessLauncher",
    "ProcessRuntimeError",
    "RunConfig",
    "RunResult",
    "RunTimeout",
    "RunnerSettings",
    "RunningProcess",
    "TaskFailure",
    "__version__",
    "run_process",
    "start_process",
    "start_process_without_stdin",
]

__version__ = "0.1.0"
