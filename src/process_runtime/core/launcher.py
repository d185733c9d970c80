"""
Launcher：从 argv 启动子进程并构造 `RunningProcess`。

说明：
- 命令行（argv/cwd/env）由调用方决定；本模块不做可执行文件解析、不做 shell 语义；
- stdout/stderr 始终为 PIPE；未提供输入时 stdin 指向 devnull（子进程立刻读到 EOF）；
- POSIX 下子进程成为新 session 的 leader，便于终止时对整个进程组发信号；
- 任何 OS 层面的创建失败都转换为 `LaunchError`，不会返回 `RunningProcess`。
"""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from process_runtime.core.contracts import RunConfig, RunnerSettings, RunResult
from process_runtime.core.errors import LaunchError
from process_runtime.core.process_handle import ProcessHandle
from process_runtime.core.running_process import RunningProcess

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class ProcessLauncher:
    """
    子进程启动器（持有运行参数）。

    参数：
    - settings：缓冲大小、默认超时、终止宽限等；None 时使用默认值
    """

    def __init__(self, settings: Optional[RunnerSettings] = None) -> None:
        """创建启动器。"""

        self._settings = settings or RunnerSettings()

    @classmethod
    def from_config(cls, config: Any) -> "ProcessLauncher":
        """由 `ProcessRuntimeConfig` 构造（读取 `config.run`）。"""

        run = config.run
        return cls(
            RunnerSettings(
                default_timeout_ms=run.default_timeout_ms,
                read_chunk_bytes=run.read_chunk_bytes,
                stdin_buffer_bytes=run.stdin_buffer_bytes,
                terminate_grace_ms=run.terminate_grace_ms,
                close_join_timeout_ms=run.close_join_timeout_ms,
            )
        )

    @property
    def settings(self) -> RunnerSettings:
        """当前运行参数。"""

        return self._settings

    def start(
        self,
        cmd: Sequence[str],
        stdin: Optional[bytes] = None,
        timeout_ms: Optional[int] = None,
        *,
        timeout: Optional[timedelta] = None,
        cwd: Optional[PathLike] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> RunningProcess:
        """
        启动子进程。

        参数：
        - cmd：命令 argv（至少 1 项）
        - stdin：可选输入字节；None 表示不提供输入（与 b"" 区分）
        - timeout_ms / timeout：超时（二选一；都未给出时使用 settings.default_timeout_ms）
        - cwd：工作目录（原样传递）
        - env：追加/覆盖的环境变量（覆盖 os.environ 同名项）

        返回：
        - RunningProcess：pid 立即可用；调用方负责 `close()`（推荐 `with`）

        异常：
        - LaunchError：进程无法创建
        - ValueError：timeout 参数非法
        """

        argv = [os.fspath(part) for part in cmd]
        config = self._build_config(stdin=stdin, timeout_ms=timeout_ms, timeout=timeout)

        if not argv:
            raise LaunchError("Command must not be empty.", argv=argv)

        popen_kwargs: Dict[str, Any] = {
            "stdin": subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE,
            "bufsize": 0,
        }
        if cwd is not None:
            popen_kwargs["cwd"] = str(Path(cwd))
        if env:
            merged_env = dict(os.environ)
            merged_env.update({str(k): str(v) for k, v in env.items()})
            popen_kwargs["env"] = merged_env

        if os.name != "nt":
            popen_kwargs["start_new_session"] = True
        else:
            popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP  # type: ignore[attr-defined]

        try:
            proc = subprocess.Popen(argv, **popen_kwargs)  # noqa: S603
        except FileNotFoundError as exc:
            raise LaunchError("Executable or working directory not found.", argv=argv, details={"reason": str(exc)}) from exc
        except PermissionError as exc:
            raise LaunchError("Permission denied while starting process.", argv=argv, details={"reason": str(exc)}) from exc
        except (OSError, ValueError, subprocess.SubprocessError) as exc:
            raise LaunchError("Failed to start process.", argv=argv, details={"reason": str(exc)}) from exc

        handle = ProcessHandle(proc, argv=argv, process_group=(os.name != "nt"))
        logger.debug("Started process %s: %s", handle.pid, argv)
        return RunningProcess(handle, config, settings=self._settings)

    def run(
        self,
        cmd: Sequence[str],
        stdin: Optional[bytes] = None,
        timeout_ms: Optional[int] = None,
        **kwargs: Any,
    ) -> RunResult:
        """启动 + `wait_for` + 释放的一次性便捷调用。"""

        with self.start(cmd, stdin, timeout_ms, **kwargs) as running:
            return running.wait_for()

    def _build_config(
        self,
        *,
        stdin: Optional[bytes],
        timeout_ms: Optional[int],
        timeout: Optional[timedelta],
    ) -> RunConfig:
        """合成 RunConfig（timeout_ms 与 timeout 不可同时给出）。"""

        if timeout_ms is not None and timeout is not None:
            raise ValueError("pass either timeout_ms or timeout, not both")
        if stdin is not None:
            stdin = bytes(stdin)
        if timeout is not None:
            return RunConfig.from_timedelta(stdin=stdin, timeout=timeout)
        if timeout_ms is None:
            timeout_ms = self._settings.default_timeout_ms
        if int(timeout_ms) < 1:
            raise ValueError("timeout_ms must be >= 1")
        return RunConfig(stdin=stdin, timeout_ms=int(timeout_ms))


_DEFAULT_LAUNCHER = ProcessLauncher()


def start_process(
    cmd: Sequence[str],
    stdin: Optional[bytes] = None,
    timeout_ms: Optional[int] = None,
    *,
    timeout: Optional[timedelta] = None,
    cwd: Optional[PathLike] = None,
    env: Optional[Mapping[str, str]] = None,
) -> RunningProcess:
    """使用默认启动器启动子进程（参数语义见 `ProcessLauncher.start`）。"""

    return _DEFAULT_LAUNCHER.start(cmd, stdin, timeout_ms, timeout=timeout, cwd=cwd, env=env)


def start_process_without_stdin(
    cmd: Sequence[str],
    timeout_ms: Optional[int] = None,
    *,
    timeout: Optional[timedelta] = None,
    cwd: Optional[PathLike] = None,
    env: Optional[Mapping[str, str]] = None,
) -> RunningProcess:
    """不提供输入地启动子进程。"""

    return _DEFAULT_LAUNCHER.start(cmd, None, timeout_ms, timeout=timeout, cwd=cwd, env=env)


def run_process(
    cmd: Sequence[str],
    stdin: Optional[bytes] = None,
    timeout_ms: Optional[int] = None,
    **kwargs: Any,
) -> RunResult:
    """启动、等待并释放（参数语义见 `ProcessLauncher.start`）。"""

    return _DEFAULT_LAUNCHER.run(cmd, stdin, timeout_ms, **kwargs)
