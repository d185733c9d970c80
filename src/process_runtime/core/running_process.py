"""
RunningProcess：并发 run-and-collect 协调器。

`wait_for()` 在同一个 ProcessHandle 上并发执行四个任务，并在同一个 deadline 下 join：
1) stdin：写入输入字节（缓冲写）后关闭 channel，向子进程发出 EOF
2) stdout：读到 EOF 并累积全部字节
3) stderr：同上（独立 channel、独立缓冲；必须与 stdout 并发，避免管道写满导致死锁）
4) exit：等待进程退出并返回退出码

失败策略（fail-fast）：
- 任一任务失败 → scope shutdown（kill 子进程以解除其它任务的阻塞）→ `TaskFailure`
- deadline 到期 → 同样 shutdown，确认进程已退出后抛 `RunTimeout`
- 全部成功 → `RunResult`（pid 使用启动时记录的值）

生命周期：
- 每个实例只允许调用一次 `wait_for()`；重复调用属于调用方错误（RuntimeError）
- `close()` / `release()` 幂等，且永不抛出；推荐使用 `with` 语句保证释放
- `wait_for()` 期间另一线程调用 `close()`：`wait_for()` 抛 `TaskFailure`，不返回结果
"""

from __future__ import annotations

import io
import logging
import subprocess
import threading
import time
from typing import IO, Optional

from process_runtime.core.contracts import RunConfig, RunnerSettings, RunResult
from process_runtime.core.errors import RunTimeout, TaskFailure
from process_runtime.core.process_handle import ProcessHandle
from process_runtime.core.task_scope import TaskScope

logger = logging.getLogger(__name__)


class RunningProcess:
    """已启动子进程的协调器（由 `start_process` 构造）。"""

    def __init__(self, handle: ProcessHandle, config: RunConfig, *, settings: Optional[RunnerSettings] = None) -> None:
        """
        接管 handle 的所有权。

        参数：
        - handle：刚启动的进程句柄（不得与其它实例共享）
        - config：本次 run 的输入与超时
        - settings：读写缓冲、终止宽限等运行参数
        """

        self._handle = handle
        self._config = config
        self._settings = settings or RunnerSettings()
        self._scope = TaskScope(name=f"proc-{handle.pid}", on_shutdown=self._kill_for_shutdown)
        self._lock = threading.Lock()
        self._waited = False
        self._closed = False

    @property
    def process_id(self) -> int:
        """启动时记录的 pid（启动后即可用）。"""

        return self._handle.pid

    @property
    def handle(self) -> ProcessHandle:
        """底层进程句柄（只读访问；所有权仍归本实例）。"""

        return self._handle

    @property
    def config(self) -> RunConfig:
        """本次 run 的配置。"""

        return self._config

    @property
    def closed(self) -> bool:
        """是否已释放。"""

        return self._closed

    def wait_for(self) -> RunResult:
        """
        并发执行四个任务并在 deadline 内收集结果。

        返回：
        - RunResult：四个任务全部成功时返回

        异常：
        - TaskFailure：任一任务失败（其余任务已被取消，进程已被 kill）
        - RunTimeout：deadline 到期（进程已确认退出或已做有上限的终止尝试）
        - RuntimeError：实例已释放，或 `wait_for()` 被重复调用
        """

        with self._lock:
            if self._closed:
                raise RuntimeError("RunningProcess is already closed")
            if self._waited:
                raise RuntimeError("wait_for() may only be called once per RunningProcess")
            self._waited = True

        deadline = time.monotonic() + self._config.timeout_sec
        handle = self._handle

        self._scope.fork("stdin", self._write_stdin)
        stdout = self._scope.fork("stdout", lambda: self._drain(handle.stdout))
        stderr = self._scope.fork("stderr", lambda: self._drain(handle.stderr))
        exit_value = self._scope.fork("exit", handle.wait)

        try:
            self._scope.join_until(deadline)
        except TimeoutError:
            pending = self._scope.pending()
            logger.debug("Process %s timed out; pending tasks: %s", self.process_id, pending)
            self._scope.shutdown()
            self._confirm_terminated()
            raise RunTimeout(timeout_ms=self._config.timeout_ms, process_id=self.process_id, pending=pending) from None

        failure = self._scope.first_failure()
        if failure is not None:
            task_name, cause = failure
            self._confirm_terminated()
            raise TaskFailure(task_name=task_name, cause=cause, process_id=self.process_id)

        with self._lock:
            released = self._closed
        if released or self._scope.is_shutdown:
            # _closed 先于 release 的任何终止信号置位
            self._scope.shutdown()
            pending = self._scope.pending()
            self._confirm_terminated()
            raise TaskFailure(
                task_name=pending[0] if pending else "scope",
                cause=RuntimeError("task cancelled before completion"),
                process_id=self.process_id,
            )

        return RunResult(
            exit_value=exit_value.get(),
            stdout=stdout.get(),
            stderr=stderr.get(),
            process_id=self.process_id,
        )

    def _write_stdin(self) -> None:
        """stdin 任务：缓冲写入全部输入后关闭 channel；未提供输入时为 no-op。"""

        raw = self._handle.stdin
        if raw is None:
            return None

        payload = self._config.stdin
        with io.BufferedWriter(raw, buffer_size=self._settings.stdin_buffer_bytes) as writer:  # type: ignore[arg-type]
            if payload:
                writer.write(payload)
        return None

    def _drain(self, raw: Optional[IO[bytes]]) -> bytes:
        """drain 任务：读到 EOF 并返回全部字节；结束时关闭 channel。"""

        if raw is None:
            return b""

        chunk_size = self._settings.read_chunk_bytes
        buf = bytearray()
        with io.BufferedReader(raw, buffer_size=chunk_size) as reader:  # type: ignore[arg-type]
            while True:
                chunk = reader.read1(chunk_size)
                if not chunk:
                    break
                buf.extend(chunk)
        return bytes(buf)

    def _kill_for_shutdown(self) -> None:
        """scope shutdown 回调：强制 kill，使阻塞的 read/write/wait 返回。"""

        logger.debug("Killing process %s to cancel pending tasks", self.process_id)
        self._handle.kill()

    def _confirm_terminated(self) -> None:
        """有上限地等待进程真正退出（kill 已在 shutdown 时发出）。"""

        try:
            self._handle.wait(timeout=self._settings.close_join_timeout_ms / 1000.0)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s did not exit after kill", self.process_id)

    def close(self) -> None:
        """
        释放（幂等，永不抛出）。

        行为：
        - 进程仍存活时请求 OS 终止（SIGTERM → grace → SIGKILL）；失败仅记录日志
        - 关闭 task scope：取消并等待全部任务线程退出（有上限）
        """

        with self._lock:
            if self._closed:
                return
            self._closed = True

        try:
            self._handle.terminate(self._settings.terminate_grace_ms / 1000.0)
        except Exception:
            logger.warning("Failed to terminate process %s during release", self.process_id, exc_info=True)

        try:
            self._scope.close(join_timeout=self._settings.close_join_timeout_ms / 1000.0)
        except Exception:
            logger.warning("Failed to close task scope of process %s", self.process_id, exc_info=True)

        self._close_unused_channels()

    release = close

    def _close_unused_channels(self) -> None:
        """关闭从未被任务接管的 channel（例如从未调用 `wait_for` 时）。"""

        if self._waited:
            return
        for stream in (self._handle.stdin, self._handle.stdout, self._handle.stderr):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError:
                logger.debug("Failed to close channel of process %s", self.process_id, exc_info=True)

    def __enter__(self) -> "RunningProcess":
        """进入 `with` 作用域。"""

        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        """离开作用域时释放（不吞掉正在传播的异常）。"""

        self.close()

    def __repr__(self) -> str:
        """调试用表示。"""

        return f"RunningProcess(pid={self.process_id}, timeout_ms={self._config.timeout_ms}, closed={self._closed})"
