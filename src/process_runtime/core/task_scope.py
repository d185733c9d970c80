"""
TaskScope：结构化 fork/join（shutdown-on-failure 语义）。

语义：
- `fork(name, fn)` 在独立 OS 线程中执行 fn；
- 任一任务抛出异常时记录首个失败并触发 `shutdown()`（只会发生一次）；
- `shutdown()` 调用 `on_shutdown` 回调（例如 kill 子进程），用于解除兄弟任务在阻塞 syscall 上的等待；
- `join_until(deadline)` 阻塞到“全部完成 / 已 shutdown / deadline 到期”之一；
- `close()` 幂等：shutdown 后 join 所有线程（有上限），保证 scope 退出后不再有活动任务。

约束：
- 线程无法被强制中断，取消只能依赖 `on_shutdown` 让阻塞调用返回；
- shutdown 之后发生的任务异常不再记为失败（它们通常是取消的副作用）。
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SubtaskState(str, enum.Enum):
    """子任务状态。"""

    UNAVAILABLE = "unavailable"
    SUCCESS = "success"
    FAILED = "failed"


class Subtask(Generic[T]):
    """fork 返回的子任务句柄。"""

    def __init__(self, name: str) -> None:
        """创建尚未完成的子任务。"""

        self.name = name
        self._state = SubtaskState.UNAVAILABLE
        self._result: Optional[T] = None
        self._exception: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SubtaskState:
        """当前状态。"""

        return self._state

    def get(self) -> T:
        """
        返回成功结果。

        异常：
        - RuntimeError：任务未成功完成
        """

        if self._state is not SubtaskState.SUCCESS:
            raise RuntimeError(f"subtask {self.name!r} has no result (state={self._state.value})")
        return self._result  # type: ignore[return-value]

    def exception(self) -> Optional[BaseException]:
        """失败原因（未失败时为 None）。"""

        return self._exception


class TaskScope:
    """
    shutdown-on-failure 任务作用域。

    参数：
    - name：作用域名（用于线程命名与日志）
    - on_shutdown：shutdown 时调用一次的回调；异常会被记录但不会传播
    """

    def __init__(self, *, name: str, on_shutdown: Optional[Callable[[], None]] = None) -> None:
        """创建空作用域。"""

        self._name = name
        self._on_shutdown = on_shutdown
        self._cond = threading.Condition()
        self._subtasks: List[Subtask] = []
        self._done = 0
        self._shutdown = False
        self._closed = False
        self._failure: Optional[Tuple[str, BaseException]] = None

    @property
    def is_shutdown(self) -> bool:
        """是否已 shutdown。"""

        with self._cond:
            return self._shutdown

    def fork(self, name: str, fn: Callable[[], T]) -> Subtask[T]:
        """
        在新线程中启动任务。

        说明：
        - scope 已 shutdown 时任务不会被启动（状态保持 UNAVAILABLE）；
        - scope 已 close 时抛 RuntimeError。
        """

        subtask: Subtask[T] = Subtask(name)
        with self._cond:
            if self._closed:
                raise RuntimeError(f"task scope {self._name!r} is closed")
            if self._shutdown:
                return subtask
            self._subtasks.append(subtask)

        thread = threading.Thread(
            target=self._run,
            args=(subtask, fn),
            name=f"{self._name}-{name}",
            daemon=True,
        )
        subtask._thread = thread
        thread.start()
        return subtask

    def _run(self, subtask: Subtask[T], fn: Callable[[], T]) -> None:
        """线程体：执行 fn 并记录结果；失败时触发 shutdown。"""

        failed = False
        try:
            result = fn()
        except BaseException as exc:  # noqa: BLE001
            with self._cond:
                subtask._exception = exc
                subtask._state = SubtaskState.FAILED
                if not self._shutdown and self._failure is None:
                    self._failure = (subtask.name, exc)
                    failed = True
                    logger.debug("Task %s failed: %r", subtask.name, exc)
                self._done += 1
                self._cond.notify_all()
        else:
            with self._cond:
                subtask._result = result
                subtask._state = SubtaskState.SUCCESS
                self._done += 1
                self._cond.notify_all()

        if failed:
            self.shutdown()

    def shutdown(self) -> None:
        """触发取消（至多一次）：标记 shutdown 并调用 `on_shutdown`。"""

        with self._cond:
            if self._shutdown:
                return
            self._shutdown = True
            self._cond.notify_all()

        if self._on_shutdown is None:
            return
        try:
            self._on_shutdown()
        except Exception:
            logger.warning("Task scope %s: shutdown callback failed", self._name, exc_info=True)

    def join_until(self, deadline: float) -> None:
        """
        等待全部任务完成或 scope 被 shutdown。

        参数：
        - deadline：`time.monotonic()` 时间基准下的绝对截止时刻

        异常：
        - TimeoutError：deadline 到期（此时 scope 尚未 shutdown，由调用方决定如何取消）
        """

        with self._cond:
            while not self._shutdown and self._done < len(self._subtasks):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"task scope {self._name!r} deadline elapsed")
                self._cond.wait(remaining)

    def first_failure(self) -> Optional[Tuple[str, BaseException]]:
        """首个失败（任务名, 异常）；无失败时为 None。"""

        with self._cond:
            return self._failure

    def pending(self) -> List[str]:
        """尚未完成的任务名。"""

        with self._cond:
            return [s.name for s in self._subtasks if s.state is SubtaskState.UNAVAILABLE]

    def close(self, *, join_timeout: Optional[float] = None) -> None:
        """
        关闭作用域：shutdown 并等待所有线程退出（幂等）。

        参数：
        - join_timeout：所有线程共享的等待上限（秒）；None 表示无限等待
        """

        with self._cond:
            if self._closed:
                return
            self._closed = True
            subtasks = list(self._subtasks)

        self.shutdown()

        deadline = None if join_timeout is None else time.monotonic() + max(0.0, join_timeout)
        for subtask in subtasks:
            thread = subtask._thread
            if thread is None:
                continue
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
            if thread.is_alive():
                logger.warning("Task scope %s: task %s did not exit after cancellation", self._name, subtask.name)
