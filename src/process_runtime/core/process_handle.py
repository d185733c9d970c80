"""
ProcessHandle：对单个 `subprocess.Popen` 的独占封装。

职责：
- 记录启动时 pid（之后不再重新查询，避免 pid 回收导致的歧义）
- 暴露 stdin/stdout/stderr 三个原始 channel
- 提供 wait / kill（强制）/ terminate（SIGTERM → grace → SIGKILL）

说明：
- POSIX 下子进程以新 session 启动（进程组 leader），kill/terminate 对整个进程组发信号；
- leader 被回收后，组内残留成员（后台子进程）仍可能持有 stdout/stderr，因此进程组模式下
  kill 不以 leader 存活为前提；组内仍有成员时进程组 id 不会被复用；
- 非进程组模式下仅在 leader 尚未被回收时发信号，避免向已回收（可能被复用）的 pid 发信号。
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from pathlib import Path
from typing import IO, Optional, Sequence

logger = logging.getLogger(__name__)


class ProcessHandle:
    """活动子进程句柄（由 `RunningProcess` 独占持有）。"""

    def __init__(self, proc: "subprocess.Popen[bytes]", *, argv: Sequence[str], process_group: bool = False) -> None:
        """
        包装一个已启动的 Popen。

        参数：
        - proc：已启动的子进程（stdout/stderr 必须为 PIPE，bufsize=0）
        - argv：启动所用命令（仅用于日志/诊断）
        - process_group：子进程是否以 `start_new_session=True` 启动（pgid == pid）
        """

        self._proc = proc
        self._pid = int(proc.pid)
        self._argv = tuple(argv)
        self._process_group = bool(process_group)

    @property
    def pid(self) -> int:
        """启动时记录的 pid。"""

        return self._pid

    @property
    def argv(self) -> tuple[str, ...]:
        """启动命令。"""

        return self._argv

    @property
    def stdin(self) -> Optional[IO[bytes]]:
        """stdin 原始 channel；未提供输入时为 None（子进程 stdin 指向 devnull）。"""

        return self._proc.stdin

    @property
    def stdout(self) -> Optional[IO[bytes]]:
        """stdout 原始 channel。"""

        return self._proc.stdout

    @property
    def stderr(self) -> Optional[IO[bytes]]:
        """stderr 原始 channel。"""

        return self._proc.stderr

    @property
    def returncode(self) -> Optional[int]:
        """已知的退出码（尚未回收时为 None；不会触发 poll）。"""

        return self._proc.returncode

    def wait(self, timeout: Optional[float] = None) -> int:
        """
        阻塞等待进程退出并返回退出码。

        异常：
        - subprocess.TimeoutExpired：给定 timeout 到期时进程仍在运行
        """

        return int(self._proc.wait(timeout=timeout))

    @property
    def process_group(self) -> bool:
        """是否以独立进程组启动。"""

        return self._process_group

    def is_running(self) -> bool:
        """进程是否仍在运行（会回收已退出的进程）。"""

        return self._proc.poll() is None

    def kill(self) -> None:
        """
        强制终止（SIGKILL）。

        - 进程组模式：总是对整个组发信号，leader 已被回收时仍会清理组内残留成员
        - 否则：进程已退出时为 no-op
        """

        if self._process_group:
            self._signal_group(signal.SIGKILL)
            return
        if self.is_running():
            self._proc.kill()

    def terminate(self, grace_sec: float) -> bool:
        """
        温和终止：SIGTERM → (grace) → SIGKILL。

        leader 确认退出后，进程组模式下再对组补发一次 SIGKILL，清理残留成员。

        返回：
        - bool：leader 是否已确认退出

        异常：
        - OSError：信号发送被拒绝（例如 PermissionError）；由调用方决定是否吞掉
        """

        if not self.is_running():
            self.kill()
            return True

        if self._process_group:
            self._signal_group(signal.SIGTERM)
        else:
            self._proc.terminate()

        try:
            self._proc.wait(timeout=max(0.0, grace_sec))
        except subprocess.TimeoutExpired:
            pass
        self.kill()

        try:
            self._proc.wait(timeout=max(0.0, grace_sec))
            return True
        except subprocess.TimeoutExpired:
            logger.warning("Process %s still running after SIGKILL", self._pid)
            return False

    def _signal_group(self, sig: int) -> None:
        """向进程组发送信号；组已不存在时为 no-op，无权限时退化为只向 leader 发送。"""

        try:
            os.killpg(self._pid, sig)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            # 进程组中含有无权限的成员；退化为只终止 leader
            logger.debug("killpg(%s, %s) denied; signalling leader only", self._pid, sig)
        if self.is_running():
            try:
                self._proc.send_signal(sig)
            except ProcessLookupError:
                return


def pid_is_running(pid: int) -> bool:
    """
    OS 层面的存活查询（仅 POSIX）。

    说明：
    - 僵尸进程（已退出未回收）视为“未运行”；
    - 对无权限发信号的进程（PermissionError）视为存活；
    - Windows 上 `os.kill(pid, 0)` 会终止目标进程，因此直接抛 NotImplementedError。
    """

    if os.name == "nt":
        raise NotImplementedError("pid_is_running is only supported on POSIX")
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True

    status = Path("/proc") / str(pid) / "status"
    try:
        for line in status.read_text(encoding="utf-8").splitlines():
            if line.startswith("State:"):
                return "Z" not in line.split(":", 1)[1].split()[0]
    except OSError:
        pass
    return True
