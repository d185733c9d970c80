"""
超时与释放示例。

用途：
- 启动一个长时间 sleep 的子进程，并给出远小于其运行时间的 timeout；
- 演示 `RunTimeout` 的结构化信息，以及 `with` 退出后进程确实不再存活。
"""

from __future__ import annotations

import argparse
import sys

from process_runtime import RunTimeout, start_process_without_stdin
from process_runtime.core.process_handle import pid_is_running


def main() -> int:
    """脚本入口：超时 + 释放。"""

    parser = argparse.ArgumentParser(description="02_timeout_and_release")
    parser.add_argument("--workspace-root", default=".", help="Workspace root path (unused; kept for uniform invocation)")
    parser.add_argument("--timeout-ms", type=int, default=300, help="Run timeout in ms")
    args = parser.parse_args()

    argv = [sys.executable, "-c", "import time; time.sleep(10)"]
    pid = -1
    try:
        with start_process_without_stdin(argv, timeout_ms=args.timeout_ms) as running:
            pid = running.process_id
            running.wait_for()
    except RunTimeout as exc:
        print(f"[example] timeout: {exc}")
        print(f"[example] details: {exc.details}")

    alive = pid_is_running(pid)
    print(f"[example] pid {pid} still running: {alive}")
    if alive:
        return 1
    print("EXAMPLE_OK: step_by_step_02")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
