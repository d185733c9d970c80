"""
gzip 往返示例。

用途：
- 把一段文本经 stdin 喂给 `gzip -c`，从 stdout 收集压缩字节；
- 在本进程内解压并校验与原文一致，演示 stdin 写入与 stdout drain 的并发协作。
"""

from __future__ import annotations

import argparse
import gzip
import shutil
import sys

from process_runtime import start_process


def _gzip_argv() -> list[str]:
    """优先使用系统 gzip；缺失时退化为 Python 实现（行为等价）。"""

    if shutil.which("gzip"):
        return ["gzip", "-c"]
    return [sys.executable, "-c", "import gzip,sys; sys.stdout.buffer.write(gzip.compress(sys.stdin.buffer.read()))"]


def main() -> int:
    """脚本入口：gzip 往返。"""

    parser = argparse.ArgumentParser(description="01_gzip_roundtrip")
    parser.add_argument("--workspace-root", default=".", help="Workspace root path (unused; kept for uniform invocation)")
    parser.add_argument("--text", default="zip me", help="Text to compress")
    args = parser.parse_args()

    with start_process(_gzip_argv(), args.text.encode("utf-8"), timeout_ms=5_000) as running:
        print(f"[example] started process with pid: {running.process_id}")
        result = running.wait_for()

    print(f"[example] exit value: {result.exit_value}")
    unzipped = gzip.decompress(result.stdout).decode("utf-8")
    print(f"[example] as expected: {unzipped == args.text}")
    if unzipped != args.text:
        return 1
    print("EXAMPLE_OK: step_by_step_01")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
