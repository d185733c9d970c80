"""
Process Runtime CLI（run / config）。

约束：
- 使用 argparse（不引入第三方 CLI 依赖）
- stdout 输出机器可读 JSON（单个对象）；失败时也输出 JSON
- 日志写 stderr，级别取自配置 `logging.level`（可用 `--log-level` 覆盖）

exit code 约定：
- 0：子进程已运行完成（无论子进程自身退出码为何；见 payload.result.exit_value）
- 2：参数错误
- 10：launch_error / 11：task_failure / 12：timeout / 13：config_error / 1：其它
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from process_runtime.config.loader import ProcessRuntimeConfig, load_config
from process_runtime.core.errors import ConfigError
from process_runtime.core.launcher import ProcessLauncher
from process_runtime.core.run_errors import RunErrorKind, classify_run_exception

_EXIT_CODES: Dict[RunErrorKind, int] = {
    RunErrorKind.LAUNCH_ERROR: 10,
    RunErrorKind.TASK_FAILURE: 11,
    RunErrorKind.TIMEOUT: 12,
    RunErrorKind.CONFIG_ERROR: 13,
    RunErrorKind.UNKNOWN: 1,
}


def _dump_json_to_stdout(obj: Dict[str, Any], *, pretty: bool) -> None:
    """
    将 dict 输出为 JSON 到 stdout（末尾包含换行）。

    参数：
    - obj：待输出对象（必须可 JSON dumps）
    - pretty：是否启用 pretty-print（indent=2）
    """

    if pretty:
        text = json.dumps(obj, ensure_ascii=False, indent=2)
    else:
        text = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    print(text)


def _emit_error(exc: BaseException, *, pretty: bool) -> int:
    """输出失败 payload 并返回对应 exit code。"""

    err = classify_run_exception(exc)
    _dump_json_to_stdout({"ok": False, "error": err.to_payload()}, pretty=pretty)
    return _EXIT_CODES.get(err.error_kind, 1)


def _configure_logging(config: ProcessRuntimeConfig, override: Optional[str]) -> None:
    """按配置（或命令行覆盖）初始化 stderr 日志。"""

    level = (override or config.logging.level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _read_stdin_payload(args: argparse.Namespace) -> Optional[bytes]:
    """解析 `--stdin-text` / `--stdin-file`；都未给出时返回 None（不提供输入）。"""

    if args.stdin_text is not None:
        return str(args.stdin_text).encode("utf-8")
    if args.stdin_file is None:
        return None
    if args.stdin_file == "-":
        return sys.stdin.buffer.read()
    return Path(args.stdin_file).expanduser().read_bytes()


def _strip_separator(argv: List[str]) -> List[str]:
    """去掉 REMAINDER 开头的 `--`。"""

    if argv and argv[0] == "--":
        return argv[1:]
    return argv


def _handle_run(args: argparse.Namespace, config: ProcessRuntimeConfig) -> int:
    """`run` 子命令：启动命令、等待并输出 RunResult。"""

    cmd = _strip_separator(list(args.argv or []))
    if not cmd:
        _dump_json_to_stdout(
            {"ok": False, "error": {"error_kind": "validation", "message": "command argv is required (use `--` before argv)"}},
            pretty=args.pretty,
        )
        return 2

    if args.timeout_ms is not None and args.timeout_ms < 1:
        _dump_json_to_stdout(
            {"ok": False, "error": {"error_kind": "validation", "message": "--timeout-ms must be >= 1"}},
            pretty=args.pretty,
        )
        return 2

    try:
        stdin = _read_stdin_payload(args)
    except OSError as exc:
        _dump_json_to_stdout(
            {"ok": False, "error": {"error_kind": "validation", "message": f"stdin file could not be read: {exc}"}},
            pretty=args.pretty,
        )
        return 2

    launcher = ProcessLauncher.from_config(config)
    try:
        result = launcher.run(cmd, stdin, args.timeout_ms, cwd=args.cwd)
    except Exception as exc:
        return _emit_error(exc, pretty=args.pretty)

    _dump_json_to_stdout({"ok": True, "result": result.to_payload()}, pretty=args.pretty)
    return 0


def _handle_config_show(args: argparse.Namespace, config: ProcessRuntimeConfig) -> int:
    """`config show` 子命令：输出生效配置。"""

    _dump_json_to_stdout({"ok": True, "config": config.model_dump()}, pretty=args.pretty)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """构造 argparse parser。"""

    parser = argparse.ArgumentParser(prog="process-runtime", description="Run a child process and collect its output.")
    root_sub = parser.add_subparsers(dest="command", required=True)

    def _add_common(p: argparse.ArgumentParser) -> None:
        """公共参数。"""

        p.add_argument("--config", action="append", default=[], help="Overlay config YAML path (repeatable).")
        p.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
        p.add_argument("--log-level", default=None, help="Override logging.level (DEBUG|INFO|WARNING|ERROR).")

    run_p = root_sub.add_parser("run", help="Run a command and print its result as JSON")
    _add_common(run_p)
    run_p.add_argument("--timeout-ms", type=int, default=None, help="Timeout in ms (>=1; default from config).")
    group = run_p.add_mutually_exclusive_group()
    group.add_argument("--stdin-text", default=None, help="UTF-8 text to feed to the child's stdin.")
    group.add_argument("--stdin-file", default=None, help="File whose bytes feed the child's stdin ('-' = our stdin).")
    run_p.add_argument("--cwd", default=None, help="Working directory for the child.")
    run_p.add_argument("argv", nargs=argparse.REMAINDER, help="Command argv; use `--` before argv.")

    config_p = root_sub.add_parser("config", help="Configuration commands")
    config_sub = config_p.add_subparsers(dest="config_cmd", required=True)
    show = config_sub.add_parser("show", help="Print the effective configuration")
    _add_common(show)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI 入口函数（用于 console_scripts 与测试）。

    参数：
    - argv：命令行参数列表（不含程序名）；为 None 时读取 sys.argv[1:]。

    返回：
    - int：exit code（不会直接 sys.exit，便于测试）。
    """

    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:
        # argparse 的约定：`--help` → 0；参数错误 → 2
        code = getattr(exc, "code", 2)
        if code is None:
            return 2
        return int(code)

    try:
        config = load_config([Path(p).expanduser() for p in args.config])
    except ConfigError as exc:
        return _emit_error(exc, pretty=args.pretty)

    _configure_logging(config, args.log_level)

    if args.command == "run":
        return _handle_run(args, config)
    if args.command == "config" and args.config_cmd == "show":
        return _handle_config_show(args, config)

    parser.print_help(sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
