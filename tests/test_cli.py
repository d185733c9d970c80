from __future__ import annotations

import base64
import json
import sys
from pathlib import Path
from typing import Any, Dict

from process_runtime.cli.main import main


def _parse_last_json(stdout: str) -> Dict[str, Any]:
    """解析 stdout 最后一行 JSON（CLI 约定：stdout 为单个 JSON）。"""

    text = (stdout or "").strip().splitlines()[-1]
    obj = json.loads(text)
    assert isinstance(obj, dict)
    return obj


def _cat_argv() -> list[str]:
    return [sys.executable, "-c", "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())"]


def test_cli_run_ok_with_stdin_text(capsys) -> None:  # type: ignore[no-untyped-def]
    code = main(["run", "--timeout-ms", "10000", "--stdin-text", "hello", "--", *_cat_argv()])
    payload = _parse_last_json(capsys.readouterr().out)

    assert code == 0
    assert payload["ok"] is True
    assert payload["result"]["exit_value"] == 0
    assert payload["result"]["stdout"] == "hello"
    assert base64.b64decode(payload["result"]["stdout_b64"]) == b"hello"
    assert payload["result"]["process_id"] > 0


def test_cli_run_with_stdin_file(tmp_path: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    data = tmp_path / "in.bin"
    data.write_bytes(b"\x00\x01binary")
    code = main(["run", "--stdin-file", str(data), "--", *_cat_argv()])
    payload = _parse_last_json(capsys.readouterr().out)

    assert code == 0
    assert base64.b64decode(payload["result"]["stdout_b64"]) == b"\x00\x01binary"


def test_cli_run_reports_child_exit_value(capsys) -> None:  # type: ignore[no-untyped-def]
    code = main(["run", "--", sys.executable, "-c", "import sys; sys.exit(4)"])
    payload = _parse_last_json(capsys.readouterr().out)

    assert code == 0
    assert payload["result"]["exit_value"] == 4
    assert payload["result"]["ok"] is False


def test_cli_run_timeout(capsys) -> None:  # type: ignore[no-untyped-def]
    code = main(["run", "--timeout-ms", "200", "--", sys.executable, "-c", "import time; time.sleep(10)"])
    payload = _parse_last_json(capsys.readouterr().out)

    assert code == 12
    assert payload["ok"] is False
    assert payload["error"]["error_kind"] == "timeout"


def test_cli_run_launch_error(capsys) -> None:  # type: ignore[no-untyped-def]
    code = main(["run", "--", "nonexistent-binary-xyz"])
    payload = _parse_last_json(capsys.readouterr().out)

    assert code == 10
    assert payload["error"]["error_kind"] == "launch_error"


def test_cli_run_requires_argv(capsys) -> None:  # type: ignore[no-untyped-def]
    code = main(["run"])
    payload = _parse_last_json(capsys.readouterr().out)
    assert code == 2
    assert payload["error"]["error_kind"] == "validation"


def test_cli_run_rejects_bad_timeout(capsys) -> None:  # type: ignore[no-untyped-def]
    code = main(["run", "--timeout-ms", "0", "--", *_cat_argv()])
    assert code == 2


def test_cli_config_show_applies_overlay(tmp_path: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    overlay = tmp_path / "overlay.yaml"
    overlay.write_text("run:\n  default_timeout_ms: 1234\n", encoding="utf-8")

    code = main(["config", "show", "--config", str(overlay)])
    payload = _parse_last_json(capsys.readouterr().out)

    assert code == 0
    assert payload["config"]["run"]["default_timeout_ms"] == 1234


def test_cli_invalid_config_is_config_error(tmp_path: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    overlay = tmp_path / "overlay.yaml"
    overlay.write_text("run:\n  nope: 1\n", encoding="utf-8")

    code = main(["config", "show", "--config", str(overlay)])
    payload = _parse_last_json(capsys.readouterr().out)

    assert code == 13
    assert payload["error"]["error_kind"] == "config_error"


def test_cli_usage_error_returns_2() -> None:
    assert main(["bogus"]) == 2
