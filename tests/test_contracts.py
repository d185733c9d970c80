from __future__ import annotations

import base64
from datetime import timedelta

import pytest
from pydantic import ValidationError

from process_runtime.core.contracts import RunConfig, RunnerSettings, RunResult


def test_run_result_rejects_missing_streams() -> None:
    with pytest.raises(ValidationError):
        RunResult(exit_value=0, stdout=None, stderr=b"", process_id=1)  # type: ignore[arg-type]
    with pytest.raises(ValidationError):
        RunResult(exit_value=0, stdout=b"", stderr=None, process_id=1)  # type: ignore[arg-type]


def test_run_result_is_frozen() -> None:
    r = RunResult(exit_value=0, stdout=b"a", stderr=b"", process_id=42)
    with pytest.raises(ValidationError):
        r.exit_value = 1  # type: ignore[misc]


def test_run_result_payload_is_json_friendly() -> None:
    raw = b"\xff\xfeok"
    r = RunResult(exit_value=2, stdout=raw, stderr=b"err", process_id=7)
    payload = r.to_payload()

    assert payload["ok"] is False
    assert payload["exit_value"] == 2
    assert payload["process_id"] == 7
    assert base64.b64decode(payload["stdout_b64"]) == raw
    assert payload["stdout"].endswith("ok")
    assert payload["stderr"] == "err"


def test_run_config_distinguishes_absent_and_empty_stdin() -> None:
    absent = RunConfig(stdin=None, timeout_ms=10)
    empty = RunConfig(stdin=b"", timeout_ms=10)

    assert absent.has_stdin is False
    assert empty.has_stdin is True
    assert absent != empty


def test_run_config_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValidationError):
        RunConfig(stdin=None, timeout_ms=0)


def test_run_config_from_timedelta_rounds_up() -> None:
    assert RunConfig.from_timedelta(stdin=None, timeout=timedelta(seconds=1)).timeout_ms == 1_000
    assert RunConfig.from_timedelta(stdin=None, timeout=timedelta(microseconds=1)).timeout_ms == 1
    assert RunConfig(stdin=None, timeout_ms=1_500).timeout_sec == 1.5


@pytest.mark.parametrize("timeout", [timedelta(0), timedelta(seconds=-1)])
def test_run_config_from_timedelta_rejects_non_positive(timeout: timedelta) -> None:
    with pytest.raises(ValueError):
        RunConfig.from_timedelta(stdin=None, timeout=timeout)


def test_runner_settings_validation() -> None:
    assert RunnerSettings().read_chunk_bytes == 64 * 1024
    with pytest.raises(ValidationError):
        RunnerSettings(read_chunk_bytes=0)
    with pytest.raises(ValidationError):
        RunnerSettings(unknown_field=1)  # type: ignore[call-arg]
