from __future__ import annotations

from process_runtime.core.errors import ConfigError, FrameworkError, LaunchError, RunTimeout, TaskFailure
from process_runtime.core.run_errors import RunErrorKind, classify_run_exception


def test_timeout_is_retryable() -> None:
    err = classify_run_exception(RunTimeout(timeout_ms=100, process_id=9, pending=["exit"]))
    assert err.error_kind == RunErrorKind.TIMEOUT
    assert err.retryable is True
    assert err.details["process_id"] == 9
    assert err.details["pending"] == ["exit"]


def test_task_failure_carries_task_and_cause() -> None:
    cause = BrokenPipeError("pipe closed")
    exc = TaskFailure(task_name="stdin", cause=cause, process_id=3)
    err = classify_run_exception(exc)

    assert exc.__cause__ is cause
    assert err.error_kind == RunErrorKind.TASK_FAILURE
    assert err.retryable is False
    assert err.details["task"] == "stdin"
    assert "BrokenPipeError" in err.details["cause"]


def test_launch_and_config_errors() -> None:
    launch = classify_run_exception(LaunchError("nope", argv=["x"]))
    assert launch.error_kind == RunErrorKind.LAUNCH_ERROR
    assert launch.details["argv"] == ["x"]

    cfg = classify_run_exception(ConfigError("bad"))
    assert cfg.error_kind == RunErrorKind.CONFIG_ERROR


def test_unknown_errors_and_payload_shape() -> None:
    generic = classify_run_exception(FrameworkError(code="OTHER", message="m"))
    assert generic.error_kind == RunErrorKind.UNKNOWN
    assert generic.details["framework_code"] == "OTHER"

    payload = classify_run_exception(KeyError("k")).to_payload()
    assert payload["error_kind"] == "unknown"
    assert payload["retryable"] is False
    assert "KeyError" in payload["message"]
    assert "details" not in payload


def test_framework_error_to_issue() -> None:
    issue = RunTimeout(timeout_ms=5).to_issue()
    assert issue.code == "RUN_TIMEOUT"
    assert issue.details["timeout_ms"] == 5
    assert str(RunTimeout(timeout_ms=5)).startswith("RUN_TIMEOUT: ")
