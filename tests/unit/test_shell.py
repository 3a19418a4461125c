"""Unit tests for the subprocess command runner."""

import subprocess
from unittest.mock import Mock, patch

import pytest

from talos_local.exceptions import CommandError, CommandNotFoundError, CommandTimeoutError
from talos_local.shell import CommandResult, SubprocessRunner, check


@patch("subprocess.run")
def test_run_captures_output(mock_run):
    mock_run.return_value = Mock(returncode=0, stdout="ok\n", stderr="")

    result = SubprocessRunner().run(["talosctl", "version"])

    assert result.ok
    assert result.args == ("talosctl", "version")
    assert result.stdout == "ok\n"
    call_args = mock_run.call_args
    assert call_args[0][0] == ["talosctl", "version"]
    assert call_args[1]["capture_output"] is True
    assert call_args[1]["text"] is True


@patch("subprocess.run")
def test_run_overlays_environment(mock_run, monkeypatch):
    monkeypatch.setenv("PATH", "/usr/bin")
    mock_run.return_value = Mock(returncode=0, stdout="", stderr="")

    SubprocessRunner().run(["kubectl", "get", "nodes"], env={"KUBECONFIG": "/tmp/kc"})

    env = mock_run.call_args[1]["env"]
    assert env["KUBECONFIG"] == "/tmp/kc"
    assert env["PATH"] == "/usr/bin"


@patch("subprocess.run")
def test_nonzero_exit_is_returned_not_raised(mock_run):
    mock_run.return_value = Mock(returncode=2, stdout="", stderr="no such cluster")

    result = SubprocessRunner().run(["talosctl", "cluster", "show"])

    assert not result.ok
    assert result.returncode == 2
    assert result.error_text() == "no such cluster"


@patch("subprocess.run", side_effect=FileNotFoundError)
def test_missing_binary_raises_command_not_found(mock_run):
    with pytest.raises(CommandNotFoundError) as exc_info:
        SubprocessRunner().run(["limactl", "list"])

    assert "limactl" in exc_info.value.message


@patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="kubectl", timeout=3))
def test_timeout_raises_command_timeout(mock_run):
    with pytest.raises(CommandTimeoutError):
        SubprocessRunner().run(["kubectl", "wait"], timeout=3)


def test_check_passes_success_through():
    result = CommandResult(("true",), 0)
    assert check(result) is result


def test_check_raises_with_tool_error_text():
    result = CommandResult(("talosctl", "cluster", "create"), 1, "", "docker not running\n")

    with pytest.raises(CommandError) as exc_info:
        check(result)

    assert exc_info.value.details == "docker not running"
    assert exc_info.value.result is result
    assert "talosctl cluster create" in exc_info.value.message


def test_error_text_falls_back_to_stdout():
    result = CommandResult(("x",), 1, "only stdout\n", "")
    assert result.error_text() == "only stdout"
