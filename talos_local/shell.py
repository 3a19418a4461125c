"""Blocking execution of external command-line tools."""

import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from talos_local.exceptions import CommandError, CommandNotFoundError, CommandTimeoutError
from talos_local.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured output of one external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.args)

    def error_text(self) -> str:
        """Return the tool's own error output, falling back to stdout."""
        return (self.stderr or self.stdout).strip()


class CommandRunner(Protocol):
    """Anything that can run an external command and report its outcome."""

    def run(
        self,
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult: ...


class SubprocessRunner:
    """Runs commands with subprocess, blocking until each one exits."""

    def run(
        self,
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Non-zero exits are returned, not raised; use `check` when the caller
        treats failure as fatal.

        Raises:
            CommandNotFoundError: If the binary does not exist.
            CommandTimeoutError: If the command exceeds ``timeout`` seconds.
        """
        argv = [str(a) for a in args]
        full_env = dict(os.environ)
        if env:
            full_env.update(env)
            logger.debug(f"Environment overrides: {', '.join(sorted(env))}")

        logger.debug(f"Running: {shlex.join(argv)}")

        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                env=full_env,
                input=input,
                timeout=timeout,
            )
        except FileNotFoundError:
            logger.error(f"Binary not found: {argv[0]}")
            raise CommandNotFoundError(
                f"'{argv[0]}' is not installed or not in PATH",
                "Install the tool or point talos-local at it in the configuration file "
                "(talosctl_bin, kubectl_bin, limactl_bin, docker_bin)",
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out after {timeout}s: {shlex.join(argv)}")
            raise CommandTimeoutError(
                f"Command timed out after {timeout} seconds",
                f"Command: {shlex.join(argv)}",
            )

        logger.debug(f"Command exited with return code {completed.returncode}")
        return CommandResult(
            args=tuple(argv),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


def check(result: CommandResult) -> CommandResult:
    """Raise CommandError if the command exited non-zero."""
    if not result.ok:
        raise CommandError(
            f"Command failed with exit code {result.returncode}: {result.command_line}",
            result.error_text() or None,
            result=result,
        )
    return result
