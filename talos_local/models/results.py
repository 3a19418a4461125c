"""Outcome models for steps, readiness waits and whole runs."""

from enum import Enum

from pydantic import BaseModel

from talos_local.shell import CommandResult


class StepStatus(str, Enum):
    """Outcome of a single step action."""

    SUCCEEDED = "succeeded"
    UNCHANGED = "unchanged"  # target already existed, nothing was created
    FAILED = "failed"


class StepResult(BaseModel):
    """Pass/fail outcome of a step plus the output of its last command."""

    name: str
    status: StepStatus
    message: str = ""
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in (StepStatus.SUCCEEDED, StepStatus.UNCHANGED)

    @classmethod
    def _build(
        cls, name: str, status: StepStatus, message: str, result: CommandResult | None
    ) -> "StepResult":
        if result is None:
            return cls(name=name, status=status, message=message)
        return cls(
            name=name,
            status=status,
            message=message,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    @classmethod
    def ok(cls, name: str, message: str = "", result: CommandResult | None = None) -> "StepResult":
        return cls._build(name, StepStatus.SUCCEEDED, message, result)

    @classmethod
    def unchanged(
        cls, name: str, message: str = "", result: CommandResult | None = None
    ) -> "StepResult":
        return cls._build(name, StepStatus.UNCHANGED, message, result)

    @classmethod
    def failed(
        cls, name: str, message: str = "", result: CommandResult | None = None
    ) -> "StepResult":
        return cls._build(name, StepStatus.FAILED, message, result)


class ReadinessResult(BaseModel):
    """Result of a bounded readiness wait; ``ready`` is False when the wait ran out."""

    ready: bool
    attempts: int
    detail: str = ""


class ProvisionOutputs(BaseModel):
    """Named values surfaced by a provisioning run for downstream tools."""

    cluster_name: str
    kubeconfig_path: str
    talosconfig_path: str
    vm_name: str | None = None
    docker_socket_path: str | None = None
