"""Talos cluster lifecycle and credential export through talosctl."""

from pathlib import Path
from typing import Protocol

from talos_local.logging_config import get_logger
from talos_local.shell import CommandResult, CommandRunner, check

logger = get_logger(__name__)


class ClusterProvisioner(Protocol):
    """Creates, detects and destroys a named local cluster."""

    def exists(self, name: str) -> bool: ...

    def create(
        self, name: str, controlplanes: int, workers: int, wait_timeout: str
    ) -> CommandResult: ...

    def destroy(self, name: str) -> CommandResult: ...


class CredentialExporter(Protocol):
    """Writes and checks client credentials for a cluster."""

    def export(self, kubeconfig: Path, cluster_name: str) -> CommandResult: ...

    def verify(self, kubeconfig: Path) -> bool: ...

    def remove(self, kubeconfig: Path) -> None: ...


class TalosctlProvisioner:
    """ClusterProvisioner backed by ``talosctl cluster`` with the Docker provisioner."""

    def __init__(self, runner: CommandRunner, talosctl_bin: str, env: dict[str, str]):
        self.runner = runner
        self.talosctl_bin = talosctl_bin
        self.env = dict(env)

    def _run(self, *args: str) -> CommandResult:
        return self.runner.run([self.talosctl_bin, *args], env=self.env)

    def exists(self, name: str) -> bool:
        return self._run("cluster", "show", "--name", name).ok

    def create(self, name: str, controlplanes: int, workers: int, wait_timeout: str) -> CommandResult:
        logger.info(
            f"Creating Talos cluster '{name}' "
            f"({controlplanes} control plane(s), {workers} worker(s))"
        )
        return check(
            self._run(
                "cluster",
                "create",
                "--name",
                name,
                "--controlplanes",
                str(controlplanes),
                "--workers",
                str(workers),
                "--wait",
                "--wait-timeout",
                wait_timeout,
            )
        )

    def destroy(self, name: str) -> CommandResult:
        logger.info(f"Destroying Talos cluster '{name}'")
        return check(self._run("cluster", "destroy", "--name", name))


class TalosKubeconfigExporter:
    """CredentialExporter that pulls a kubeconfig with talosctl and checks it with kubectl."""

    def __init__(
        self, runner: CommandRunner, talosctl_bin: str, kubectl_bin: str, env: dict[str, str]
    ):
        self.runner = runner
        self.talosctl_bin = talosctl_bin
        self.kubectl_bin = kubectl_bin
        self.env = dict(env)

    def export(self, kubeconfig: Path, cluster_name: str) -> CommandResult:
        logger.info(f"Exporting kubeconfig to {kubeconfig}")
        return check(
            self.runner.run(
                [self.talosctl_bin, "kubeconfig", str(kubeconfig), "--force", "--name", cluster_name],
                env=self.env,
            )
        )

    def verify(self, kubeconfig: Path) -> bool:
        result = self.runner.run(
            [self.kubectl_bin, "--kubeconfig", str(kubeconfig), "get", "nodes"], env=self.env
        )
        return result.ok

    def remove(self, kubeconfig: Path) -> None:
        logger.info(f"Removing kubeconfig {kubeconfig}")
        kubeconfig.unlink(missing_ok=True)
