"""Thin wrapper around the kubectl binary."""

from talos_local.logging_config import get_logger
from talos_local.shell import CommandResult, CommandRunner, check

logger = get_logger(__name__)


class Kubectl:
    """Runs kubectl against one kubeconfig, passed through the KUBECONFIG variable."""

    def __init__(self, runner: CommandRunner, kubectl_bin: str, env: dict[str, str]):
        self.runner = runner
        self.kubectl_bin = kubectl_bin
        self.env = dict(env)

    def run(self, *args: str, input: str | None = None) -> CommandResult:
        return self.runner.run([self.kubectl_bin, *args], env=self.env, input=input)

    def get_nodes(self, wide: bool = False) -> CommandResult:
        """Return the raw ``kubectl get nodes`` result without checking it."""
        if wide:
            return self.run("get", "nodes", "-o", "wide")
        return self.run("get", "nodes")

    def get_pods(self, namespace: str) -> CommandResult:
        return self.run("get", "pods", "-n", namespace)

    def label_namespace(self, namespace: str, key: str, value: str) -> CommandResult:
        logger.debug(f"Labelling namespace {namespace}: {key}={value}")
        return check(self.run("label", "namespace", namespace, f"{key}={value}", "--overwrite"))

    def apply(self, manifest: str) -> CommandResult:
        """Apply a YAML manifest stream through stdin."""
        return check(self.run("apply", "-f", "-", input=manifest))

    def wait_for_pods(self, namespace: str, timeout: str) -> bool:
        """Wait for every pod in ``namespace`` to be Ready; returns False on timeout or error."""
        result = self.run(
            "wait",
            "--for=condition=Ready",
            "pods",
            "--all",
            "-n",
            namespace,
            f"--timeout={timeout}",
        )
        if not result.ok:
            logger.warning(f"Pods in {namespace} not ready within {timeout}: {result.error_text()}")
        return result.ok
