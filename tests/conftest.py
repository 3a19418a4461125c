"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from dataclasses import dataclass, field

import pytest
from hypothesis import Verbosity, settings

from talos_local.models.config import ExecutionContext, ProvisionConfig
from talos_local.shell import CommandResult

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

settings.load_profile("default")

READY_NODES = (
    "talos-local-controlplane-1   Ready   control-plane   2m   v1.30.0\n"
    "talos-local-worker-1         Ready   <none>          2m   v1.30.0\n"
    "talos-local-worker-2         Ready   <none>          2m   v1.30.0\n"
)


@dataclass
class FakeCall:
    args: tuple[str, ...]
    env: dict[str, str] = field(default_factory=dict)
    input: str | None = None


class FakeRunner:
    """CommandRunner that records every call and answers from scripted rules.

    Rules match on an argv prefix; the most recently added rule wins.
    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls: list[FakeCall] = []
        self._rules: list[tuple[tuple[str, ...], Callable[[tuple[str, ...]], CommandResult]]] = []

    def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self._rules.insert(
            0, (prefix, lambda args: CommandResult(args, returncode, stdout, stderr))
        )

    def on_sequence(self, *prefix: str, results: list[tuple[int, str]]) -> None:
        """Answer successive matching calls from ``results``, repeating the last one."""
        remaining = list(results)

        def respond(args: tuple[str, ...]) -> CommandResult:
            returncode, stdout = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            return CommandResult(args, returncode, stdout, "")

        self._rules.insert(0, (prefix, respond))

    def run(self, args, env=None, input=None, timeout=None) -> CommandResult:
        argv = tuple(str(a) for a in args)
        self.calls.append(FakeCall(argv, dict(env or {}), input))
        for prefix, respond in self._rules:
            if argv[: len(prefix)] == prefix:
                return respond(argv)
        return CommandResult(args=argv, returncode=0)

    def commands(self) -> list[tuple[str, ...]]:
        return [c.args for c in self.calls]

    def calls_to(self, *prefix: str) -> list[FakeCall]:
        return [c for c in self.calls if c.args[: len(prefix)] == prefix]


class FakeClusterProvisioner:
    """In-memory ClusterProvisioner: clusters exist once created, until destroyed."""

    def __init__(self, existing: set[str] | None = None):
        self.clusters: set[str] = set(existing or ())
        self.created: list[str] = []
        self.destroyed: list[str] = []

    def exists(self, name: str) -> bool:
        return name in self.clusters

    def create(self, name, controlplanes, workers, wait_timeout) -> CommandResult:
        self.clusters.add(name)
        self.created.append(name)
        return CommandResult(("fake", "create", name), 0, f"created {name}\n")

    def destroy(self, name: str) -> CommandResult:
        self.clusters.discard(name)
        self.destroyed.append(name)
        return CommandResult(("fake", "destroy", name), 0)


@pytest.fixture
def fake_runner():
    """A scripted runner with no rules."""
    return FakeRunner()


@pytest.fixture
def healthy_runner():
    """A runner scripted as a host with no cluster yet and nodes that come up Ready."""
    runner = FakeRunner()
    runner.on("talosctl", "cluster", "show", returncode=1, stderr="cluster not found")
    runner.on("kubectl", "get", "nodes", "--no-headers", stdout=READY_NODES)
    return runner


@pytest.fixture
def fake_provisioner():
    return FakeClusterProvisioner()


@pytest.fixture
def no_sleep():
    """Recorded delays; pass ``no_sleep.append`` wherever a sleep function is expected."""
    return []


@pytest.fixture
def config(tmp_path):
    """Default configuration rooted in a temporary home, with no real waiting."""
    return ProvisionConfig(
        home=tmp_path / "home",
        workdir=tmp_path / "work",
        poll_interval=0,
        kubeconfig_settle_seconds=0,
    )


@pytest.fixture
def context(config):
    return ExecutionContext.from_config(config)


@pytest.fixture
def vm_context(config):
    return ExecutionContext.from_config(config.with_overrides(use_vm=True))
