"""Lima VM hosting the Docker daemon for the VM variant."""

import json
from typing import Protocol

import yaml

from talos_local.exceptions import VMError
from talos_local.logging_config import get_logger
from talos_local.models.config import PathSet, ProvisionConfig
from talos_local.shell import CommandResult, CommandRunner, check

logger = get_logger(__name__)

UBUNTU_IMAGES = [
    {
        "location": "https://cloud-images.ubuntu.com/releases/24.04/release/ubuntu-24.04-server-cloudimg-amd64.img",
        "arch": "x86_64",
    },
    {
        "location": "https://cloud-images.ubuntu.com/releases/24.04/release/ubuntu-24.04-server-cloudimg-arm64.img",
        "arch": "aarch64",
    },
]

DOCKER_PROVISION_SCRIPT = """#!/bin/bash
set -eux -o pipefail
command -v docker >/dev/null 2>&1 && exit 0
export DEBIAN_FRONTEND=noninteractive
curl -fsSL https://get.docker.com | sh
usermod -aG docker "${LIMA_CIDATA_USER}"
systemctl enable --now docker
"""

DOCKER_PROBE_SCRIPT = """#!/bin/bash
set -eux -o pipefail
if ! timeout 30s bash -c "until command -v docker >/dev/null 2>&1; do sleep 3; done"; then
  echo >&2 "docker is not installed yet"
  exit 1
fi
"""


class VMManager(Protocol):
    """Creates, starts and removes a named VM."""

    def status(self, name: str) -> str | None: ...

    def create(self, name: str, definition: str) -> CommandResult: ...

    def start(self, name: str) -> CommandResult: ...

    def delete(self, name: str) -> CommandResult: ...


class _BlockStyleDumper(yaml.SafeDumper):
    pass


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_BlockStyleDumper.add_representer(str, _represent_str)


def vm_definition(config: ProvisionConfig) -> dict:
    """Lima instance definition: Ubuntu with Docker, guest socket forwarded to the host."""
    return {
        "images": UBUNTU_IMAGES,
        "cpus": config.vm_cpus,
        "memory": config.vm_memory,
        "disk": config.vm_disk,
        "mounts": [],
        "containerd": {"system": False, "user": False},
        "provision": [{"mode": "system", "script": DOCKER_PROVISION_SCRIPT}],
        "probes": [
            {
                "script": DOCKER_PROBE_SCRIPT,
                "hint": 'See "/var/log/cloud-init-output.log" in the guest',
            }
        ],
        "portForwards": [
            {"guestSocket": "/var/run/docker.sock", "hostSocket": "{{.Dir}}/sock/docker.sock"}
        ],
    }


def render_vm_definition(config: ProvisionConfig) -> str:
    return yaml.dump(
        vm_definition(config), Dumper=_BlockStyleDumper, sort_keys=False, default_flow_style=False
    )


def write_vm_definition(config: ProvisionConfig, paths: PathSet) -> str:
    """Write the definition file and return its path."""
    if paths.vm_definition is None:
        raise VMError("VM definition path is not set", "Enable use_vm in the configuration")
    paths.vm_definition.parent.mkdir(parents=True, exist_ok=True)
    paths.vm_definition.write_text(render_vm_definition(config))
    logger.debug(f"Wrote VM definition to {paths.vm_definition}")
    return str(paths.vm_definition)


class LimaVMManager:
    """VMManager backed by limactl."""

    def __init__(self, runner: CommandRunner, limactl_bin: str):
        self.runner = runner
        self.limactl_bin = limactl_bin

    def _run(self, *args: str) -> CommandResult:
        return self.runner.run([self.limactl_bin, *args])

    def status(self, name: str) -> str | None:
        """
        Look up an instance in the Lima registry.

        Returns:
            The instance status (e.g. "Running", "Stopped"), or None if absent.

        Raises:
            VMError: If limactl output cannot be parsed.
        """
        result = check(self._run("list", "--json"))

        # limactl prints one JSON object per instance
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                instance = json.loads(line)
            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse limactl output: {e}")
                raise VMError(
                    "Failed to parse limactl list output",
                    f"Unexpected line: {line[:200]}",
                )
            if instance.get("name") == name:
                return instance.get("status", "Unknown")
        return None

    def create(self, name: str, definition: str) -> CommandResult:
        logger.info(f"Creating VM '{name}' from {definition}")
        return check(self._run("start", f"--name={name}", "--tty=false", definition))

    def start(self, name: str) -> CommandResult:
        logger.info(f"Starting existing VM '{name}'")
        return check(self._run("start", "--tty=false", name))

    def delete(self, name: str) -> CommandResult:
        logger.info(f"Stopping and deleting VM '{name}'")
        stopped = self._run("stop", name)
        if not stopped.ok:
            logger.debug(f"limactl stop {name} failed: {stopped.error_text()}")
        return check(self._run("delete", "--force", name))
