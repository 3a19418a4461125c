"""Configuration models: provisioning settings, derived paths and execution context."""

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from talos_local.exceptions import ConfigurationError, PreconditionError

DNS_LABEL_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
DURATION_PATTERN = re.compile(r"^(\d+(\.\d+)?(ns|us|ms|s|m|h))+$")

VM_DEFINITION_FILENAME = "talos-docker.yaml"


class ProvisionConfig(BaseModel):
    """Settings for one provisioning run.

    Defaults reproduce the stock local cluster: one control plane, two
    workers, Docker provisioner on the host.
    """

    model_config = ConfigDict(frozen=True)

    cluster_name: str = "talos-local"
    controlplanes: int = Field(default=1, ge=1)
    workers: int = Field(default=2, ge=0)
    wait_timeout: str = "10m"

    # VM variant: Docker runs inside a Lima VM instead of on the host
    use_vm: bool = False
    vm_name: str = "talos-docker"
    vm_cpus: int = Field(default=4, ge=1)
    vm_memory: str = "8GiB"
    vm_disk: str = "50GiB"

    talosctl_bin: str = "talosctl"
    kubectl_bin: str = "kubectl"
    limactl_bin: str = "limactl"
    docker_bin: str = "docker"

    docker_poll_attempts: int = Field(default=30, ge=1)
    node_poll_attempts: int = Field(default=60, ge=1)
    poll_interval: float = Field(default=5.0, ge=0)
    system_pods_timeout: str = "300s"
    kubeconfig_settle_seconds: float = Field(default=5.0, ge=0)
    strict_readiness: bool = False

    home: Path | None = None
    workdir: Path | None = None

    @field_validator("cluster_name", "vm_name")
    @classmethod
    def validate_dns_label(cls, v: str) -> str:
        """Cluster and VM names become container and instance names."""
        if not v:
            raise ValueError("name cannot be empty")
        if len(v) > 63:
            raise ValueError("name cannot exceed 63 characters")
        if not DNS_LABEL_PATTERN.match(v):
            raise ValueError(
                f"name '{v}' must contain only lowercase alphanumeric characters and hyphens, "
                "and cannot start or end with a hyphen"
            )
        return v

    @field_validator("wait_timeout", "system_pods_timeout")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        if not DURATION_PATTERN.match(v):
            raise ValueError(f"duration '{v}' must look like 300s, 10m or 1h30m")
        return v

    def with_overrides(self, **overrides: Any) -> "ProvisionConfig":
        """Return a validated copy with the non-None overrides applied."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return ProvisionConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError("Invalid configuration override", str(e))

    def save(self, path: str | Path) -> None:
        """Save configuration to YAML file."""
        import yaml

        with open(path, "w") as f:
            yaml.dump(self.model_dump(mode="json", exclude_none=True), f, default_flow_style=False)

    @classmethod
    def load(cls, path: str | Path) -> "ProvisionConfig":
        """Load configuration from YAML file.

        Raises:
            ConfigurationError: If the file is missing, unreadable, unparsable or invalid.
        """
        import yaml

        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                f"Expected location: {config_path.absolute()}",
            )
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse configuration file: {config_path}", str(e))
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}", str(e))

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {config_path}",
                f"Found {type(data).__name__} at the top level",
            )
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}", str(e))


def resolve_home() -> Path:
    """Resolve the current user's home directory.

    Raises:
        PreconditionError: If no home directory can be determined.
    """
    try:
        return Path.home()
    except (RuntimeError, KeyError) as e:
        raise PreconditionError(
            "Cannot resolve the home directory",
            f"{e}. Set HOME or pass 'home' in the configuration file.",
        )


class PathSet(BaseModel):
    """Filesystem locations used by a run, derived once from the home directory."""

    model_config = ConfigDict(frozen=True)

    talos_dir: Path
    talos_config: Path
    kube_dir: Path
    kubeconfig: Path
    vm_definition: Path | None = None
    docker_socket: Path | None = None

    @classmethod
    def from_config(cls, config: ProvisionConfig) -> "PathSet":
        home = config.home if config.home is not None else resolve_home()
        talos_dir = home / ".talos"
        kube_dir = home / ".kube"

        vm_definition = None
        docker_socket = None
        if config.use_vm:
            workdir = config.workdir if config.workdir is not None else Path.cwd()
            vm_definition = workdir / VM_DEFINITION_FILENAME
            # Lima forwards the guest socket to <instance dir>/sock/docker.sock
            docker_socket = home / ".lima" / config.vm_name / "sock" / "docker.sock"

        return cls(
            talos_dir=talos_dir,
            talos_config=talos_dir / "config",
            kube_dir=kube_dir,
            kubeconfig=kube_dir / "talos-config",
            vm_definition=vm_definition,
            docker_socket=docker_socket,
        )


class ExecutionContext(BaseModel):
    """Configuration and paths passed by value to every step.

    Each step gets its environment from here rather than from process globals.
    """

    model_config = ConfigDict(frozen=True)

    config: ProvisionConfig
    paths: PathSet

    @classmethod
    def from_config(cls, config: ProvisionConfig) -> "ExecutionContext":
        return cls(config=config, paths=PathSet.from_config(config))

    @property
    def docker_host(self) -> str | None:
        if self.paths.docker_socket is None:
            return None
        return f"unix://{self.paths.docker_socket}"

    def docker_env(self) -> dict[str, str]:
        if self.docker_host is None:
            return {}
        return {"DOCKER_HOST": self.docker_host}

    def talos_env(self) -> dict[str, str]:
        return {"TALOSCONFIG": str(self.paths.talos_config), **self.docker_env()}

    def kube_env(self) -> dict[str, str]:
        return {"KUBECONFIG": str(self.paths.kubeconfig)}
