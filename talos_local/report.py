"""Final status report printed after a successful run."""

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from talos_local.hardening import describe_hardening
from talos_local.models.config import ExecutionContext
from talos_local.models.results import ProvisionOutputs

TALOS_SECURITY_FEATURES = [
    "Immutable OS (no shell, no SSH)",
    "API-only management",
    "Encryption at rest for etcd",
    "Secure boot capable",
    "Minimal attack surface",
]


def outputs_for(context: ExecutionContext) -> ProvisionOutputs:
    paths = context.paths
    return ProvisionOutputs(
        cluster_name=context.config.cluster_name,
        kubeconfig_path=str(paths.kubeconfig),
        talosconfig_path=str(paths.talos_config),
        vm_name=context.config.vm_name if context.config.use_vm else None,
        docker_socket_path=str(paths.docker_socket) if paths.docker_socket else None,
    )


def outputs_table(outputs: ProvisionOutputs) -> Table:
    table = Table(title="Outputs")
    table.add_column("Name", style="cyan")
    table.add_column("Value", style="magenta")
    for key, value in outputs.model_dump().items():
        if value is not None:
            table.add_row(key, str(value))
    return table


def render_summary(
    console: Console, context: ExecutionContext, nodes_output: str, pods_output: str
) -> None:
    """Print the cluster summary panel with live node and pod listings."""
    paths = context.paths
    header = Text()
    header.append("Cluster: ", style="bold")
    header.append(f"{context.config.cluster_name}\n")
    header.append("Kubeconfig: ", style="bold")
    header.append(f"{paths.kubeconfig}\n")
    header.append("Talosconfig: ", style="bold")
    header.append(f"{paths.talos_config}")
    if paths.docker_socket:
        header.append("\nDocker socket: ", style="bold")
        header.append(f"{paths.docker_socket}")

    features = Text("Security Features (built into Talos):\n", style="bold cyan")
    features.append("\n".join(f"  - {f}" for f in TALOS_SECURITY_FEATURES), style="")

    hardening = Text("Applied Hardening:\n", style="bold cyan")
    hardening.append("\n".join(f"  - {h}" for h in describe_hardening()), style="")

    usage = Text("Usage:\n", style="bold cyan")
    usage.append(
        f"  export KUBECONFIG={paths.kubeconfig}\n"
        "  kubectl get nodes\n"
        f"  talosctl --talosconfig {paths.talos_config} dashboard",
        style="",
    )

    body = Group(
        header,
        Text(),
        features,
        Text(),
        hardening,
        Text(),
        Text("Nodes:", style="bold cyan"),
        Text(nodes_output.rstrip() or "(no node information available)"),
        Text(),
        Text("System Pods:", style="bold cyan"),
        Text(pods_output.rstrip() or "(no pod information available)"),
        Text(),
        usage,
    )
    console.print(Panel(body, title="Talos Cluster Ready", border_style="green"))
