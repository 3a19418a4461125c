"""Main CLI entry point for local Talos cluster provisioning."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from talos_local.exceptions import KubernetesError, StepFailedError, TalosLocalError
from talos_local.logging_config import get_logger, setup_logging
from talos_local.models.config import ExecutionContext, ProvisionConfig

app = typer.Typer(
    name="talos-local",
    help="Stand up and tear down a local, security-hardened Talos Kubernetes cluster",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

CONFIG_OPTION_HELP = "Path to a YAML configuration file"


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Global options for all commands."""
    log_path = Path(log_file) if log_file else None
    setup_logging(verbose=verbose, log_file=log_path)
    logger.debug("Logging initialized")


def _load_context(config_path: str | None, **overrides) -> ExecutionContext:
    """Load the configuration file (if any), apply CLI overrides and derive paths."""
    config = ProvisionConfig.load(config_path) if config_path else ProvisionConfig()
    config = config.with_overrides(**overrides)
    return ExecutionContext.from_config(config)


def _print_error(e: TalosLocalError, label: str = "Error") -> None:
    # Tool output and validation errors may contain square brackets
    console.print(f"[red]{label}:[/red] {escape(e.message)}")
    if e.details:
        console.print(f"\n{escape(e.details)}")


@app.command()
def version() -> None:
    """Show version information."""
    from talos_local import __version__

    typer.echo(f"talos-local version {__version__}")


@app.command()
def up(
    config_path: str | None = typer.Option(
        None, "--config", "-c", envvar="TALOS_LOCAL_CONFIG", help=CONFIG_OPTION_HELP
    ),
    cluster_name: str | None = typer.Option(None, "--cluster-name", "-n", help="Cluster name"),
    controlplanes: int | None = typer.Option(
        None, "--controlplanes", help="Number of control-plane nodes"
    ),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Number of worker nodes"),
    use_vm: bool | None = typer.Option(
        None, "--vm/--no-vm", help="Run Docker inside a Lima VM instead of on the host"
    ),
    vm_name: str | None = typer.Option(None, "--vm-name", help="Name of the Lima VM"),
    strict_readiness: bool | None = typer.Option(
        None,
        "--strict-readiness/--lenient-readiness",
        help="Fail instead of continuing when a readiness wait runs out",
    ),
    json_output: bool = typer.Option(False, "--json", help="Print outputs as JSON"),
) -> None:
    """
    Create the cluster, or confirm it already exists.

    Runs every provisioning step in order and stops at the first failure.
    Steps whose target already exists are reported as unchanged.

    Examples:
        # Default: 1 control plane, 2 workers, Docker on the host
        talos-local up

        # Docker inside a Lima VM
        talos-local up --vm
    """
    from talos_local.pipeline import build_pipeline
    from talos_local.report import outputs_for, outputs_table
    from talos_local.shell import SubprocessRunner

    try:
        context = _load_context(
            config_path,
            cluster_name=cluster_name,
            controlplanes=controlplanes,
            workers=workers,
            use_vm=use_vm,
            vm_name=vm_name,
            strict_readiness=strict_readiness,
        )
        pipeline = build_pipeline(context, SubprocessRunner(), console=console)

        console.print(
            f"[bold cyan]Provisioning Talos cluster '{context.config.cluster_name}'[/bold cyan]"
        )
        try:
            with console.status("Running provisioning steps..."):
                pipeline.up()
        finally:
            _print_step_results(pipeline.results)

        outputs = outputs_for(context)
        if json_output:
            typer.echo(outputs.model_dump_json(indent=2))
        else:
            console.print(outputs_table(outputs))
        console.print("\n[green]✓[/green] Cluster is up")

    except StepFailedError as e:
        _print_error(e, "Step Failed")
        raise typer.Exit(code=1)
    except TalosLocalError as e:
        _print_error(e)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Provisioning interrupted by user[/yellow]")
        raise typer.Exit(code=130)
    except Exception as e:
        logger.error(f"Unexpected error during provisioning: {e}", exc_info=True)
        console.print(f"[red]Unexpected error:[/red] {e}")
        console.print("\nRun with --verbose --log-file debug.log for more details")
        raise typer.Exit(code=1)


def _print_step_results(results) -> None:
    if not results:
        return
    table = Table(title="Steps")
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Message")

    styles = {"succeeded": "green", "unchanged": "blue", "failed": "red"}
    for result in results:
        style = styles.get(result.status.value, "white")
        table.add_row(
            result.name, f"[{style}]{result.status.value}[/{style}]", escape(result.message)
        )
    console.print(table)


@app.command()
def destroy(
    config_path: str | None = typer.Option(
        None, "--config", "-c", envvar="TALOS_LOCAL_CONFIG", help=CONFIG_OPTION_HELP
    ),
    cluster_name: str | None = typer.Option(None, "--cluster-name", "-n", help="Cluster name"),
    use_vm: bool | None = typer.Option(
        None, "--vm/--no-vm", help="Also stop and delete the Lima VM"
    ),
    vm_name: str | None = typer.Option(None, "--vm-name", help="Name of the Lima VM"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
) -> None:
    """
    Tear down the cluster and remove generated files.

    Cleanup runs in reverse order and continues past individual failures.
    """
    from talos_local.pipeline import teardown

    try:
        context = _load_context(
            config_path, cluster_name=cluster_name, use_vm=use_vm, vm_name=vm_name
        )

        if not force:
            console.print(
                f"[yellow]Warning:[/yellow] About to destroy Talos cluster "
                f"'{context.config.cluster_name}'"
            )
            if context.config.use_vm:
                console.print(f"  VM: {context.config.vm_name}")
            console.print(f"  Kubeconfig: {context.paths.kubeconfig}")
            if not typer.confirm("Are you sure you want to continue?"):
                console.print("Operation cancelled")
                raise typer.Exit(code=0)

        results = teardown(context)
        _print_step_results(results)

        failed = [r for r in results if not r.succeeded]
        if failed:
            console.print(
                f"\n[yellow]⚠ Teardown finished with {len(failed)} failed cleanup step(s)[/yellow]"
            )
        else:
            console.print("\n[green]✓[/green] Teardown complete")

    except TalosLocalError as e:
        _print_error(e)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Teardown interrupted by user[/yellow]")
        raise typer.Exit(code=130)


@app.command()
def plan(
    config_path: str | None = typer.Option(
        None, "--config", "-c", envvar="TALOS_LOCAL_CONFIG", help=CONFIG_OPTION_HELP
    ),
    use_vm: bool | None = typer.Option(None, "--vm/--no-vm", help="Include the Lima VM step"),
) -> None:
    """Show the ordered provisioning steps without running them."""
    from talos_local.pipeline import build_pipeline
    from talos_local.shell import SubprocessRunner

    try:
        context = _load_context(config_path, use_vm=use_vm)
        pipeline = build_pipeline(context, SubprocessRunner())
    except TalosLocalError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    table = Table(title=f"Provisioning plan for '{context.config.cluster_name}'")
    table.add_column("#", justify="right")
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Depends On", style="magenta")
    table.add_column("Environment", style="yellow")
    table.add_column("Teardown")

    for index, entry in enumerate(pipeline.plan(), start=1):
        table.add_row(
            str(index),
            entry["name"],
            ", ".join(entry["depends_on"]) or "-",
            ", ".join(entry["environment"]) or "-",
            "yes" if entry["has_delete"] else "-",
        )
    console.print(table)


@app.command()
def outputs(
    config_path: str | None = typer.Option(
        None, "--config", "-c", envvar="TALOS_LOCAL_CONFIG", help=CONFIG_OPTION_HELP
    ),
    use_vm: bool | None = typer.Option(None, "--vm/--no-vm", help="Include VM outputs"),
    json_output: bool = typer.Option(False, "--json", help="Print outputs as JSON"),
) -> None:
    """Print the named outputs of a run (cluster name, credential paths)."""
    from talos_local.report import outputs_for, outputs_table

    try:
        context = _load_context(config_path, use_vm=use_vm)
    except TalosLocalError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    result = outputs_for(context)
    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    else:
        console.print(outputs_table(result))


@app.command()
def status(
    config_path: str | None = typer.Option(
        None, "--config", "-c", envvar="TALOS_LOCAL_CONFIG", help=CONFIG_OPTION_HELP
    ),
    show_pods: bool = typer.Option(False, "--pods", "-p", help="Show pod information"),
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Filter pods by namespace (requires --pods)"
    ),
) -> None:
    """
    Show node and pod status using the generated kubeconfig.

    Examples:
        talos-local status
        talos-local status --pods --namespace kube-system
    """
    from kubernetes import client, config

    from talos_local.models.cluster import ClusterState

    try:
        context = _load_context(config_path)
    except TalosLocalError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    kubeconfig = context.paths.kubeconfig
    try:
        config.load_kube_config(config_file=str(kubeconfig))
    except Exception as e:
        console.print(f"[red]Error:[/red] Failed to load kubeconfig {kubeconfig}: {e}")
        console.print("\nMake sure the cluster has been provisioned with: talos-local up")
        raise typer.Exit(code=1)

    try:
        state = ClusterState.from_kubernetes_api(
            client.CoreV1Api(), context.config.cluster_name, namespace=namespace
        )
    except KubernetesError as e:
        _print_error(e)
        raise typer.Exit(code=1)
    except Exception as e:
        logger.error(f"Unexpected error querying cluster: {e}", exc_info=True)
        console.print(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[bold cyan]Cluster:[/bold cyan] {state.name} ({state.api_server})")

    if not state.nodes:
        console.print("[yellow]No nodes found in the cluster[/yellow]")
        raise typer.Exit(code=0)

    nodes_table = Table(title=f"Nodes ({len(state.nodes)})")
    nodes_table.add_column("Name", style="cyan")
    nodes_table.add_column("Role", style="magenta")
    nodes_table.add_column("Status")
    nodes_table.add_column("Version", style="blue")
    nodes_table.add_column("Internal IP", style="yellow")
    for node in state.nodes:
        node_status = (
            "[green]✓ Ready[/green]" if node.status == "Ready" else f"[red]✗ {node.status}[/red]"
        )
        nodes_table.add_row(
            node.name, node.role, node_status, node.kubelet_version, node.internal_ip
        )
    console.print(nodes_table)

    if show_pods:
        if not state.pods:
            console.print("[yellow]No pods found[/yellow]")
        else:
            pods_table = Table(title=f"Pods ({len(state.pods)})")
            pods_table.add_column("Namespace", style="cyan")
            pods_table.add_column("Name", style="magenta")
            pods_table.add_column("Node", style="yellow")
            pods_table.add_column("Phase", style="green")
            pods_table.add_column("Restarts")
            for pod in state.pods:
                pods_table.add_row(pod.namespace, pod.name, pod.node, pod.phase, str(pod.restarts))
            console.print(pods_table)

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Total Nodes: {len(state.nodes)}")
    console.print(f"  Ready Nodes: {state.ready_nodes}")
    if state.all_ready:
        console.print("\n[green]✓ All nodes are ready[/green]")
    else:
        console.print("\n[yellow]⚠ Some nodes are not ready[/yellow]")


if __name__ == "__main__":
    app()
