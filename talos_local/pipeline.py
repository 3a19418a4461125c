"""The provisioning chain: directories, optional VM, cluster, credentials, readiness,
hardening and the final report."""

import time
from collections.abc import Callable

from rich.console import Console

from talos_local.exceptions import ReadinessTimeoutError
from talos_local.hardening import apply_hardening
from talos_local.kubectl import Kubectl
from talos_local.lima import LimaVMManager, VMManager, write_vm_definition
from talos_local.logging_config import get_logger
from talos_local.models.config import ExecutionContext
from talos_local.models.results import ProvisionOutputs, ReadinessResult, StepResult
from talos_local.readiness import wait_for_docker, wait_for_nodes
from talos_local.report import outputs_for, render_summary
from talos_local.shell import CommandRunner, SubprocessRunner
from talos_local.steps import Pipeline, Step, StepContext
from talos_local.talos import (
    ClusterProvisioner,
    CredentialExporter,
    TalosctlProvisioner,
    TalosKubeconfigExporter,
)

logger = get_logger(__name__)

CREATE_DIRS = "create-talos-dir"
CREATE_VM = "create-docker-vm"
CREATE_CLUSTER = "create-talos-cluster"
EXPORT_KUBECONFIG = "export-kubeconfig"
WAIT_FOR_KUBERNETES = "wait-for-kubernetes"
APPLY_HARDENING = "apply-security-hardening"
VERIFY_CLUSTER = "verify-cluster"

SYSTEM_NAMESPACE = "kube-system"


def _check_readiness(result: ReadinessResult, what: str, strict: bool) -> None:
    if result.ready:
        return
    if strict:
        raise ReadinessTimeoutError(
            f"{what} not ready after {result.attempts} attempts",
            f"Last status: {result.detail}",
        )
    logger.warning(
        f"{what} not ready after {result.attempts} attempts ({result.detail}), continuing anyway"
    )


def build_pipeline(
    context: ExecutionContext,
    runner: CommandRunner,
    *,
    provisioner: ClusterProvisioner | None = None,
    exporter: CredentialExporter | None = None,
    vm_manager: VMManager | None = None,
    sleep: Callable[[float], None] = time.sleep,
    console: Console | None = None,
) -> Pipeline:
    """
    Declare the step chain for ``context``.

    The capability arguments default to the real talosctl and limactl
    implementations; tests pass fakes.
    """
    config = context.config
    paths = context.paths

    provisioner = provisioner or TalosctlProvisioner(
        runner, config.talosctl_bin, context.talos_env()
    )
    exporter = exporter or TalosKubeconfigExporter(
        runner, config.talosctl_bin, config.kubectl_bin, context.talos_env()
    )
    kubectl = Kubectl(runner, config.kubectl_bin, context.kube_env())

    pipeline = Pipeline(runner)

    def create_dirs(step: StepContext) -> StepResult:
        for directory in (paths.talos_dir, paths.kube_dir):
            directory.mkdir(parents=True, exist_ok=True)
        return StepResult.ok(step.name, f"ensured {paths.talos_dir} and {paths.kube_dir}")

    pipeline.add(Step(name=CREATE_DIRS, create=create_dirs))
    upstream = CREATE_DIRS

    if config.use_vm:
        vms = vm_manager or LimaVMManager(runner, config.limactl_bin)

        def create_vm(step: StepContext) -> StepResult:
            status = vms.status(config.vm_name)
            if status == "Running":
                logger.info(f"VM '{config.vm_name}' already running")
                outcome = StepResult.unchanged(step.name, f"VM '{config.vm_name}' already running")
            elif status is not None:
                vms.start(config.vm_name)
                outcome = StepResult.ok(step.name, f"started existing VM '{config.vm_name}'")
            else:
                definition = write_vm_definition(config, paths)
                vms.create(config.vm_name, definition)
                outcome = StepResult.ok(step.name, f"created VM '{config.vm_name}'")

            readiness = wait_for_docker(
                step.runner,
                config.docker_bin,
                dict(step.environment),
                attempts=config.docker_poll_attempts,
                interval=config.poll_interval,
                sleep=sleep,
            )
            _check_readiness(readiness, "Docker", config.strict_readiness)
            return outcome

        def delete_vm(step: StepContext) -> None:
            try:
                vms.delete(config.vm_name)
            finally:
                if paths.vm_definition is not None:
                    paths.vm_definition.unlink(missing_ok=True)

        pipeline.add(
            Step(
                name=CREATE_VM,
                create=create_vm,
                delete=delete_vm,
                environment=context.docker_env(),
                depends_on=[upstream],
            )
        )
        upstream = CREATE_VM

    def create_cluster(step: StepContext) -> StepResult:
        if provisioner.exists(config.cluster_name):
            logger.info(f"Talos cluster '{config.cluster_name}' already exists")
            return StepResult.unchanged(
                step.name, f"Talos cluster '{config.cluster_name}' already exists"
            )
        result = provisioner.create(
            config.cluster_name, config.controlplanes, config.workers, config.wait_timeout
        )
        return StepResult.ok(
            step.name, f"Talos cluster '{config.cluster_name}' created", result=result
        )

    def destroy_cluster(step: StepContext) -> None:
        provisioner.destroy(config.cluster_name)

    pipeline.add(
        Step(
            name=CREATE_CLUSTER,
            create=create_cluster,
            delete=destroy_cluster,
            environment=context.talos_env(),
            depends_on=[upstream],
        )
    )

    def export_kubeconfig(step: StepContext) -> StepResult:
        if config.kubeconfig_settle_seconds:
            sleep(config.kubeconfig_settle_seconds)
        result = exporter.export(paths.kubeconfig, config.cluster_name)
        if exporter.verify(paths.kubeconfig):
            return StepResult.ok(step.name, "kubeconfig exported and verified", result=result)
        logger.warning("kubectl not able to connect yet, cluster may still be initializing")
        return StepResult.ok(step.name, "kubeconfig exported, not yet reachable", result=result)

    def remove_kubeconfig(step: StepContext) -> None:
        exporter.remove(paths.kubeconfig)

    pipeline.add(
        Step(
            name=EXPORT_KUBECONFIG,
            create=export_kubeconfig,
            delete=remove_kubeconfig,
            environment=context.talos_env(),
            depends_on=[CREATE_CLUSTER],
        )
    )

    def wait_for_kubernetes(step: StepContext) -> StepResult:
        readiness = wait_for_nodes(
            step.runner,
            config.kubectl_bin,
            dict(step.environment),
            attempts=config.node_poll_attempts,
            interval=config.poll_interval,
            sleep=sleep,
        )
        _check_readiness(readiness, "Kubernetes nodes", config.strict_readiness)

        kubectl.wait_for_pods(SYSTEM_NAMESPACE, config.system_pods_timeout)

        nodes = kubectl.get_nodes(wide=True)
        if nodes.ok:
            logger.info(f"Cluster nodes:\n{nodes.stdout.rstrip()}")
        return StepResult.ok(step.name, f"nodes {readiness.detail}", result=nodes)

    pipeline.add(
        Step(
            name=WAIT_FOR_KUBERNETES,
            create=wait_for_kubernetes,
            environment=context.kube_env(),
            depends_on=[EXPORT_KUBECONFIG],
        )
    )

    def harden(step: StepContext) -> StepResult:
        apply_hardening(kubectl)
        return StepResult.ok(step.name, "security hardening applied")

    pipeline.add(
        Step(
            name=APPLY_HARDENING,
            create=harden,
            environment=context.kube_env(),
            depends_on=[WAIT_FOR_KUBERNETES],
        )
    )

    def verify(step: StepContext) -> StepResult:
        nodes = kubectl.get_nodes(wide=True)
        pods = kubectl.get_pods(SYSTEM_NAMESPACE)
        if console is not None:
            render_summary(console, context, nodes.stdout, pods.stdout)
        return StepResult.ok(step.name, "status reported", result=nodes)

    pipeline.add(
        Step(
            name=VERIFY_CLUSTER,
            create=verify,
            environment=context.kube_env(),
            depends_on=[APPLY_HARDENING],
        )
    )

    return pipeline


def provision(
    context: ExecutionContext, runner: CommandRunner | None = None, **kwargs
) -> ProvisionOutputs:
    """Bring the cluster up and return its named outputs.

    The final status report goes to a fresh stdout console unless a
    ``console`` is passed.

    Raises:
        StepFailedError: If any step fails; later steps are not run.
    """
    kwargs.setdefault("console", Console())
    pipeline = build_pipeline(context, runner or SubprocessRunner(), **kwargs)
    pipeline.up()
    return outputs_for(context)


def teardown(
    context: ExecutionContext, runner: CommandRunner | None = None, **kwargs
) -> list[StepResult]:
    """Tear everything down, best-effort, and return per-step outcomes."""
    pipeline = build_pipeline(context, runner or SubprocessRunner(), **kwargs)
    return pipeline.destroy()
