"""Data models for a point-in-time snapshot of cluster state."""

from pydantic import BaseModel, Field

from talos_local.exceptions import KubernetesError


class PodStatus(BaseModel):
    """Kubernetes pod status information."""

    name: str
    namespace: str
    node: str
    phase: str
    restarts: int


class NodeStatus(BaseModel):
    """Kubernetes node status information."""

    name: str
    role: str
    status: str  # Ready, NotReady, Unknown
    kubelet_version: str
    internal_ip: str


class ClusterState(BaseModel):
    """Current cluster state."""

    name: str
    api_server: str = "unknown"
    nodes: list[NodeStatus] = Field(default_factory=list)
    pods: list[PodStatus] = Field(default_factory=list)

    @property
    def ready_nodes(self) -> int:
        return sum(1 for n in self.nodes if n.status == "Ready")

    @property
    def all_ready(self) -> bool:
        return bool(self.nodes) and self.ready_nodes == len(self.nodes)

    @classmethod
    def from_kubernetes_api(
        cls, api_client, cluster_name: str, namespace: str | None = None
    ) -> "ClusterState":
        """Fetch current state from Kubernetes API.

        Raises:
            KubernetesError: If listing nodes or pods fails.
        """
        from kubernetes.client import Configuration
        from kubernetes.client.rest import ApiException

        config = Configuration.get_default_copy()
        api_server = config.host if config else "unknown"

        try:
            node_list = api_client.list_node()
        except ApiException as e:
            raise KubernetesError(f"Failed to list nodes: {e.reason}", e.body)

        nodes = []
        for node in node_list.items:
            status = "Unknown"
            for condition in node.status.conditions or []:
                if condition.type == "Ready":
                    status = "Ready" if condition.status == "True" else "NotReady"

            labels = node.metadata.labels or {}
            if "node-role.kubernetes.io/control-plane" in labels:
                role = "control-plane"
            else:
                role = "worker"

            internal_ip = next(
                (a.address for a in node.status.addresses or [] if a.type == "InternalIP"), "N/A"
            )

            nodes.append(
                NodeStatus(
                    name=node.metadata.name,
                    role=role,
                    status=status,
                    kubelet_version=node.status.node_info.kubelet_version,
                    internal_ip=internal_ip,
                )
            )

        try:
            if namespace:
                pods_response = api_client.list_namespaced_pod(namespace)
            else:
                pods_response = api_client.list_pod_for_all_namespaces()
        except ApiException as e:
            raise KubernetesError(f"Failed to list pods: {e.reason}", e.body)

        pods = []
        for pod in pods_response.items:
            restarts = sum(cs.restart_count for cs in pod.status.container_statuses or [])
            pods.append(
                PodStatus(
                    name=pod.metadata.name,
                    namespace=pod.metadata.namespace,
                    node=pod.spec.node_name or "unscheduled",
                    phase=pod.status.phase or "Unknown",
                    restarts=restarts,
                )
            )

        return cls(
            name=cluster_name,
            api_server=api_server,
            nodes=sorted(nodes, key=lambda n: n.name),
            pods=sorted(pods, key=lambda p: (p.namespace, p.name)),
        )
