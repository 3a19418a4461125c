"""Fixed security hardening profile: Pod Security Standards labels and NetworkPolicies."""

import yaml

from talos_local.kubectl import Kubectl
from talos_local.logging_config import get_logger

logger = get_logger(__name__)

PSS_LABEL_PREFIX = "pod-security.kubernetes.io"

# (namespace, mode, level)
POD_SECURITY_LABELS: tuple[tuple[str, str, str], ...] = (
    ("kube-system", "enforce", "privileged"),
    ("kube-system", "warn", "baseline"),
    ("default", "enforce", "restricted"),
    ("default", "warn", "restricted"),
)

NETWORK_POLICY_NAMESPACE = "default"


def network_policies() -> list[dict]:
    """Default-deny for the default namespace, with DNS egress to kube-system allowed."""
    return [
        {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "NetworkPolicy",
            "metadata": {"name": "default-deny-all", "namespace": NETWORK_POLICY_NAMESPACE},
            "spec": {"podSelector": {}, "policyTypes": ["Ingress", "Egress"]},
        },
        {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "NetworkPolicy",
            "metadata": {"name": "allow-dns", "namespace": NETWORK_POLICY_NAMESPACE},
            "spec": {
                "podSelector": {},
                "policyTypes": ["Egress"],
                "egress": [
                    {
                        "to": [
                            {
                                "namespaceSelector": {
                                    "matchLabels": {"kubernetes.io/metadata.name": "kube-system"}
                                }
                            }
                        ],
                        "ports": [
                            {"protocol": "UDP", "port": 53},
                            {"protocol": "TCP", "port": 53},
                        ],
                    }
                ],
            },
        },
    ]


def render_network_policies() -> str:
    """Render the policies as one multi-document YAML stream for ``kubectl apply -f -``."""
    return yaml.safe_dump_all(network_policies(), sort_keys=False, default_flow_style=False)


def apply_hardening(kubectl: Kubectl) -> None:
    """Apply the hardening profile. Safe to repeat: labels overwrite, manifests apply."""
    logger.info("Applying security hardening")
    for namespace, mode, level in POD_SECURITY_LABELS:
        kubectl.label_namespace(namespace, f"{PSS_LABEL_PREFIX}/{mode}", level)
    kubectl.apply(render_network_policies())
    logger.info("Security hardening applied")


def describe_hardening() -> list[str]:
    return [
        "Pod Security Standards: privileged for kube-system, restricted for default",
        "Default NetworkPolicy: deny-all with DNS egress allowed",
    ]
