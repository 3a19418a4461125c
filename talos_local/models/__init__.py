"""Data models for configuration, run outcomes and cluster state."""

from talos_local.models.cluster import ClusterState, NodeStatus, PodStatus
from talos_local.models.config import ExecutionContext, PathSet, ProvisionConfig
from talos_local.models.results import (
    ProvisionOutputs,
    ReadinessResult,
    StepResult,
    StepStatus,
)

__all__ = [
    "ClusterState",
    "ExecutionContext",
    "NodeStatus",
    "PathSet",
    "PodStatus",
    "ProvisionConfig",
    "ProvisionOutputs",
    "ReadinessResult",
    "StepResult",
    "StepStatus",
]
