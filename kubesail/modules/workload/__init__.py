"""
Workload Module - Black Box Interface

Purpose: Converge a workload's cluster resources to its desired state
Interface: WorkloadReconciler.reconcile(), WorkloadReconciler.delete_all()
Hidden: Resource construction, idempotent ensure logic, reserved key policy
"""

from .models import (
    RESERVED_ENV_KEYS,
    DeployVersion,
    VersionStatus,
    WorkloadPhase,
    WorkloadRecord,
    WorkloadSpec,
    WorkloadState,
    workload_name,
)
from .reconciler import STEPS, WorkloadReconciler

__all__ = [
    "RESERVED_ENV_KEYS",
    "STEPS",
    "DeployVersion",
    "VersionStatus",
    "WorkloadPhase",
    "WorkloadReconciler",
    "WorkloadRecord",
    "WorkloadSpec",
    "WorkloadState",
    "workload_name",
]
