"""
Workload data models.

WorkloadSpec is the desired-state descriptor the reconciler converges to. It
is rebuilt from persisted records at job execution time and never cached.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_CPU = "1"
DEFAULT_MEMORY = "500Mi"
DEFAULT_DISK = "2Gi"

# System-managed variables. Forced into the workload Secret and stripped from
# its ConfigMap on every reconcile.
RESERVED_ENV_KEYS = ("KUBESAIL_API_ENDPOINT", "KUBESAIL_OWNER_ID", "KUBESAIL_OWNER_SECRET")


def workload_name(workload_id: str, owner_id: str) -> str:
    """Canonical resource name shared by every sub-resource of a workload."""
    return f"w-{workload_id}-{owner_id}"


def reserved_env_values(api_endpoint: str, owner_id: str, owner_secret: str) -> Dict[str, str]:
    """Reserved key values for one owner."""
    return dict(zip(RESERVED_ENV_KEYS, (api_endpoint, owner_id, owner_secret)))


class WorkloadPhase(str, Enum):
    """Convergence phase reported back to the request layer."""

    DEPLOYING = "Deploying"
    FAILED = "Failed"
    RUNNING = "Running"


class WorkloadState(str, Enum):
    """Lifecycle status of a workload record."""

    ACTIVE = "active"
    ERROR = "error"
    DELETED = "deleted"


class VersionStatus(str, Enum):
    """Status of a deploy version."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class WorkloadSpec(BaseModel):
    """Desired runtime shape of one workload."""

    workload_id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    owner_secret: str = ""
    image: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    cpu: str = ""
    memory: str = ""
    disk: str = ""
    max_replicas: int = 0
    region: Optional[str] = None

    @property
    def name(self) -> str:
        return workload_name(self.workload_id, self.owner_id)

    @property
    def config_name(self) -> str:
        return f"{self.name}-env"

    @property
    def secret_name(self) -> str:
        return f"{self.name}-secret"

    @property
    def labels(self) -> Dict[str, str]:
        return {
            "app": self.name,
            "workload-id": self.workload_id,
            "owner-id": self.owner_id,
        }

    @property
    def replicas(self) -> int:
        return self.max_replicas if self.max_replicas > 0 else 1

    def resource_quantities(self) -> Dict[str, str]:
        """Limits/requests with a default per blank field."""
        return {
            "cpu": self.cpu or DEFAULT_CPU,
            "memory": self.memory or DEFAULT_MEMORY,
            "ephemeral-storage": self.disk or DEFAULT_DISK,
        }

    def host(self, base_domain: str) -> str:
        """External hostname routed to this workload."""
        return f"{self.workload_id}-{self.owner_id}.worker.{base_domain}"

    def reserved_env(self, api_endpoint: str) -> Dict[str, str]:
        """Values of the reserved keys for this workload."""
        return reserved_env_values(api_endpoint, self.owner_id, self.owner_secret)


class WorkloadRecord(BaseModel):
    """Persisted workload row."""

    workload_id: str
    owner_id: str
    active_version_id: Optional[str] = None
    status: WorkloadState = WorkloadState.ACTIVE
    phase: Optional[WorkloadPhase] = None
    phase_message: str = ""
    updated_at: Optional[datetime] = None


class DeployVersion(BaseModel):
    """Persisted deploy version: the versioned part of a workload's desired state."""

    version_id: str
    workload_id: str
    image: str
    port: int
    cpu: str = ""
    memory: str = ""
    disk: str = ""
    max_replicas: int = 0
    region: Optional[str] = None
    status: VersionStatus = VersionStatus.PENDING
    message: str = ""

    def to_spec(self, owner_id: str, owner_secret: str) -> WorkloadSpec:
        """Combine with owner identity into a reconcilable descriptor."""
        return WorkloadSpec(
            workload_id=self.workload_id,
            owner_id=owner_id,
            owner_secret=owner_secret,
            image=self.image,
            port=self.port,
            cpu=self.cpu,
            memory=self.memory,
            disk=self.disk,
            max_replicas=self.max_replicas,
            region=self.region or None,
        )


def strip_reserved(data: Dict[str, str]) -> Dict[str, str]:
    """Copy of data without reserved keys."""
    return {k: v for k, v in data.items() if k not in RESERVED_ENV_KEYS}


def present_reserved(data: Dict[str, str]) -> List[str]:
    """Reserved keys found in data."""
    return [k for k in RESERVED_ENV_KEYS if k in data]
