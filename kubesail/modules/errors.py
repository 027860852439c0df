"""
Error types shared by kubesail modules.

Every failure in the core is scoped to one workload, claim or tenant; none of
these exceptions is fatal to the process.
"""

from typing import Optional


class KubesailError(Exception):
    """Base class for all kubesail errors."""


class ClusterError(KubesailError):
    """Kubernetes API returned an error response or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.reason = reason


class NotFoundError(ClusterError):
    """Requested cluster resource does not exist (HTTP 404)."""


class ConflictError(ClusterError):
    """Write rejected by the API server (HTTP 409)."""


class ReconcileError(KubesailError):
    """An ensure-step failed; the reconcile aborted at that step."""

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


class ProvisioningError(KubesailError):
    """Custom domain provisioning failed after successful verification."""

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"create {step} failed: {cause}")
        self.step = step
        self.cause = cause


class DNSLookupError(KubesailError):
    """DNS query failed (NXDOMAIN, no answer, timeout, ...)."""


class RecordNotFoundError(KubesailError):
    """Persisted descriptor is missing from the state store."""


class ProcessorClosedError(KubesailError):
    """Job submitted to a processor that is no longer accepting work."""


class UnknownJobTypeError(KubesailError):
    """No job class is registered for the given discriminator."""


class AuditError(KubesailError):
    """One or more workloads failed to converge during a periodic audit."""

    def __init__(self, failures: dict):
        names = ", ".join(sorted(failures))
        super().__init__(f"{len(failures)} workload(s) failed to converge: {names}")
        self.failures = failures


class TenantDatabaseError(KubesailError):
    """Tenant database provisioning failed."""
