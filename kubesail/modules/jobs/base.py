"""Job abstraction shared by the processor, scheduler and registry."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from ..domain.verifier import DomainVerifier
    from ..state.store import StateStore
    from ..tenant.database import TenantDatabaseManager
    from ..workload.reconciler import WorkloadReconciler


class Job(ABC):
    """
    A self-contained unit of work.

    Jobs carry identifiers only and re-read persisted records when they run,
    so a job reflects the desired state at execution time rather than at
    submission time.
    """

    job_type: str = ""

    @property
    @abstractmethod
    def job_id(self) -> str:
        """Correlation key for logs. Not unique; jobs sharing an id may run concurrently."""

    @abstractmethod
    async def do(self) -> None:
        """Execute the job. Raises on failure."""

    def payload(self) -> Dict[str, Any]:
        """Fields needed to rebuild this job through the registry."""
        return {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.job_type} id={self.job_id}>"


@dataclass
class JobContext:
    """Collaborators handed to jobs built by the registry."""

    store: "StateStore"
    reconciler: "WorkloadReconciler"
    verifier: Optional["DomainVerifier"] = None
    tenants: Optional["TenantDatabaseManager"] = None
