"""Jobs submitted by the cron scheduler."""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..errors import AuditError, KubesailError
from ..workload.models import WorkloadPhase, WorkloadState
from .base import Job, JobContext

if TYPE_CHECKING:
    from ..domain.verifier import DomainVerifier
    from ..state.store import StateStore
    from ..workload.reconciler import WorkloadReconciler

logger = logging.getLogger(__name__)


class AuditJob(Job):
    """
    Re-reconcile every active workload to repair drift.

    One workload failing does not stop the audit; failures are collected
    and raised together at the end.
    """

    job_type = "periodic-audit"

    def __init__(self, store: "StateStore", reconciler: "WorkloadReconciler"):
        self.store = store
        self.reconciler = reconciler

    @classmethod
    def from_payload(cls, context: JobContext, payload: Optional[Dict[str, Any]] = None) -> "AuditJob":
        return cls(context.store, context.reconciler)

    @property
    def job_id(self) -> str:
        return self.job_type

    async def do(self) -> None:
        failures: Dict[str, str] = {}
        audited = 0
        for workload_id in await self.store.list_workload_ids():
            try:
                workload = await self.store.get_workload(workload_id)
                if workload.status != WorkloadState.ACTIVE or not workload.active_version_id:
                    continue
                spec = await self.store.get_workload_spec(workload_id)
                audited += 1
                await self.reconciler.reconcile(spec)
            except KubesailError as e:
                failures[workload_id] = str(e)
                logger.warning(f"[audit] {workload_id}: {e}")
                await self.store.set_workload_phase(workload_id, WorkloadPhase.FAILED, str(e))
                continue
            await self.store.set_workload_phase(workload_id, WorkloadPhase.RUNNING)

        logger.info(f"[audit] Audited {audited} workload(s), {len(failures)} failed")
        if failures:
            raise AuditError(failures)


class DomainCheckJob(Job):
    """Fail claims left pending past their verification window."""

    job_type = "periodic-domain-check"

    def __init__(self, verifier: "DomainVerifier"):
        self.verifier = verifier

    @classmethod
    def from_payload(cls, context: JobContext, payload: Optional[Dict[str, Any]] = None) -> "DomainCheckJob":
        if context.verifier is None:
            raise RuntimeError("domain verifier is not configured")
        return cls(context.verifier)

    @property
    def job_id(self) -> str:
        return self.job_type

    async def do(self) -> None:
        expired = await self.verifier.expire_stale_claims()
        if expired:
            logger.info(f"[customdomain] Expired {len(expired)} stale claim(s)")
