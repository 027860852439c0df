"""Workload jobs: deploy, config/secret sync and teardown."""

import logging
from typing import TYPE_CHECKING, Any, Dict

from ..errors import ClusterError, ReconcileError, RecordNotFoundError
from ..workload.models import (
    VersionStatus,
    WorkloadPhase,
    WorkloadState,
    reserved_env_values,
    workload_name,
)
from .base import Job, JobContext

if TYPE_CHECKING:
    from ..state.store import StateStore
    from ..workload.reconciler import WorkloadReconciler

logger = logging.getLogger(__name__)


class DeployWorkloadJob(Job):
    """Reconcile a workload to one deploy version and record the outcome."""

    job_type = "deploy-workload"

    def __init__(
        self,
        store: "StateStore",
        reconciler: "WorkloadReconciler",
        workload_id: str,
        owner_id: str,
        version_id: str,
    ):
        self.store = store
        self.reconciler = reconciler
        self.workload_id = workload_id
        self.owner_id = owner_id
        self.version_id = version_id

    @classmethod
    def from_payload(cls, context: JobContext, payload: Dict[str, Any]) -> "DeployWorkloadJob":
        return cls(
            context.store,
            context.reconciler,
            workload_id=payload["workload_id"],
            owner_id=payload["owner_id"],
            version_id=str(payload["version_id"]),
        )

    @property
    def job_id(self) -> str:
        return f"{self.workload_id}-{self.owner_id}-{self.version_id}"

    def payload(self) -> Dict[str, Any]:
        return {"workload_id": self.workload_id, "owner_id": self.owner_id, "version_id": self.version_id}

    async def do(self) -> None:
        """
        Deploy the version.

        Logic:
        1. Mark the workload Deploying
        2. Rebuild the spec from the version, workload and tenant records
        3. Reconcile; on failure mark version and workload as failed
        4. On success make the version active and mark the workload Running
        """
        await self.store.set_workload_phase(self.workload_id, WorkloadPhase.DEPLOYING)

        try:
            spec = await self.store.get_deploy_spec(self.version_id)
        except RecordNotFoundError as e:
            await self.store.update_version_status(self.version_id, VersionStatus.ERROR, str(e))
            await self.store.set_workload_phase(self.workload_id, WorkloadPhase.FAILED, str(e))
            raise

        try:
            await self.reconciler.reconcile(spec)
        except ReconcileError as e:
            await self.store.update_version_status(self.version_id, VersionStatus.ERROR, str(e))
            await self.store.update_workload_status(self.workload_id, WorkloadState.ERROR)
            await self.store.set_workload_phase(self.workload_id, WorkloadPhase.FAILED, str(e))
            raise

        await self.store.mark_version_deployed(self.version_id, self.workload_id)
        await self.store.set_workload_phase(self.workload_id, WorkloadPhase.RUNNING)
        logger.info(f"[worker] {spec.name} running version {self.version_id}")


class _SyncJob(Job):
    def __init__(
        self,
        store: "StateStore",
        reconciler: "WorkloadReconciler",
        workload_id: str,
        owner_id: str,
        data: Dict[str, str],
    ):
        self.store = store
        self.reconciler = reconciler
        self.workload_id = workload_id
        self.owner_id = owner_id
        self.data = dict(data)

    @classmethod
    def from_payload(cls, context: JobContext, payload: Dict[str, Any]) -> "_SyncJob":
        data = payload.get("data") or {}
        return cls(
            context.store,
            context.reconciler,
            workload_id=payload["workload_id"],
            owner_id=payload["owner_id"],
            data={str(k): str(v) for k, v in data.items()},
        )

    @property
    def job_id(self) -> str:
        return self.workload_id

    @property
    def name(self) -> str:
        return workload_name(self.workload_id, self.owner_id)

    def payload(self) -> Dict[str, Any]:
        return {"workload_id": self.workload_id, "owner_id": self.owner_id, "data": dict(self.data)}

    async def _sync(self) -> bool:
        raise NotImplementedError

    async def do(self) -> None:
        try:
            synced = await self._sync()
        except ClusterError:
            await self.store.update_workload_status(self.workload_id, WorkloadState.ERROR)
            raise
        if not synced:
            logger.info(f"[worker] {self.name}: not deployed yet, {self.job_type} skipped")
            return
        await self.store.update_workload_status(self.workload_id, WorkloadState.ACTIVE)


class SyncConfigJob(_SyncJob):
    """Replace a workload's general configuration. Reserved keys are ignored."""

    job_type = "sync-config"

    async def _sync(self) -> bool:
        return await self.reconciler.sync_config(self.name, self.data)


class SyncSecretJob(_SyncJob):
    """Replace a workload's secret configuration. Reserved keys are re-applied."""

    job_type = "sync-secret"

    async def _sync(self) -> bool:
        secret = await self.store.get_tenant_secret(self.owner_id)
        reserved = reserved_env_values(self.reconciler.config.gateway_endpoint, self.owner_id, secret)
        return await self.reconciler.sync_secret(self.name, reserved, self.data)


class DeleteWorkloadResourcesJob(Job):
    job_type = "delete-workload-resources"

    def __init__(self, reconciler: "WorkloadReconciler", workload_id: str, owner_id: str):
        self.reconciler = reconciler
        self.workload_id = workload_id
        self.owner_id = owner_id

    @classmethod
    def from_payload(cls, context: JobContext, payload: Dict[str, Any]) -> "DeleteWorkloadResourcesJob":
        return cls(context.reconciler, workload_id=payload["workload_id"], owner_id=payload["owner_id"])

    @property
    def job_id(self) -> str:
        return self.workload_id

    def payload(self) -> Dict[str, Any]:
        return {"workload_id": self.workload_id, "owner_id": self.owner_id}

    async def do(self) -> None:
        await self.reconciler.delete_by_name(workload_name(self.workload_id, self.owner_id))
