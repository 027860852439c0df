import logging
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..domain.models import CustomDomain, DomainStatus
from ..errors import RecordNotFoundError
from ..workload.models import (
    DeployVersion,
    VersionStatus,
    WorkloadPhase,
    WorkloadRecord,
    WorkloadSpec,
    WorkloadState,
)

logger = logging.getLogger(__name__)

# Sets a claim status only if the record exists and is still in the expected
# state. A missing hash reads as nil, so a deleted claim is never recreated.
CLAIM_TRANSITION_SCRIPT = """
if redis.call("HGET", KEYS[1], "status") == ARGV[1] then
    redis.call("HSET", KEYS[1], "status", ARGV[2])
    return 1
end
return 0
"""


def _to_mapping(model: BaseModel) -> Dict[str, str]:
    """Flatten a model into Redis hash fields; None values are omitted."""
    mapping = {}
    for key, value in model.model_dump(mode="json").items():
        if value is None:
            continue
        mapping[key] = str(value)
    return mapping


def _now() -> str:
    return datetime.now(UTC).isoformat()


class StateStore:
    def __init__(self, redis_client):
        """
        Initialize state store.

        Every record is a Redis hash keyed by a stable identifier, and every
        status write is a single-field HSET, so concurrent jobs never need a
        lock to update the same record.

        Args:
            redis_client: Async Redis client (decode_responses=True)
        """
        self.redis = redis_client

    # Key helpers

    @staticmethod
    def _workload_key(workload_id: str) -> str:
        return f"workload:{workload_id}"

    @staticmethod
    def _version_key(version_id: str) -> str:
        return f"version:{version_id}"

    @staticmethod
    def _tenant_key(owner_id: str) -> str:
        return f"tenant:{owner_id}"

    @staticmethod
    def _domain_key(claim_id: str) -> str:
        return f"domain:{claim_id}"

    async def _load(self, key: str) -> Dict[str, Any]:
        data = await self.redis.hgetall(key)
        if not data:
            raise RecordNotFoundError(f"{key} not found")
        return data

    # Workloads

    async def save_workload(self, record: WorkloadRecord) -> None:
        """Create or overwrite a workload record."""
        await self.redis.hset(self._workload_key(record.workload_id), mapping=_to_mapping(record))
        await self.redis.sadd("workloads", record.workload_id)

    async def get_workload(self, workload_id: str) -> WorkloadRecord:
        return WorkloadRecord(**await self._load(self._workload_key(workload_id)))

    async def list_workload_ids(self) -> List[str]:
        return sorted(await self.redis.smembers("workloads"))

    async def update_workload_status(self, workload_id: str, status: WorkloadState) -> None:
        await self.redis.hset(
            self._workload_key(workload_id),
            mapping={"status": status.value, "updated_at": _now()},
        )

    async def set_workload_phase(self, workload_id: str, phase: WorkloadPhase, message: str = "") -> None:
        """Write the convergence phase polled by the request layer."""
        await self.redis.hset(
            self._workload_key(workload_id),
            mapping={"phase": phase.value, "phase_message": message, "updated_at": _now()},
        )

    # Deploy versions

    async def save_version(self, version: DeployVersion) -> None:
        await self.redis.hset(self._version_key(version.version_id), mapping=_to_mapping(version))

    async def get_version(self, version_id: str) -> DeployVersion:
        return DeployVersion(**await self._load(self._version_key(version_id)))

    async def update_version_status(self, version_id: str, status: VersionStatus, message: str = "") -> None:
        await self.redis.hset(
            self._version_key(version_id),
            mapping={"status": status.value, "message": message},
        )

    async def mark_version_deployed(self, version_id: str, workload_id: str) -> None:
        """Record a successful deploy: version succeeded and became the active one."""
        await self.update_version_status(version_id, VersionStatus.SUCCESS)
        await self.redis.hset(
            self._workload_key(workload_id),
            mapping={
                "active_version_id": version_id,
                "status": WorkloadState.ACTIVE.value,
                "updated_at": _now(),
            },
        )

    # Tenants

    async def save_tenant_secret(self, owner_id: str, secret_key: str) -> None:
        await self.redis.hset(self._tenant_key(owner_id), "secret_key", secret_key)

    async def get_tenant_secret(self, owner_id: str) -> str:
        secret = await self.redis.hget(self._tenant_key(owner_id), "secret_key")
        if secret is None:
            raise RecordNotFoundError(f"tenant {owner_id} has no secret key")
        return secret

    # Composite reads

    async def get_deploy_spec(self, version_id: str) -> WorkloadSpec:
        """
        Build the descriptor for a specific deploy version.

        Raises:
            RecordNotFoundError: version, workload or tenant secret missing
        """
        version = await self.get_version(version_id)
        workload = await self.get_workload(version.workload_id)
        secret = await self.get_tenant_secret(workload.owner_id)
        return version.to_spec(workload.owner_id, secret)

    async def get_workload_spec(self, workload_id: str) -> WorkloadSpec:
        """Build the descriptor for a workload's active version."""
        workload = await self.get_workload(workload_id)
        if not workload.active_version_id:
            raise RecordNotFoundError(f"workload {workload_id} has no active version")
        version = await self.get_version(workload.active_version_id)
        secret = await self.get_tenant_secret(workload.owner_id)
        return version.to_spec(workload.owner_id, secret)

    # Custom domains

    async def save_claim(self, claim: CustomDomain) -> None:
        await self.redis.hset(self._domain_key(claim.claim_id), mapping=_to_mapping(claim))
        await self.redis.sadd("domains", claim.claim_id)
        await self.redis.sadd(f"domains:owner:{claim.owner_id}", claim.claim_id)

    async def get_claim(self, claim_id: str) -> CustomDomain:
        return CustomDomain(**await self._load(self._domain_key(claim_id)))

    async def transition_claim_status(self, claim_id: str, expected: DomainStatus, status: DomainStatus) -> bool:
        """
        Atomically move a claim from expected to status.

        Returns:
            False if the claim is gone or no longer in the expected state
        """
        applied = await self.redis.eval(
            CLAIM_TRANSITION_SCRIPT, 1, self._domain_key(claim_id), expected.value, status.value
        )
        return bool(applied)

    async def list_claims(self, owner_id: Optional[str] = None) -> List[CustomDomain]:
        """List claims, optionally restricted to one owner. Vanished records are skipped."""
        index = f"domains:owner:{owner_id}" if owner_id else "domains"
        claims = []
        for claim_id in sorted(await self.redis.smembers(index)):
            try:
                claims.append(await self.get_claim(claim_id))
            except RecordNotFoundError:
                logger.debug(f"Claim {claim_id} indexed but missing, skipping")
        return claims

    async def delete_claim(self, claim_id: str) -> bool:
        """
        Delete a claim record and its index entries.

        Returns:
            True if a record was removed
        """
        key = self._domain_key(claim_id)
        owner_id = await self.redis.hget(key, "owner_id")
        removed = await self.redis.delete(key)
        await self.redis.srem("domains", claim_id)
        if owner_id:
            await self.redis.srem(f"domains:owner:{owner_id}", claim_id)
        return bool(removed)
