"""Tenant jobs: database provisioning for new owners and their data resources."""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from .base import Job, JobContext

if TYPE_CHECKING:
    from ..tenant.database import TenantDatabaseManager

logger = logging.getLogger(__name__)


class RegisterTenantJob(Job):
    """Initialize the database of a newly registered owner."""

    job_type = "register-new-tenant"

    def __init__(self, tenants: Optional["TenantDatabaseManager"], owner_id: str):
        self.tenants = tenants
        self.owner_id = owner_id

    @classmethod
    def from_payload(cls, context: JobContext, payload: Dict[str, Any]) -> "RegisterTenantJob":
        return cls(context.tenants, owner_id=payload["owner_id"])

    @property
    def job_id(self) -> str:
        return self.owner_id

    def payload(self) -> Dict[str, Any]:
        return {"owner_id": self.owner_id}

    async def do(self) -> None:
        if self.tenants is None:
            logger.warning(f"Tenant databases not configured, skipping init for {self.owner_id}")
            return
        await self.tenants.init_tenant(self.owner_id)


class _DataResourceJob(Job):
    def __init__(self, tenants: "TenantDatabaseManager", owner_id: str, resource_id: str):
        self.tenants = tenants
        self.owner_id = owner_id
        self.resource_id = resource_id

    @classmethod
    def from_payload(cls, context: JobContext, payload: Dict[str, Any]) -> "_DataResourceJob":
        if context.tenants is None:
            raise RuntimeError("tenant databases are not configured")
        return cls(context.tenants, owner_id=payload["owner_id"], resource_id=str(payload["resource_id"]))

    @property
    def job_id(self) -> str:
        return f"{self.owner_id}-{self.resource_id}"

    def payload(self) -> Dict[str, Any]:
        return {"owner_id": self.owner_id, "resource_id": self.resource_id}


class CreateDataResourceJob(_DataResourceJob):
    job_type = "create-data-resource"

    async def do(self) -> None:
        await self.tenants.create_schema(self.owner_id, self.resource_id)


class DeleteDataResourceJob(_DataResourceJob):
    job_type = "delete-data-resource"

    async def do(self) -> None:
        await self.tenants.delete_schema(self.owner_id, self.resource_id)
