"""
Internal API data models.

Shapes of the requests the request layer sends to the processing core.
"""

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from ..domain.models import CustomDomain, DomainStatus

# Request Models (API Input)


class AcceptTaskRequest(BaseModel):
    """Submit a job by discriminator."""

    task_type: str = Field(..., description="Job discriminator, e.g. deploy-workload", min_length=1)
    timestamp: int = Field(..., description="Submission time (unix seconds)", gt=0)
    data: Dict[str, Any] = Field(default_factory=dict, description="Job payload")


class CreateDomainRequest(BaseModel):
    """Claim a custom domain for an owner."""

    owner_id: str = Field(..., min_length=1)
    domain: str = Field(
        ...,
        description="Domain to route, e.g. shop.example.com",
        min_length=1,
        max_length=253,
        pattern=r"^[A-Za-z0-9]([A-Za-z0-9.-]*[A-Za-z0-9])?$",
    )
    target: str = Field(..., description="CNAME target the domain must point to", min_length=1)


# Response Models (API Output)


class AcceptTaskResponse(BaseModel):
    task_type: str
    job_id: str
    status: str = "accepted"


class DomainResponse(BaseModel):
    """A claim as returned to the request layer."""

    claim_id: str
    domain: str
    target: str
    txt_name: str
    txt_value: str
    status: DomainStatus
    owner_id: str
    created_at: datetime

    @classmethod
    def from_claim(cls, claim: CustomDomain) -> "DomainResponse":
        return cls(**claim.model_dump())


class DomainListResponse(BaseModel):
    domains: List[DomainResponse]
