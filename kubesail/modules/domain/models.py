"""Custom domain claim models."""

import secrets
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class DomainStatus(str, Enum):
    """Verification state. PENDING moves exactly once to SUCCESS or ERROR."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


def generate_verify_token() -> str:
    """Random 32 hex character verification token."""
    return secrets.token_hex(16)


def strip_trailing_dot(name: str) -> str:
    return name[:-1] if name.endswith(".") else name


class CustomDomain(BaseModel):
    """A custom domain claim and the DNS records proving ownership."""

    claim_id: str
    domain: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    txt_name: str
    txt_value: str
    status: DomainStatus = DomainStatus.PENDING
    owner_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def new(cls, owner_id: str, domain: str, target: str, txt_prefix: str = "_verify") -> "CustomDomain":
        """Build a fresh pending claim with generated identifiers."""
        return cls(
            claim_id=generate_verify_token()[:8],
            domain=domain,
            target=target,
            txt_name=f"{txt_prefix}.{domain}",
            txt_value=f"kubesail-verify={generate_verify_token()}",
            owner_id=owner_id,
        )

    @property
    def resource_name(self) -> str:
        """Name shared by the service, certificate and ingress route."""
        return f"custom-domain-{self.claim_id}"

    @property
    def tls_secret_name(self) -> str:
        return f"custom-domain-tls-{self.claim_id}"

    @property
    def labels(self) -> dict:
        return {"app": "custom-domain", "owner-id": self.owner_id}

    def matches_target(self, cname: str) -> bool:
        """Compare a CNAME answer to the claimed target ignoring trailing dots."""
        return strip_trailing_dot(cname).lower() == strip_trailing_dot(self.target).lower()
