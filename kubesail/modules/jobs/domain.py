"""Custom domain verification job."""

from typing import TYPE_CHECKING, Any, Dict

from .base import Job, JobContext

if TYPE_CHECKING:
    from ..domain.verifier import DomainVerifier


class VerifyDomainJob(Job):
    """One complete verification run for a claim, from pending to success or error."""

    job_type = "verify-domain"

    def __init__(self, verifier: "DomainVerifier", claim_id: str):
        self.verifier = verifier
        self.claim_id = claim_id

    @classmethod
    def from_payload(cls, context: JobContext, payload: Dict[str, Any]) -> "VerifyDomainJob":
        if context.verifier is None:
            raise RuntimeError("domain verifier is not configured")
        return cls(context.verifier, claim_id=payload["claim_id"])

    @property
    def job_id(self) -> str:
        return self.claim_id

    def payload(self) -> Dict[str, Any]:
        return {"claim_id": self.claim_id}

    async def do(self) -> None:
        claim = await self.verifier.get_claim(self.claim_id)
        await self.verifier.run_verification(claim)
