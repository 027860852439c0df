"""
Custom domain verification.

A claim starts pending. Exactly one verification run polls DNS on a fixed
schedule until both the TXT proof and the CNAME target check pass, then
provisions routing and a certificate. The claim status changes exactly once,
to success or error; a provisioning failure after success flips it to error.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, List, Optional

from ...config.provider import ClusterConfig, VerificationConfig
from ..cluster import (
    CERTIFICATE,
    INGRESS_ROUTE,
    SERVICE,
    CertificateResource,
    ClusterClient,
    ExternalNameServiceResource,
    IngressRouteResource,
    Resource,
)
from ..errors import ClusterError, ConflictError, DNSLookupError, ProvisioningError
from ..jobs.domain import VerifyDomainJob
from .models import CustomDomain, DomainStatus
from .resolver import DNSResolver

if TYPE_CHECKING:
    from ..jobs.processor import TaskProcessor
    from ..state.store import StateStore

logger = logging.getLogger(__name__)

CUSTOM_DOMAIN_PORT = 443


class DomainVerifier:
    def __init__(
        self,
        store: "StateStore",
        cluster: ClusterClient,
        resolver: DNSResolver,
        cluster_config: ClusterConfig,
        verification_config: VerificationConfig,
        processor: Optional["TaskProcessor"] = None,
    ):
        """
        Initialize verifier.

        Args:
            store: Claim persistence
            cluster: Cluster client for provisioning and teardown
            resolver: DNS resolver
            cluster_config: Ingress namespace and certificate issuer
            verification_config: Poll interval and attempt budget
            processor: Bounded processor that runs verification jobs
        """
        self.store = store
        self.cluster = cluster
        self.resolver = resolver
        self.cluster_config = cluster_config
        self.config = verification_config
        self.processor = processor

    @property
    def namespace(self) -> str:
        return self.cluster_config.ingress_namespace

    async def create_claim(self, owner_id: str, domain: str, target: str) -> CustomDomain:
        """
        Persist a new pending claim and schedule its verification run.

        Returns:
            The claim, including the TXT record the owner must publish
        """
        if self.processor is None:
            raise RuntimeError("DomainVerifier has no verification processor")

        claim = CustomDomain.new(owner_id, domain, target, txt_prefix=self.config.txt_prefix)
        await self.store.save_claim(claim)
        logger.info(
            f"[customdomain] Created claim {claim.claim_id}: {domain} -> {target} "
            f"(TXT: {claim.txt_name} = {claim.txt_value})"
        )
        await self.processor.submit(VerifyDomainJob(self, claim.claim_id))
        return claim

    async def get_claim(self, claim_id: str) -> CustomDomain:
        return await self.store.get_claim(claim_id)

    async def list_claims(self, owner_id: Optional[str] = None) -> List[CustomDomain]:
        return await self.store.list_claims(owner_id)

    # DNS checks

    async def check_txt(self, claim: CustomDomain) -> bool:
        """True if the expected value is among the TXT records of txt_name."""
        try:
            records = await self.resolver.lookup_txt(claim.txt_name)
        except DNSLookupError as e:
            logger.info(f"[customdomain] {e}")
            return False
        if claim.txt_value in records:
            return True
        logger.info(
            f"[customdomain] TXT mismatch for {claim.txt_name} "
            f"(expected: {claim.txt_value}, found: {records})"
        )
        return False

    async def check_cname(self, claim: CustomDomain) -> bool:
        """True if the domain's canonical name equals the claimed target."""
        try:
            cname = await self.resolver.lookup_cname(claim.domain)
        except DNSLookupError as e:
            logger.info(f"[customdomain] {e}")
            return False
        if claim.matches_target(cname):
            return True
        logger.info(f"[customdomain] CNAME mismatch for {claim.domain} (expected: {claim.target}, found: {cname})")
        return False

    # Verification run

    async def run_verification(self, claim: CustomDomain) -> DomainStatus:
        """
        Poll DNS until both checks pass or the attempt budget is spent.

        Each attempt waits one interval first, so the owner has time to
        publish records after creating the claim.

        Every status write is a transition out of pending, so a claim deleted
        or expired while the run was waiting is left as it is.

        Returns:
            Final status written to the store; pending if the claim left
            pending elsewhere

        Raises:
            ProvisioningError: verification passed but provisioning failed
        """
        if claim.status != DomainStatus.PENDING:
            logger.warning(f"[customdomain] Claim {claim.claim_id} is {claim.status.value}, not verifying")
            return claim.status

        attempts = self.config.max_attempts
        for attempt in range(1, attempts + 1):
            await asyncio.sleep(self.config.interval)

            txt_ok = await self.check_txt(claim)
            cname_ok = await self.check_cname(claim)
            if txt_ok and cname_ok:
                logger.info(f"[customdomain] Verified {claim.domain} (attempt {attempt}/{attempts})")
                return await self._complete(claim)

            logger.info(
                f"[customdomain] Attempt {attempt}/{attempts} for {claim.domain} "
                f"(TXT: {txt_ok}, CNAME: {cname_ok})"
            )

        if not await self.store.transition_claim_status(claim.claim_id, DomainStatus.PENDING, DomainStatus.ERROR):
            logger.info(f"[customdomain] Claim {claim.claim_id} left pending during verification, status unchanged")
            return claim.status
        claim.status = DomainStatus.ERROR
        logger.warning(f"[customdomain] Verification failed for {claim.domain} after {attempts} attempts")
        return claim.status

    async def _complete(self, claim: CustomDomain) -> DomainStatus:
        """
        Mark the claim verified and provision it.

        Raises:
            ProvisioningError: after the claim has been flipped to error
        """
        if not await self.store.transition_claim_status(claim.claim_id, DomainStatus.PENDING, DomainStatus.SUCCESS):
            logger.info(f"[customdomain] Claim {claim.claim_id} deleted or expired during verification, not provisioning")
            return claim.status

        claim.status = DomainStatus.SUCCESS
        try:
            await self.provision(claim)
        except ProvisioningError as e:
            logger.error(f"[customdomain] Provisioning failed for {claim.domain}: {e}")
            if await self.store.transition_claim_status(claim.claim_id, DomainStatus.SUCCESS, DomainStatus.ERROR):
                claim.status = DomainStatus.ERROR
            raise
        return claim.status

    # Provisioning

    def build_resources(self, claim: CustomDomain) -> List[tuple]:
        """(step, resource) pairs in provisioning order."""
        name = claim.resource_name
        labels = claim.labels
        return [
            ("service", ExternalNameServiceResource(
                name=name, namespace=self.namespace, labels=labels, external_name=claim.target,
            )),
            ("certificate", CertificateResource(
                name=name,
                namespace=self.namespace,
                labels=labels,
                secret_name=claim.tls_secret_name,
                dns_names=[claim.domain],
                issuer_name=self.cluster_config.certificate_issuer,
            )),
            ("ingressroute", IngressRouteResource(
                name=name,
                namespace=self.namespace,
                labels=labels,
                host=claim.domain,
                service_name=name,
                service_port=CUSTOM_DOMAIN_PORT,
                tls_secret=claim.tls_secret_name,
            )),
        ]

    async def provision(self, claim: CustomDomain) -> None:
        """
        Create service, certificate and ingress route, in that order.

        Raises:
            ProvisioningError: first failing step; later steps are skipped
        """
        for step, resource in self.build_resources(claim):
            await self._create(step, resource)
            logger.info(f"[customdomain] Created {resource.kind.kind} {resource.name} for {claim.domain}")

    async def _create(self, step: str, resource: Resource) -> None:
        try:
            await self.cluster.create(resource)
        except ConflictError:
            logger.info(f"[customdomain] {resource.kind.kind} {resource.name} already exists")
        except ClusterError as e:
            raise ProvisioningError(step, e) from e

    # Teardown

    async def delete_claim(self, claim_id: str) -> bool:
        """
        Remove the claim record, then best-effort delete its cluster resources.

        Returns:
            True if a record existed
        """
        removed = await self.store.delete_claim(claim_id)
        name = f"custom-domain-{claim_id}"
        for kind in (SERVICE, INGRESS_ROUTE, CERTIFICATE):
            try:
                await self.cluster.delete_if_exists(kind, self.namespace, name)
            except ClusterError as e:
                logger.warning(f"[customdomain] delete {kind.kind} {name} failed: {e}")
        logger.info(f"[customdomain] Deleted custom domain resources for {claim_id}")
        return removed

    # Housekeeping

    async def expire_stale_claims(self, now: Optional[datetime] = None) -> List[str]:
        """
        Move claims pending past their verification window to error.

        A pending claim older than the window usually has no live run left,
        e.g. because the process restarted mid-verification. A run that was
        only delayed in the queue finds the claim no longer pending and
        finishes without writing or provisioning.

        Returns:
            Expired claim ids
        """
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.config.window)
        expired = []
        for claim in await self.store.list_claims():
            if claim.status == DomainStatus.PENDING and claim.created_at < cutoff:
                if not await self.store.transition_claim_status(
                    claim.claim_id, DomainStatus.PENDING, DomainStatus.ERROR
                ):
                    continue
                expired.append(claim.claim_id)
                logger.warning(f"[customdomain] Claim {claim.claim_id} for {claim.domain} expired while pending")
        return expired
