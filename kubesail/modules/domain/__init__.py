"""
Domain Module - Black Box Interface

Purpose: Prove ownership of custom domains and route them to workloads
Interface: DomainVerifier.create_claim/run_verification/delete_claim
Hidden: DNS queries, retry schedule, certificate and route provisioning
"""

from .models import CustomDomain, DomainStatus
from .resolver import DNSResolver
from .verifier import DomainVerifier

__all__ = ["CustomDomain", "DomainStatus", "DNSResolver", "DomainVerifier"]
