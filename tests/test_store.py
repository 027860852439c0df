"""
Tests for the Redis-backed state store.
"""

import os
import sys
from datetime import UTC, datetime, timedelta

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubesail.modules.domain import CustomDomain, DomainStatus
from kubesail.modules.errors import RecordNotFoundError
from kubesail.modules.state import StateStore
from kubesail.modules.workload import (
    DeployVersion,
    VersionStatus,
    WorkloadPhase,
    WorkloadRecord,
    WorkloadState,
)


@pytest.fixture
def store(mock_redis_with_data):
    return StateStore(mock_redis_with_data)


# ============================================================================
# Workload Tests
# ============================================================================

@pytest.mark.asyncio
async def test_workload_round_trip(store, mock_redis_with_data):
    """Test saved workloads are readable and indexed"""
    await store.save_workload(WorkloadRecord(workload_id="abc123", owner_id="u1"))

    workload = await store.get_workload("abc123")

    assert workload.owner_id == "u1"
    assert workload.status == WorkloadState.ACTIVE
    assert workload.active_version_id is None
    assert await store.list_workload_ids() == ["abc123"]
    assert "active_version_id" not in mock_redis_with_data._hashes["workload:abc123"]


@pytest.mark.asyncio
async def test_missing_workload(store):
    """Test reading an unknown workload raises RecordNotFoundError"""
    with pytest.raises(RecordNotFoundError):
        await store.get_workload("nope")


@pytest.mark.asyncio
async def test_phase_and_status_updates(store):
    """Test phase and status writes only touch their fields"""
    await store.save_workload(WorkloadRecord(workload_id="abc123", owner_id="u1"))

    await store.set_workload_phase("abc123", WorkloadPhase.FAILED, "deployment: boom")
    await store.update_workload_status("abc123", WorkloadState.ERROR)

    workload = await store.get_workload("abc123")
    assert workload.phase == WorkloadPhase.FAILED
    assert workload.phase_message == "deployment: boom"
    assert workload.status == WorkloadState.ERROR
    assert workload.owner_id == "u1"
    assert workload.updated_at is not None


# ============================================================================
# Version and Spec Tests
# ============================================================================

@pytest.mark.asyncio
async def test_deploy_spec_from_records(store):
    """Test the deploy descriptor combines version, workload and tenant secret"""
    await store.save_workload(WorkloadRecord(workload_id="abc123", owner_id="u1"))
    await store.save_version(DeployVersion(
        version_id="v1", workload_id="abc123", image="nginx:latest", port=8080, region="eu",
    ))
    await store.save_tenant_secret("u1", "sk-1")

    spec = await store.get_deploy_spec("v1")

    assert spec.name == "w-abc123-u1"
    assert spec.port == 8080
    assert spec.owner_secret == "sk-1"
    assert spec.region == "eu"


@pytest.mark.asyncio
async def test_deploy_spec_requires_tenant_secret(store):
    """Test a missing tenant secret fails spec construction"""
    await store.save_workload(WorkloadRecord(workload_id="abc123", owner_id="u1"))
    await store.save_version(DeployVersion(version_id="v1", workload_id="abc123", image="nginx", port=80))

    with pytest.raises(RecordNotFoundError):
        await store.get_deploy_spec("v1")


@pytest.mark.asyncio
async def test_mark_version_deployed(store):
    """Test a deployed version becomes the active one"""
    await store.save_workload(WorkloadRecord(workload_id="abc123", owner_id="u1", status=WorkloadState.ERROR))
    await store.save_version(DeployVersion(version_id="v1", workload_id="abc123", image="nginx", port=80))
    await store.save_tenant_secret("u1", "sk-1")

    await store.mark_version_deployed("v1", "abc123")

    workload = await store.get_workload("abc123")
    assert workload.active_version_id == "v1"
    assert workload.status == WorkloadState.ACTIVE
    assert (await store.get_version("v1")).status == VersionStatus.SUCCESS
    assert (await store.get_workload_spec("abc123")).image == "nginx"


@pytest.mark.asyncio
async def test_workload_spec_without_active_version(store):
    """Test a never-deployed workload has no current spec"""
    await store.save_workload(WorkloadRecord(workload_id="abc123", owner_id="u1"))

    with pytest.raises(RecordNotFoundError):
        await store.get_workload_spec("abc123")


# ============================================================================
# Claim Tests
# ============================================================================

@pytest.mark.asyncio
async def test_claim_lifecycle(store):
    """Test claims are saved, listed per owner, updated and deleted"""
    a = CustomDomain.new("u1", "a.example.com", "abc123-u1.worker.app238.com")
    b = CustomDomain.new("u2", "b.example.com", "zzz-u2.worker.app238.com")
    await store.save_claim(a)
    await store.save_claim(b)

    assert [c.claim_id for c in await store.list_claims("u1")] == [a.claim_id]
    assert len(await store.list_claims()) == 2

    assert await store.transition_claim_status(a.claim_id, DomainStatus.PENDING, DomainStatus.SUCCESS) is True
    assert (await store.get_claim(a.claim_id)).status == DomainStatus.SUCCESS

    assert await store.delete_claim(a.claim_id) is True
    assert await store.delete_claim(a.claim_id) is False
    assert await store.list_claims("u1") == []
    with pytest.raises(RecordNotFoundError):
        await store.get_claim(a.claim_id)


@pytest.mark.asyncio
async def test_claim_created_at_round_trip(store):
    """Test claim timestamps survive persistence"""
    claim = CustomDomain.new("u1", "a.example.com", "abc123-u1.worker.app238.com")
    claim.created_at = datetime.now(UTC) - timedelta(hours=1)
    await store.save_claim(claim)

    loaded = await store.get_claim(claim.claim_id)

    assert loaded.created_at == claim.created_at


@pytest.mark.asyncio
async def test_claim_transition_requires_expected_status(store):
    """Test a transition from the wrong status leaves the claim unchanged"""
    claim = CustomDomain.new("u1", "a.example.com", "abc123-u1.worker.app238.com")
    await store.save_claim(claim)
    await store.transition_claim_status(claim.claim_id, DomainStatus.PENDING, DomainStatus.ERROR)

    applied = await store.transition_claim_status(claim.claim_id, DomainStatus.PENDING, DomainStatus.SUCCESS)

    assert applied is False
    assert (await store.get_claim(claim.claim_id)).status == DomainStatus.ERROR


@pytest.mark.asyncio
async def test_claim_transition_does_not_recreate_deleted_claim(store, mock_redis_with_data):
    """Test a transition on a deleted claim writes nothing"""
    claim = CustomDomain.new("u1", "a.example.com", "abc123-u1.worker.app238.com")
    await store.save_claim(claim)
    await store.delete_claim(claim.claim_id)

    applied = await store.transition_claim_status(claim.claim_id, DomainStatus.PENDING, DomainStatus.ERROR)

    assert applied is False
    assert f"domain:{claim.claim_id}" not in mock_redis_with_data._hashes
    with pytest.raises(RecordNotFoundError):
        await store.get_claim(claim.claim_id)
