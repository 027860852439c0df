"""
Shared pytest fixtures for Kubesail tests.

This module provides common fixtures including:
- FakeCluster: In-memory Kubernetes API recording every mutation
- FakeResolver: Scriptable DNS answers
- Redis mocks with in-memory hashes and sets for state store tests
- Typed configuration objects
"""

import copy
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubesail.config.provider import ClusterConfig, TenantDatabaseConfig, VerificationConfig
from kubesail.modules.cluster import Resource, ResourceKind
from kubesail.modules.errors import ConflictError, DNSLookupError, NotFoundError


# =============================================================================
# Cluster Fake
# =============================================================================

@dataclass
class Mutation:
    """Record of a write made against the fake cluster."""
    verb: str
    kind: str
    namespace: str
    name: str
    resource_version: Optional[str] = None


class FakeCluster:
    """
    In-memory stand-in for ClusterClient.

    Stores manifests exactly as the real client would send them, hands out
    increasing resourceVersions and records every create/update/delete.

    Usage:
        def test_something(fake_cluster):
            fake_cluster.fail("create", "Deployment", ClusterError("boom"))
            ...
            assert fake_cluster.mutations == []
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.mutations: List[Mutation] = []
        self.gets: List[Tuple[str, str, str]] = []
        self._failures: Dict[Tuple[str, str], Exception] = {}
        self._version = 0

    def fail(self, verb: str, kind: str, error: Exception) -> "FakeCluster":
        """Make every `verb` on `kind` raise error."""
        self._failures[(verb, kind)] = error
        return self

    def _check(self, verb: str, kind: str) -> None:
        error = self._failures.get((verb, kind))
        if error is not None:
            raise error

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def put(self, kind: ResourceKind, namespace: str, name: str, manifest: Dict[str, Any]) -> None:
        """Seed an object without recording a mutation."""
        manifest = copy.deepcopy(manifest)
        manifest.setdefault("metadata", {})
        manifest["metadata"].setdefault("name", name)
        manifest["metadata"]["resourceVersion"] = self._next_version()
        self.objects[(kind.kind, namespace, name)] = manifest

    def stored(self, kind: ResourceKind, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        return self.objects.get((kind.kind, namespace, name))

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Dict[str, Any]:
        self.gets.append((kind.kind, namespace, name))
        self._check("get", kind.kind)
        key = (kind.kind, namespace, name)
        if key not in self.objects:
            raise NotFoundError(f'{kind.plural} "{name}" not found', status=404, reason="NotFound")
        return copy.deepcopy(self.objects[key])

    async def create(self, resource: Resource) -> Dict[str, Any]:
        kind = resource.kind.kind
        self._check("create", kind)
        key = (kind, resource.namespace, resource.name)
        if key in self.objects:
            raise ConflictError(f'{resource.kind.plural} "{resource.name}" already exists', status=409)
        manifest = resource.to_manifest()
        manifest["metadata"]["resourceVersion"] = self._next_version()
        self.objects[key] = manifest
        self.mutations.append(Mutation("create", kind, resource.namespace, resource.name))
        return copy.deepcopy(manifest)

    async def update(self, resource: Resource, resource_version: Optional[str] = None) -> Dict[str, Any]:
        kind = resource.kind.kind
        self._check("update", kind)
        key = (kind, resource.namespace, resource.name)
        if key not in self.objects:
            raise NotFoundError(f'{resource.kind.plural} "{resource.name}" not found', status=404)
        live_version = self.objects[key]["metadata"]["resourceVersion"]
        if resource_version is not None and resource_version != live_version:
            raise ConflictError("the object has been modified", status=409)
        manifest = resource.to_manifest(resource_version)
        manifest["metadata"]["resourceVersion"] = self._next_version()
        self.objects[key] = manifest
        self.mutations.append(Mutation("update", kind, resource.namespace, resource.name, resource_version))
        return copy.deepcopy(manifest)

    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        self._check("delete", kind.kind)
        key = (kind.kind, namespace, name)
        if key not in self.objects:
            raise NotFoundError(f'{kind.plural} "{name}" not found', status=404)
        del self.objects[key]
        self.mutations.append(Mutation("delete", kind.kind, namespace, name))

    async def delete_if_exists(self, kind: ResourceKind, namespace: str, name: str) -> bool:
        try:
            await self.delete(kind, namespace, name)
            return True
        except NotFoundError:
            return False

    def kinds_mutated(self, verb: Optional[str] = None) -> List[str]:
        return [m.kind for m in self.mutations if verb is None or m.verb == verb]


@pytest.fixture
def fake_cluster():
    """Empty in-memory cluster."""
    return FakeCluster()


# =============================================================================
# DNS Fake
# =============================================================================

class FakeResolver:
    """
    Scriptable resolver.

    Missing names raise DNSLookupError, like NXDOMAIN would.
    """

    def __init__(self):
        self.txt: Dict[str, List[str]] = {}
        self.cname: Dict[str, str] = {}
        self.txt_queries: List[str] = []
        self.cname_queries: List[str] = []

    async def lookup_txt(self, name: str) -> List[str]:
        self.txt_queries.append(name)
        if name not in self.txt:
            raise DNSLookupError(f"TXT lookup for {name} failed: NXDOMAIN")
        return list(self.txt[name])

    async def lookup_cname(self, name: str) -> str:
        self.cname_queries.append(name)
        if name not in self.cname:
            raise DNSLookupError(f"CNAME lookup for {name} failed: NXDOMAIN")
        return self.cname[name]


@pytest.fixture
def fake_resolver():
    return FakeResolver()


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================

@pytest.fixture
def mock_redis_with_data():
    """
    Redis mock with in-memory hashes and sets.

    This allows testing code that reads back what it writes.
    """
    hashes: Dict[str, Dict[str, str]] = {}
    sets: Dict[str, set] = {}

    redis = AsyncMock()

    async def mock_hset(key, field=None, value=None, mapping=None):
        target = hashes.setdefault(key, {})
        added = 0
        items = dict(mapping or {})
        if field is not None:
            items[field] = value
        for k, v in items.items():
            if k not in target:
                added += 1
            target[k] = str(v)
        return added

    async def mock_hget(key, field):
        return hashes.get(key, {}).get(field)

    async def mock_hgetall(key):
        return dict(hashes.get(key, {}))

    async def mock_sadd(key, *members):
        target = sets.setdefault(key, set())
        before = len(target)
        target.update(members)
        return len(target) - before

    async def mock_srem(key, *members):
        target = sets.get(key, set())
        removed = len(target & set(members))
        target.difference_update(members)
        return removed

    async def mock_smembers(key):
        return set(sets.get(key, set()))

    async def mock_delete(*keys):
        count = 0
        for key in keys:
            if key in hashes:
                del hashes[key]
                count += 1
            if key in sets:
                del sets[key]
                count += 1
        return count

    async def mock_eval(script, numkeys, *keys_and_args):
        # Only the claim status compare-and-set script is evaluated
        key = keys_and_args[0]
        expected, status = keys_and_args[numkeys:numkeys + 2]
        target = hashes.get(key)
        if target is None or target.get("status") != expected:
            return 0
        target["status"] = str(status)
        return 1

    redis.hset = mock_hset
    redis.hget = mock_hget
    redis.eval = mock_eval
    redis.hgetall = mock_hgetall
    redis.sadd = mock_sadd
    redis.srem = mock_srem
    redis.smembers = mock_smembers
    redis.delete = mock_delete
    redis.ping = AsyncMock(return_value=True)
    redis._hashes = hashes  # Expose for test assertions
    redis._sets = sets

    return redis


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def cluster_config():
    return ClusterConfig(
        api_server="https://kube.test:6443",
        token="test-token",
        token_path="/nonexistent/token",
        ca_path=None,
        verify_ssl=False,
        worker_namespace="worker",
        ingress_namespace="ingress",
        gateway_namespace="combinator",
        base_domain="app238.com",
        certificate_issuer="zerossl-issuer",
        request_timeout=5.0,
    )


@pytest.fixture
def verification_config():
    return VerificationConfig(interval=5, max_attempts=12, txt_prefix="_verify", grace_period=300)


@pytest.fixture
def tenant_db_config():
    return TenantDatabaseConfig(
        admin_dsn="postgresql://root@db.test:26257?sslmode=disable",
        host="db.test",
        port=26257,
        namespace="cockroachdb",
    )


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
