"""
Tests for workload descriptors and typed cluster resource builders.
"""

import base64
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubesail.modules.cluster import (
    CERTIFICATE,
    CONFIG_MAP,
    DEPLOYMENT,
    INGRESS_ROUTE,
    CertificateResource,
    DeploymentResource,
    ExternalNameServiceResource,
    IngressRouteResource,
    SecretResource,
    decode_secret_data,
    live_spec_hash,
)
from kubesail.modules.workload import WorkloadReconciler, WorkloadSpec, workload_name
from kubesail.modules.workload.models import DeployVersion, present_reserved, strip_reserved


# ============================================================================
# Workload Spec Tests
# ============================================================================

def test_workload_name():
    """Test canonical name is w-{workload_id}-{owner_id}"""
    assert workload_name("abc123", "u1") == "w-abc123-u1"


def test_spec_derived_names_and_labels():
    """Test config, secret names and labels derive from the workload name"""
    spec = WorkloadSpec(workload_id="abc123", owner_id="u1", image="nginx:latest", port=8080)

    assert spec.name == "w-abc123-u1"
    assert spec.config_name == "w-abc123-u1-env"
    assert spec.secret_name == "w-abc123-u1-secret"
    assert spec.labels == {"app": "w-abc123-u1", "workload-id": "abc123", "owner-id": "u1"}


def test_spec_defaults():
    """Test blank resources and replicas fall back to defaults"""
    spec = WorkloadSpec(workload_id="abc123", owner_id="u1", image="nginx:latest", port=8080)

    assert spec.replicas == 1
    assert spec.resource_quantities() == {"cpu": "1", "memory": "500Mi", "ephemeral-storage": "2Gi"}


def test_spec_negative_replicas_default_to_one():
    """Test replicas <= 0 means one replica"""
    spec = WorkloadSpec(workload_id="a", owner_id="u", image="i", port=80, max_replicas=-3)
    assert spec.replicas == 1


def test_spec_overrides():
    """Test explicit values win over defaults"""
    spec = WorkloadSpec(
        workload_id="a", owner_id="u", image="i", port=80,
        cpu="250m", memory="1Gi", disk="", max_replicas=3,
    )

    assert spec.replicas == 3
    assert spec.resource_quantities() == {"cpu": "250m", "memory": "1Gi", "ephemeral-storage": "2Gi"}


def test_spec_host():
    """Test routed host name"""
    spec = WorkloadSpec(workload_id="abc123", owner_id="u1", image="i", port=80)
    assert spec.host("app238.com") == "abc123-u1.worker.app238.com"


def test_reserved_env():
    """Test reserved key values"""
    spec = WorkloadSpec(workload_id="a", owner_id="u1", owner_secret="sk", image="i", port=80)

    assert spec.reserved_env("http://gw:8899") == {
        "KUBESAIL_API_ENDPOINT": "http://gw:8899",
        "KUBESAIL_OWNER_ID": "u1",
        "KUBESAIL_OWNER_SECRET": "sk",
    }


def test_strip_and_present_reserved():
    """Test reserved key helpers"""
    data = {"A": "1", "KUBESAIL_OWNER_ID": "x"}

    assert strip_reserved(data) == {"A": "1"}
    assert present_reserved(data) == ["KUBESAIL_OWNER_ID"]
    assert present_reserved({"A": "1"}) == []


def test_version_to_spec():
    """Test deploy version combines with owner identity"""
    version = DeployVersion(version_id="7", workload_id="abc123", image="nginx:latest", port=8080, region="")
    spec = version.to_spec("u1", "secret")

    assert spec.name == "w-abc123-u1"
    assert spec.owner_secret == "secret"
    assert spec.region is None


# ============================================================================
# Resource Builder Tests
# ============================================================================

def test_resource_paths():
    """Test core and grouped API paths"""
    assert CONFIG_MAP.path("worker") == "/api/v1/namespaces/worker/configmaps"
    assert DEPLOYMENT.path("worker", "w-a-u") == "/apis/apps/v1/namespaces/worker/deployments/w-a-u"
    assert INGRESS_ROUTE.api_version == "traefik.io/v1alpha1"
    assert CERTIFICATE.api_version == "cert-manager.io/v1"


def test_default_deployment_manifest(cluster_config):
    """Test abc123/u1 nginx:latest:8080 deployment with all defaults"""
    spec = WorkloadSpec(workload_id="abc123", owner_id="u1", image="nginx:latest", port=8080)
    reconciler = WorkloadReconciler(cluster=None, config=cluster_config)

    manifest = reconciler.build_deployment(spec).to_manifest()

    assert manifest["apiVersion"] == "apps/v1"
    assert manifest["kind"] == "Deployment"
    assert manifest["metadata"]["name"] == "w-abc123-u1"
    assert manifest["metadata"]["namespace"] == "worker"
    assert manifest["spec"]["replicas"] == 1

    container = manifest["spec"]["template"]["spec"]["containers"][0]
    assert container["image"] == "nginx:latest"
    assert container["ports"] == [{"containerPort": 8080}]
    expected = {"cpu": "1", "memory": "500Mi", "ephemeral-storage": "2Gi"}
    assert container["resources"] == {"limits": expected, "requests": expected}
    assert container["envFrom"] == [
        {"configMapRef": {"name": "w-abc123-u1-env"}},
        {"secretRef": {"name": "w-abc123-u1-secret"}},
    ]


def test_deployment_affinity_without_region(cluster_config):
    """Test soft gateway affinity is always present and region affinity is not"""
    spec = WorkloadSpec(workload_id="a", owner_id="u", image="i", port=80)
    reconciler = WorkloadReconciler(cluster=None, config=cluster_config)

    affinity = reconciler.build_deployment(spec).to_manifest()["spec"]["template"]["spec"]["affinity"]

    assert "nodeAffinity" not in affinity
    term = affinity["podAffinity"]["preferredDuringSchedulingIgnoredDuringExecution"][0]
    assert term["weight"] == 100
    assert term["podAffinityTerm"]["labelSelector"] == {"matchLabels": {"app": "combinator"}}
    assert term["podAffinityTerm"]["namespaces"] == ["combinator"]
    assert term["podAffinityTerm"]["topologyKey"] == "kubernetes.io/hostname"


def test_deployment_region_affinity():
    """Test a region adds a required node affinity"""
    deployment = DeploymentResource(name="d", namespace="worker", image="i", port=80, region="eu-west")

    affinity = deployment.to_manifest()["spec"]["template"]["spec"]["affinity"]
    terms = affinity["nodeAffinity"]["requiredDuringSchedulingIgnoredDuringExecution"]["nodeSelectorTerms"]
    assert terms[0]["matchExpressions"] == [
        {"key": "topology.kubernetes.io/region", "operator": "In", "values": ["eu-west"]}
    ]


def test_secret_encoding_round_trip():
    """Test secret values are base64 encoded on the wire"""
    manifest = SecretResource(name="s", namespace="worker", data={"KEY": "value"}).to_manifest()

    assert manifest["type"] == "Opaque"
    assert manifest["data"]["KEY"] == base64.b64encode(b"value").decode()
    assert decode_secret_data(manifest) == {"KEY": "value"}


def test_ingress_route_manifest(cluster_config):
    """Test workload ingress route host, TLS and backend"""
    spec = WorkloadSpec(workload_id="abc123", owner_id="u1", image="i", port=8080)
    reconciler = WorkloadReconciler(cluster=None, config=cluster_config)

    manifest = reconciler.build_ingress_route(spec).to_manifest()

    assert manifest["metadata"]["namespace"] == "ingress"
    assert manifest["spec"]["entryPoints"] == ["websecure"]
    route = manifest["spec"]["routes"][0]
    assert route["match"] == "Host(`abc123-u1.worker.app238.com`)"
    assert route["services"] == [{"name": "w-abc123-u1", "port": 8080, "namespace": "worker"}]
    assert manifest["spec"]["tls"] == {"secretName": "worker-tls"}


def test_external_name_service():
    """Test ExternalName service body"""
    manifest = ExternalNameServiceResource(name="n", namespace="ingress", external_name="t.example.net").to_manifest()
    assert manifest["spec"] == {"type": "ExternalName", "externalName": "t.example.net"}


def test_certificate_manifest():
    """Test cert-manager certificate body"""
    manifest = CertificateResource(
        name="c", namespace="ingress", secret_name="tls", dns_names=["example.com"], issuer_name="zerossl-issuer",
    ).to_manifest()

    assert manifest["spec"] == {
        "secretName": "tls",
        "dnsNames": ["example.com"],
        "issuerRef": {"name": "zerossl-issuer", "kind": "ClusterIssuer"},
    }


def test_resource_version_in_manifest():
    """Test resourceVersion only appears when given"""
    route = IngressRouteResource(name="r", namespace="ingress", host="h", service_name="s", service_port=1)

    assert "resourceVersion" not in route.to_manifest()["metadata"]
    assert route.to_manifest("42")["metadata"]["resourceVersion"] == "42"


# ============================================================================
# Spec Hash Tests
# ============================================================================

def test_spec_hash_stable_and_sensitive():
    """Test the hash ignores annotations and tracks the body"""
    a = DeploymentResource(name="d", namespace="n", image="nginx:1", port=80)
    b = DeploymentResource(name="d", namespace="n", image="nginx:1", port=80, annotations={"x": "y"})
    c = DeploymentResource(name="d", namespace="n", image="nginx:2", port=80)

    assert a.spec_hash() == b.spec_hash()
    assert a.spec_hash() != c.spec_hash()


def test_stamp_and_live_hash():
    """Test stamped manifests carry the hash annotation"""
    deployment = DeploymentResource(name="d", namespace="n", image="i", port=80).stamp()
    manifest = deployment.to_manifest()

    assert live_spec_hash(manifest) == deployment.spec_hash()
    assert live_spec_hash({"metadata": {}}) is None
