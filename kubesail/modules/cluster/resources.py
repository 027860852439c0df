"""
Typed builders for the cluster resources kubesail manages.

Each builder holds named fields and only produces the Kubernetes JSON
manifest in to_manifest(), which the ClusterClient calls at the wire
boundary.
"""

import base64
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

SPEC_HASH_ANNOTATION = "kubesail.io/spec-hash"


@dataclass(frozen=True)
class ResourceKind:
    """API coordinates of a namespaced resource type."""

    group: str
    version: str
    plural: str
    kind: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def path(self, namespace: str, name: Optional[str] = None) -> str:
        base = f"/apis/{self.group}/{self.version}" if self.group else f"/api/{self.version}"
        path = f"{base}/namespaces/{namespace}/{self.plural}"
        return f"{path}/{name}" if name else path


CONFIG_MAP = ResourceKind("", "v1", "configmaps", "ConfigMap")
SECRET = ResourceKind("", "v1", "secrets", "Secret")
SERVICE = ResourceKind("", "v1", "services", "Service")
DEPLOYMENT = ResourceKind("apps", "v1", "deployments", "Deployment")
INGRESS_ROUTE = ResourceKind("traefik.io", "v1alpha1", "ingressroutes", "IngressRoute")
CERTIFICATE = ResourceKind("cert-manager.io", "v1", "certificates", "Certificate")


@dataclass
class Resource:
    """Common metadata for every builder."""

    kind: ClassVar[ResourceKind]

    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)

    def metadata(self) -> Dict[str, Any]:
        meta: Dict[str, Any] = {
            "name": self.name,
            "namespace": self.namespace,
            "labels": dict(self.labels),
        }
        if self.annotations:
            meta["annotations"] = dict(self.annotations)
        return meta

    def body(self) -> Dict[str, Any]:
        """Kind-specific top-level fields (spec, data, ...)."""
        raise NotImplementedError

    def to_manifest(self, resource_version: Optional[str] = None) -> Dict[str, Any]:
        manifest = {
            "apiVersion": self.kind.api_version,
            "kind": self.kind.kind,
            "metadata": self.metadata(),
            **self.body(),
        }
        if resource_version:
            manifest["metadata"]["resourceVersion"] = resource_version
        return manifest

    def spec_hash(self) -> str:
        """Stable digest of labels and body, used to skip no-op updates."""
        payload = json.dumps({"labels": self.labels, "body": self.body()}, sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()[:16]

    def stamp(self) -> "Resource":
        """Record spec_hash() in the annotations and return self."""
        self.annotations[SPEC_HASH_ANNOTATION] = self.spec_hash()
        return self


def live_spec_hash(live: Dict[str, Any]) -> Optional[str]:
    """spec-hash annotation carried by a live object, if any."""
    annotations = live.get("metadata", {}).get("annotations") or {}
    return annotations.get(SPEC_HASH_ANNOTATION)


@dataclass
class ConfigMapResource(Resource):
    kind: ClassVar[ResourceKind] = CONFIG_MAP

    data: Dict[str, str] = field(default_factory=dict)

    def body(self) -> Dict[str, Any]:
        return {"data": dict(self.data)}


@dataclass
class SecretResource(Resource):
    kind: ClassVar[ResourceKind] = SECRET

    data: Dict[str, str] = field(default_factory=dict)

    def body(self) -> Dict[str, Any]:
        encoded = {
            k: base64.b64encode(v.encode(errors="surrogateescape")).decode() for k, v in self.data.items()
        }
        return {"type": "Opaque", "data": encoded}


def decode_secret_data(live: Dict[str, Any]) -> Dict[str, str]:
    """
    Decode the base64 data map of a live Secret.

    Non-UTF-8 bytes are kept as surrogate escapes and re-encoded unchanged
    by SecretResource.
    """
    return {k: base64.b64decode(v).decode(errors="surrogateescape") for k, v in (live.get("data") or {}).items()}


@dataclass
class DeploymentResource(Resource):
    kind: ClassVar[ResourceKind] = DEPLOYMENT

    image: str = ""
    port: int = 0
    replicas: int = 1
    resources: Dict[str, str] = field(default_factory=dict)
    config_map_ref: Optional[str] = None
    secret_ref: Optional[str] = None
    # Soft co-location with a system pod: (namespace, label selector)
    preferred_peer_namespace: Optional[str] = None
    preferred_peer_labels: Dict[str, str] = field(default_factory=dict)
    region: Optional[str] = None

    def _affinity(self) -> Dict[str, Any]:
        affinity: Dict[str, Any] = {}
        if self.preferred_peer_labels:
            affinity["podAffinity"] = {
                "preferredDuringSchedulingIgnoredDuringExecution": [{
                    "weight": 100,
                    "podAffinityTerm": {
                        "labelSelector": {"matchLabels": dict(self.preferred_peer_labels)},
                        "namespaces": [self.preferred_peer_namespace or self.namespace],
                        "topologyKey": "kubernetes.io/hostname",
                    },
                }],
            }
        if self.region:
            affinity["nodeAffinity"] = {
                "requiredDuringSchedulingIgnoredDuringExecution": {
                    "nodeSelectorTerms": [{
                        "matchExpressions": [{
                            "key": "topology.kubernetes.io/region",
                            "operator": "In",
                            "values": [self.region],
                        }],
                    }],
                },
            }
        return affinity

    def _env_from(self) -> List[Dict[str, Any]]:
        env_from = []
        if self.config_map_ref:
            env_from.append({"configMapRef": {"name": self.config_map_ref}})
        if self.secret_ref:
            env_from.append({"secretRef": {"name": self.secret_ref}})
        return env_from

    def body(self) -> Dict[str, Any]:
        container = {
            "name": self.name,
            "image": self.image,
            "ports": [{"containerPort": self.port}],
            "resources": {
                "limits": dict(self.resources),
                "requests": dict(self.resources),
            },
            "envFrom": self._env_from(),
        }
        pod_spec: Dict[str, Any] = {"containers": [container]}
        affinity = self._affinity()
        if affinity:
            pod_spec["affinity"] = affinity
        return {
            "spec": {
                "replicas": self.replicas,
                "selector": {"matchLabels": {"app": self.name}},
                "template": {
                    "metadata": {"labels": dict(self.labels)},
                    "spec": pod_spec,
                },
            },
        }


@dataclass
class ServiceResource(Resource):
    kind: ClassVar[ResourceKind] = SERVICE

    selector: Dict[str, str] = field(default_factory=dict)
    port: int = 0

    def body(self) -> Dict[str, Any]:
        return {
            "spec": {
                "selector": dict(self.selector),
                "ports": [{"port": self.port, "protocol": "TCP"}],
            },
        }


@dataclass
class ExternalNameServiceResource(Resource):
    kind: ClassVar[ResourceKind] = SERVICE

    external_name: str = ""

    def body(self) -> Dict[str, Any]:
        return {"spec": {"type": "ExternalName", "externalName": self.external_name}}


@dataclass
class IngressRouteResource(Resource):
    """Traefik IngressRoute routing one host to one service over TLS."""

    kind: ClassVar[ResourceKind] = INGRESS_ROUTE

    host: str = ""
    service_name: str = ""
    service_port: int = 0
    service_namespace: Optional[str] = None
    tls_secret: str = ""
    entry_points: List[str] = field(default_factory=lambda: ["websecure"])

    def body(self) -> Dict[str, Any]:
        service: Dict[str, Any] = {"name": self.service_name, "port": self.service_port}
        if self.service_namespace:
            service["namespace"] = self.service_namespace
        return {
            "spec": {
                "entryPoints": list(self.entry_points),
                "routes": [{
                    "match": f"Host(`{self.host}`)",
                    "kind": "Rule",
                    "services": [service],
                }],
                "tls": {"secretName": self.tls_secret},
            },
        }


@dataclass
class CertificateResource(Resource):
    """cert-manager Certificate request."""

    kind: ClassVar[ResourceKind] = CERTIFICATE

    secret_name: str = ""
    dns_names: List[str] = field(default_factory=list)
    issuer_name: str = ""
    issuer_kind: str = "ClusterIssuer"

    def body(self) -> Dict[str, Any]:
        return {
            "spec": {
                "secretName": self.secret_name,
                "dnsNames": list(self.dns_names),
                "issuerRef": {"name": self.issuer_name, "kind": self.issuer_kind},
            },
        }
