"""
Cluster Module - Black Box Interface

Purpose: Create, read, update and delete Kubernetes resources
Interface: ClusterClient.get/create/update/delete/delete_if_exists
Hidden: REST paths, authentication, JSON manifests

Callers build typed resources; manifests only exist at the HTTP boundary.
"""

from .client import ClusterClient
from .resources import (
    CERTIFICATE,
    CONFIG_MAP,
    DEPLOYMENT,
    INGRESS_ROUTE,
    SECRET,
    SERVICE,
    CertificateResource,
    ConfigMapResource,
    DeploymentResource,
    ExternalNameServiceResource,
    IngressRouteResource,
    Resource,
    ResourceKind,
    SecretResource,
    ServiceResource,
    decode_secret_data,
    live_spec_hash,
)

__all__ = [
    "ClusterClient",
    "Resource",
    "ResourceKind",
    "CONFIG_MAP",
    "SECRET",
    "SERVICE",
    "DEPLOYMENT",
    "INGRESS_ROUTE",
    "CERTIFICATE",
    "ConfigMapResource",
    "SecretResource",
    "DeploymentResource",
    "ServiceResource",
    "ExternalNameServiceResource",
    "IngressRouteResource",
    "CertificateResource",
    "decode_secret_data",
    "live_spec_hash",
]
