"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"


@dataclass
class ClusterConfig:
    """Kubernetes API and namespace layout configuration."""
    api_server: str
    token: Optional[str]
    token_path: str
    ca_path: Optional[str]
    verify_ssl: bool
    worker_namespace: str
    ingress_namespace: str
    gateway_namespace: str
    base_domain: str
    certificate_issuer: str
    request_timeout: float

    def read_token(self) -> Optional[str]:
        """Return the bearer token, falling back to the mounted service account token."""
        if self.token:
            return self.token
        path = Path(self.token_path)
        if path.exists():
            return path.read_text().strip()
        return None

    @property
    def gateway_endpoint(self) -> str:
        """Internal URL of the per-tenant gateway injected into every workload."""
        return f"http://combinator.{self.gateway_namespace}.svc.cluster.local:8899"


@dataclass
class VerificationConfig:
    """Custom domain verification schedule."""
    interval: float
    max_attempts: int
    txt_prefix: str
    grace_period: float

    @property
    def window(self) -> float:
        """Longest time a claim may legitimately stay pending."""
        return self.interval * self.max_attempts + self.grace_period


@dataclass
class TenantDatabaseConfig:
    """Tenant database (CockroachDB/PostgreSQL) configuration."""
    admin_dsn: str
    host: str
    port: int
    namespace: str


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_cluster_config(self) -> ClusterConfig:
        """Get cluster configuration."""
        ...

    def get_verification_config(self) -> VerificationConfig:
        """Get domain verification configuration."""
        ...

    def get_tenant_database_config(self) -> TenantDatabaseConfig:
        """Get tenant database configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_cluster_config(self) -> ClusterConfig:
        """Get cluster configuration from environment variables."""
        host = os.getenv("KUBERNETES_SERVICE_HOST", "kubernetes.default.svc")
        port = os.getenv("KUBERNETES_SERVICE_PORT", "443")
        default_ca = f"{SERVICE_ACCOUNT_DIR}/ca.crt"

        return ClusterConfig(
            api_server=os.getenv("KUBE_API_SERVER") or f"https://{host}:{port}",
            token=os.getenv("KUBE_TOKEN"),
            token_path=os.getenv("KUBE_TOKEN_PATH", f"{SERVICE_ACCOUNT_DIR}/token"),
            ca_path=os.getenv("KUBE_CA_PATH") or (default_ca if Path(default_ca).exists() else None),
            verify_ssl=os.getenv("KUBE_SSL_VERIFY", "true").lower() == "true",
            worker_namespace=os.getenv("WORKER_NAMESPACE", "worker"),
            ingress_namespace=os.getenv("INGRESS_NAMESPACE", "ingress"),
            gateway_namespace=os.getenv("GATEWAY_NAMESPACE", "combinator"),
            base_domain=os.getenv("BASE_DOMAIN", "app238.com"),
            certificate_issuer=os.getenv("CERTIFICATE_ISSUER", "zerossl-issuer"),
            request_timeout=float(os.getenv("KUBE_REQUEST_TIMEOUT", "30")),
        )

    def get_verification_config(self) -> VerificationConfig:
        """Get domain verification configuration from environment variables."""
        return VerificationConfig(
            interval=float(os.getenv("DOMAIN_VERIFY_INTERVAL", "5")),
            max_attempts=int(os.getenv("DOMAIN_VERIFY_ATTEMPTS", "12")),
            txt_prefix=os.getenv("DOMAIN_TXT_PREFIX", "_verify"),
            grace_period=float(os.getenv("DOMAIN_VERIFY_GRACE", "300")),
        )

    def get_tenant_database_config(self) -> TenantDatabaseConfig:
        """Get tenant database configuration from environment variables."""
        host = os.getenv("COCKROACHDB_HOST", "cockroachdb-public.cockroachdb.svc.cluster.local")
        port = int(os.getenv("COCKROACHDB_PORT", "26257"))

        return TenantDatabaseConfig(
            admin_dsn=os.getenv(
                "COCKROACHDB_ADMIN_DSN",
                f"postgresql://root@{host}:{port}?sslmode=disable",
            ),
            host=host,
            port=port,
            namespace=os.getenv("RDB_NAMESPACE", "cockroachdb"),
        )
