"""
Workload reconciler.

Converges the five cluster sub-resources of a workload to its WorkloadSpec.
Every step is get-or-create / merge-update, so the reconciler is safe to run
any number of times, concurrently, against the same workload.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Tuple

from ...config.provider import ClusterConfig
from ..cluster import (
    CONFIG_MAP,
    DEPLOYMENT,
    INGRESS_ROUTE,
    SECRET,
    SERVICE,
    ClusterClient,
    ConfigMapResource,
    DeploymentResource,
    IngressRouteResource,
    SecretResource,
    ServiceResource,
    decode_secret_data,
    live_spec_hash,
)
from ..errors import ClusterError, NotFoundError, ReconcileError
from .models import WorkloadSpec, present_reserved, strip_reserved

logger = logging.getLogger(__name__)

WORKER_TLS_SECRET = "worker-tls"
GATEWAY_LABELS = {"app": "combinator"}

# Order matters: the deployment mounts config and secret, the service selects
# the deployment's pods, the ingress route targets the service.
STEPS = ("config", "secret", "deployment", "service", "ingressroute")


class WorkloadReconciler:
    """Stateless convergence of one workload's cluster resources."""

    def __init__(self, cluster: ClusterClient, config: ClusterConfig):
        """
        Initialize reconciler.

        Args:
            cluster: Cluster client used for every read and write
            config: Namespaces, base domain and gateway location
        """
        self.cluster = cluster
        self.config = config

    def _steps(self) -> List[Tuple[str, Callable[[WorkloadSpec], Awaitable[None]]]]:
        handlers = {
            "config": self.ensure_config_map,
            "secret": self.ensure_secret,
            "deployment": self.ensure_deployment,
            "service": self.ensure_service,
            "ingressroute": self.ensure_ingress_route,
        }
        return [(step, handlers[step]) for step in STEPS]

    async def reconcile(self, spec: WorkloadSpec) -> None:
        """
        Run all ensure-steps in order.

        Raises:
            ReconcileError: first failing step with its underlying error;
                later steps are not attempted and nothing is rolled back
        """
        for step, ensure in self._steps():
            try:
                await ensure(spec)
            except Exception as e:
                logger.error(f"[reconcile] {spec.name}: step {step} failed: {e}")
                raise ReconcileError(step, e) from e
        logger.info(f"[reconcile] {spec.name} converged")

    # Ensure steps

    async def ensure_config_map(self, spec: WorkloadSpec) -> None:
        """Create the env ConfigMap if absent; strip reserved keys if present."""
        namespace = self.config.worker_namespace
        try:
            live = await self.cluster.get(CONFIG_MAP, namespace, spec.config_name)
        except NotFoundError:
            await self.cluster.create(
                ConfigMapResource(name=spec.config_name, namespace=namespace, labels=spec.labels)
            )
            return

        data = live.get("data") or {}
        found = present_reserved(data)
        if not found:
            return
        logger.info(f"[reconcile] {spec.name}: stripping reserved keys {found} from config")
        await self.cluster.update(
            ConfigMapResource(
                name=spec.config_name,
                namespace=namespace,
                labels=live["metadata"].get("labels") or spec.labels,
                data=strip_reserved(data),
            ),
            resource_version=live["metadata"].get("resourceVersion"),
        )

    async def ensure_secret(self, spec: WorkloadSpec) -> None:
        """Create the Secret with reserved keys, or force them into an existing one."""
        namespace = self.config.worker_namespace
        reserved = spec.reserved_env(self.config.gateway_endpoint)
        try:
            live = await self.cluster.get(SECRET, namespace, spec.secret_name)
        except NotFoundError:
            await self.cluster.create(
                SecretResource(name=spec.secret_name, namespace=namespace, labels=spec.labels, data=reserved)
            )
            return

        current = decode_secret_data(live)
        if all(current.get(key) == value for key, value in reserved.items()):
            return
        current.update(reserved)
        await self.cluster.update(
            SecretResource(
                name=spec.secret_name,
                namespace=namespace,
                labels=live["metadata"].get("labels") or spec.labels,
                data=current,
            ),
            resource_version=live["metadata"].get("resourceVersion"),
        )

    def build_deployment(self, spec: WorkloadSpec) -> DeploymentResource:
        """Desired Deployment for a spec, with defaults applied."""
        return DeploymentResource(
            name=spec.name,
            namespace=self.config.worker_namespace,
            labels=spec.labels,
            image=spec.image,
            port=spec.port,
            replicas=spec.replicas,
            resources=spec.resource_quantities(),
            config_map_ref=spec.config_name,
            secret_ref=spec.secret_name,
            preferred_peer_namespace=self.config.gateway_namespace,
            preferred_peer_labels=dict(GATEWAY_LABELS),
            region=spec.region or None,
        )

    async def ensure_deployment(self, spec: WorkloadSpec) -> None:
        """Create the Deployment, or update it when the desired spec changed."""
        desired = self.build_deployment(spec).stamp()
        try:
            live = await self.cluster.get(DEPLOYMENT, desired.namespace, desired.name)
        except NotFoundError:
            await self.cluster.create(desired)
            return
        if live_spec_hash(live) == desired.spec_hash():
            return
        await self.cluster.update(desired)

    async def ensure_service(self, spec: WorkloadSpec) -> None:
        """Create the Service if absent. Existing services are left alone."""
        namespace = self.config.worker_namespace
        try:
            await self.cluster.get(SERVICE, namespace, spec.name)
            return
        except NotFoundError:
            pass
        await self.cluster.create(
            ServiceResource(
                name=spec.name,
                namespace=namespace,
                labels=spec.labels,
                selector={"app": spec.name},
                port=spec.port,
            )
        )

    def build_ingress_route(self, spec: WorkloadSpec) -> IngressRouteResource:
        return IngressRouteResource(
            name=spec.name,
            namespace=self.config.ingress_namespace,
            labels=spec.labels,
            host=spec.host(self.config.base_domain),
            service_name=spec.name,
            service_namespace=self.config.worker_namespace,
            service_port=spec.port,
            tls_secret=WORKER_TLS_SECRET,
        )

    async def ensure_ingress_route(self, spec: WorkloadSpec) -> None:
        """Create the IngressRoute, or update it carrying the live resourceVersion."""
        desired = self.build_ingress_route(spec).stamp()
        try:
            live = await self.cluster.get(INGRESS_ROUTE, desired.namespace, desired.name)
        except NotFoundError:
            await self.cluster.create(desired)
            return
        if live_spec_hash(live) == desired.spec_hash():
            return
        await self.cluster.update(desired, resource_version=live["metadata"].get("resourceVersion"))

    # User-driven data sync

    async def sync_config(self, name: str, data: Dict[str, str]) -> bool:
        """
        Replace the data of an existing workload ConfigMap.

        Reserved keys in data are dropped.

        Returns:
            False if the workload has no ConfigMap yet
        """
        namespace = self.config.worker_namespace
        config_name = f"{name}-env"
        try:
            live = await self.cluster.get(CONFIG_MAP, namespace, config_name)
        except NotFoundError:
            return False
        dropped = present_reserved(data)
        if dropped:
            logger.warning(f"[reconcile] {name}: ignoring reserved keys {dropped} in config sync")
        await self.cluster.update(
            ConfigMapResource(
                name=config_name,
                namespace=namespace,
                labels=live["metadata"].get("labels") or {},
                data=strip_reserved(data),
            ),
            resource_version=live["metadata"].get("resourceVersion"),
        )
        return True

    async def sync_secret(self, name: str, reserved: Dict[str, str], data: Dict[str, str]) -> bool:
        """
        Replace the data of an existing workload Secret, keeping reserved values.

        Returns:
            False if the workload has no Secret yet
        """
        namespace = self.config.worker_namespace
        secret_name = f"{name}-secret"
        try:
            live = await self.cluster.get(SECRET, namespace, secret_name)
        except NotFoundError:
            return False
        merged = {**strip_reserved(data), **reserved}
        await self.cluster.update(
            SecretResource(
                name=secret_name,
                namespace=namespace,
                labels=live["metadata"].get("labels") or {},
                data=merged,
            ),
            resource_version=live["metadata"].get("resourceVersion"),
        )
        return True

    # Teardown

    async def delete_all(self, spec: WorkloadSpec) -> int:
        """Best-effort delete of every sub-resource of spec."""
        return await self.delete_by_name(spec.name)

    async def delete_by_name(self, name: str) -> int:
        """
        Best-effort delete of every sub-resource of a workload, in no particular order.

        "Not found" counts as done; other errors are logged and the remaining
        deletions still run. Safe to repeat.

        Returns:
            Number of objects actually deleted
        """
        worker_ns = self.config.worker_namespace
        targets = [
            (DEPLOYMENT, worker_ns, name),
            (SERVICE, worker_ns, name),
            (CONFIG_MAP, worker_ns, f"{name}-env"),
            (SECRET, worker_ns, f"{name}-secret"),
            (INGRESS_ROUTE, self.config.ingress_namespace, name),
        ]
        deleted = 0
        for kind, namespace, target in targets:
            try:
                if await self.cluster.delete_if_exists(kind, namespace, target):
                    deleted += 1
            except ClusterError as e:
                logger.warning(f"[reconcile] delete {kind.kind} {namespace}/{target} failed: {e}")
        logger.info(f"[reconcile] {name}: deleted {deleted} resource(s)")
        return deleted
