"""
Kubernetes REST client.

Thin async wrapper over the API server's REST endpoints for the namespaced
resource kinds in resources.py. Typed builders are serialized here and
nowhere else.
"""

import logging
import ssl
from typing import Any, Dict, Optional

import httpx

from ...config.provider import ClusterConfig
from ..errors import ClusterError, ConflictError, NotFoundError
from .resources import Resource, ResourceKind

logger = logging.getLogger(__name__)


class ClusterClient:
    """Get/create/update/delete for namespaced resources."""

    def __init__(self, config: ClusterConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize cluster client.

        Args:
            config: Cluster configuration (API server, credentials, timeouts)
            transport: Optional httpx transport, used by tests
        """
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _verify(self):
        if not self.config.verify_ssl:
            return False
        if self.config.ca_path:
            return ssl.create_default_context(cafile=self.config.ca_path)
        return True

    async def connect(self) -> httpx.AsyncClient:
        """Open the underlying HTTP client (idempotent)."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            token = self.config.read_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
            else:
                logger.warning("No Kubernetes bearer token configured, requests will be anonymous")

            kwargs: Dict[str, Any] = {
                "base_url": self.config.api_server,
                "headers": headers,
                "timeout": self.config.request_timeout,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            else:
                kwargs["verify"] = self._verify()
            self._client = httpx.AsyncClient(**kwargs)
            logger.info(f"Cluster client connected to {self.config.api_server}")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        client = await self.connect()
        try:
            response = await client.request(method, path, json=body)
        except httpx.HTTPError as e:
            raise ClusterError(f"{method} {path}: {e}") from e

        if response.status_code < 400:
            return response.json() if response.content else {}

        try:
            status = response.json()
            message = status.get("message", response.text)
            reason = status.get("reason")
        except ValueError:
            message, reason = response.text, None

        if response.status_code == 404:
            raise NotFoundError(message, status=404, reason=reason)
        if response.status_code == 409:
            raise ConflictError(message, status=409, reason=reason)
        raise ClusterError(
            f"{method} {path} failed ({response.status_code}): {message}",
            status=response.status_code,
            reason=reason,
        )

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Dict[str, Any]:
        """
        Fetch a live object.

        Raises:
            NotFoundError: object does not exist
        """
        return await self._request("GET", kind.path(namespace, name))

    async def create(self, resource: Resource) -> Dict[str, Any]:
        return await self._request(
            "POST", resource.kind.path(resource.namespace), resource.to_manifest()
        )

    async def update(self, resource: Resource, resource_version: Optional[str] = None) -> Dict[str, Any]:
        """Replace an object. Passing resource_version makes the write conditional."""
        return await self._request(
            "PUT",
            resource.kind.path(resource.namespace, resource.name),
            resource.to_manifest(resource_version),
        )

    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        await self._request("DELETE", kind.path(namespace, name))

    async def delete_if_exists(self, kind: ResourceKind, namespace: str, name: str) -> bool:
        """
        Delete an object, treating "not found" as already satisfied.

        Returns:
            True if an object was deleted, False if it was already gone
        """
        try:
            await self.delete(kind, namespace, name)
            return True
        except NotFoundError:
            return False
