"""
Storage Module - Black Box Interface

Purpose: Own the Redis connection used by the state store
Interface: connect(), disconnect(), ping()
Hidden: Connection URL assembly, password handling, decoding

Can be replaced with any storage backend without affecting other modules.
"""

import logging
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class StorageModule:
    """Black box storage abstraction."""

    def __init__(self, host: str, port: int, db: int = 0, password: Optional[str] = None):
        """
        Initialize storage settings.

        Args:
            host: Redis hostname
            port: Redis port
            db: Redis database number
            password: Optional password, passed separately to avoid URL encoding issues
        """
        self.url = f"redis://{host}:{port}/{db}"
        self.password = password
        self._client: Optional[redis.Redis] = None

    @classmethod
    def from_config(cls, config) -> "StorageModule":
        """Build from the process ConfigModule."""
        return cls(
            host=config.get("redis_host"),
            port=config.get("redis_port"),
            db=config.get("redis_db"),
            password=config.get("redis_password"),
        )

    async def connect(self) -> redis.Redis:
        """Get storage connection."""
        if not self._client:
            self._client = redis.from_url(
                self.url,
                password=self.password,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info(f"Connected to Redis at {self.url}")
        return self._client

    async def ping(self) -> bool:
        """Check that Redis answers."""
        if not self._client:
            return False
        return bool(await self._client.ping())

    async def disconnect(self):
        """Close storage connection."""
        if self._client:
            await self._client.aclose()
            self._client = None


__all__ = ["StorageModule"]
