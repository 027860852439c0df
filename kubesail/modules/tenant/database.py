"""
Per-tenant relational databases.

Each tenant owns one database and one login role on the shared
PostgreSQL-compatible cluster; data resources are schemas inside that
database. The role password lives in a cluster Secret, never in the state
store.
"""

import logging
import re
import secrets
import string
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import asyncpg

from ...config.provider import TenantDatabaseConfig
from ..cluster import SECRET, ClusterClient, SecretResource, decode_secret_data
from ..errors import ClusterError, NotFoundError, TenantDatabaseError

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = string.ascii_letters + string.digits
PASSWORD_LENGTH = 24
_IDENTIFIER = re.compile(r"^[a-z0-9_]+$")


def sanitize(value: str) -> str:
    """Lowercase and replace '-' and '.' so the value is usable in an identifier."""
    return value.replace("-", "_").replace(".", "_").lower()


def _identifier(prefix: str, value: str) -> str:
    name = f"{prefix}_{sanitize(value)}"
    if not _IDENTIFIER.match(name):
        raise TenantDatabaseError(f"invalid identifier derived from {value!r}")
    return name


def generate_password() -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(PASSWORD_LENGTH))


@dataclass
class TenantDatabase:
    """Names and credentials of one tenant's database."""

    owner_id: str
    password: str = ""

    @property
    def username(self) -> str:
        return _identifier("user", self.owner_id)

    @property
    def database(self) -> str:
        return _identifier("db", self.owner_id)

    @property
    def secret_name(self) -> str:
        return f"rdb-secret-{self.owner_id}"

    def schema(self, resource_id: str) -> str:
        return _identifier("schema", resource_id)


class TenantDatabaseManager:
    def __init__(
        self,
        config: TenantDatabaseConfig,
        cluster: ClusterClient,
        connect: Optional[Callable[..., Awaitable["asyncpg.Connection"]]] = None,
    ):
        """
        Initialize tenant database manager.

        Args:
            config: Admin DSN, tenant-facing host/port and secret namespace
            cluster: Cluster client used to store role passwords
            connect: Connection factory, defaults to asyncpg.connect
        """
        self.config = config
        self.cluster = cluster
        self._connect = connect or asyncpg.connect

    async def _execute(self, statements: List[str], database: Optional[str] = None) -> None:
        """Run statements on one admin connection, optionally bound to a database."""
        kwargs = {"database": database} if database else {}
        try:
            conn = await self._connect(self.config.admin_dsn, **kwargs)
        except (OSError, asyncpg.PostgresError) as e:
            raise TenantDatabaseError(f"connect failed: {e}") from e
        try:
            for statement in statements:
                await conn.execute(statement)
        except asyncpg.PostgresError as e:
            raise TenantDatabaseError(str(e)) from e
        finally:
            await conn.close()

    def tenant_dsn(self, owner_id: str, password: str) -> str:
        """Connection string handed to the tenant's workloads."""
        tenant = TenantDatabase(owner_id, password)
        return (
            f"postgresql://{tenant.username}:{password}@{self.config.host}:{self.config.port}"
            f"/{tenant.database}?sslmode=disable"
        )

    async def get_tenant(self, owner_id: str) -> TenantDatabase:
        """
        Load a tenant's credentials from its Secret.

        Raises:
            NotFoundError: tenant database was never initialized
        """
        tenant = TenantDatabase(owner_id)
        live = await self.cluster.get(SECRET, self.config.namespace, tenant.secret_name)
        tenant.password = decode_secret_data(live).get("password", "")
        return tenant

    async def init_tenant(self, owner_id: str) -> TenantDatabase:
        """
        Create the tenant database and role and store the role password.

        Safe to repeat: an existing password is reused and re-applied.
        """
        try:
            tenant = await self.get_tenant(owner_id)
            existing = True
        except NotFoundError:
            tenant = TenantDatabase(owner_id, generate_password())
            existing = False

        await self._execute([
            f"CREATE DATABASE IF NOT EXISTS {tenant.database}",
            f"CREATE USER IF NOT EXISTS {tenant.username}",
            f"ALTER USER {tenant.username} WITH PASSWORD '{tenant.password}'",
            f"GRANT ALL ON DATABASE {tenant.database} TO {tenant.username}",
        ])

        if not existing:
            await self.cluster.create(SecretResource(
                name=tenant.secret_name,
                namespace=self.config.namespace,
                labels={"app": "user-rdb", "owner-id": owner_id},
                data={"password": tenant.password},
            ))
        logger.info(f"[rdb] Initialized database {tenant.database} for {owner_id}")
        return tenant

    async def create_schema(self, owner_id: str, resource_id: str) -> str:
        """Create a schema in the tenant database and grant it to the tenant role."""
        tenant = TenantDatabase(owner_id)
        schema = tenant.schema(resource_id)
        await self._execute(
            [
                f"CREATE SCHEMA IF NOT EXISTS {schema}",
                f"GRANT ALL ON SCHEMA {schema} TO {tenant.username}",
            ],
            database=tenant.database,
        )
        logger.info(f"[rdb] Created schema {schema} in {tenant.database}")
        return schema

    async def delete_schema(self, owner_id: str, resource_id: str) -> str:
        tenant = TenantDatabase(owner_id)
        schema = tenant.schema(resource_id)
        await self._execute([f"DROP SCHEMA IF EXISTS {schema} CASCADE"], database=tenant.database)
        logger.info(f"[rdb] Dropped schema {schema} from {tenant.database}")
        return schema

    async def drop_tenant(self, owner_id: str) -> None:
        """Drop database and role and delete the password Secret."""
        tenant = TenantDatabase(owner_id)
        await self._execute([
            f"DROP DATABASE IF EXISTS {tenant.database} CASCADE",
            f"DROP USER IF EXISTS {tenant.username}",
        ])
        try:
            await self.cluster.delete_if_exists(SECRET, self.config.namespace, tenant.secret_name)
        except ClusterError as e:
            logger.warning(f"[rdb] delete secret {tenant.secret_name} failed: {e}")
        logger.info(f"[rdb] Dropped database {tenant.database}")
