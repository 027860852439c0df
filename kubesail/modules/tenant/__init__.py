"""
Tenant Module - Black Box Interface

Purpose: Provision per-tenant databases and their data resources
Interface: TenantDatabaseManager.init_tenant/create_schema/delete_schema/drop_tenant
Hidden: SQL statements, identifier sanitization, password storage
"""

from .database import TenantDatabase, TenantDatabaseManager, sanitize

__all__ = ["TenantDatabase", "TenantDatabaseManager", "sanitize"]
