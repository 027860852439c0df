"""
State Module - Black Box Interface

Purpose: Read and write persisted descriptors and status fields
Interface: StateStore (workloads, versions, tenants, custom domain claims)
Hidden: Redis key layout, hash serialization

The request layer owns record creation; the core reads descriptors by
identifier and writes back status fields only.
"""

from .store import StateStore

__all__ = ["StateStore"]
