"""
API Module - Black Box Interface

Purpose: Request/response models of the internal HTTP surface
Interface: Pydantic models consumed by kubesail.main
Hidden: Field validation

The API only orchestrates - it contains no business logic.
"""

from .models import (
    AcceptTaskRequest,
    AcceptTaskResponse,
    CreateDomainRequest,
    DomainListResponse,
    DomainResponse,
)

__all__ = [
    "AcceptTaskRequest",
    "AcceptTaskResponse",
    "CreateDomainRequest",
    "DomainListResponse",
    "DomainResponse",
]
