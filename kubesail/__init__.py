"""
Kubesail - Serverless Control Plane Core

Drives cluster state (workloads, networking, certificates, DNS) toward the
desired state recorded by the request-accepting API layer.

Architecture:
- Each module is self-contained with clear interfaces
- Dependencies are constructed once and injected, never global
- All cross-invocation state lives in the external state store

Modules:
- jobs: Job abstraction, task processor and cron scheduler
- workload: Desired-state descriptors and the workload reconciler
- domain: Custom domain verification and provisioning
- cluster: Kubernetes REST client and typed resource builders
- state: Persisted descriptors and status fields (Redis)
- tenant: Per-tenant database provisioning
- config: Application configuration
- storage: Redis connection management
"""

__version__ = "1.0.0"
