"""
Jobs Module - Black Box Interface

Purpose: Execute background work on a bounded worker pool
Interface: TaskProcessor.submit(), CronScheduler.register_job(), TaskDispatcher.submit_task()
Hidden: Worker tasks, queueing, timers, job construction from payloads
"""

from .base import Job, JobContext
from .cron import CronScheduler
from .domain import VerifyDomainJob
from .periodic import AuditJob, DomainCheckJob
from .processor import TaskProcessor
from .registry import DEFAULT_JOBS, JobRegistry, TaskDispatcher
from .tenant import CreateDataResourceJob, DeleteDataResourceJob, RegisterTenantJob
from .workload import DeleteWorkloadResourcesJob, DeployWorkloadJob, SyncConfigJob, SyncSecretJob

__all__ = [
    "Job",
    "JobContext",
    "TaskProcessor",
    "CronScheduler",
    "JobRegistry",
    "TaskDispatcher",
    "DEFAULT_JOBS",
    "DeployWorkloadJob",
    "SyncConfigJob",
    "SyncSecretJob",
    "DeleteWorkloadResourcesJob",
    "RegisterTenantJob",
    "CreateDataResourceJob",
    "DeleteDataResourceJob",
    "AuditJob",
    "DomainCheckJob",
    "VerifyDomainJob",
]
